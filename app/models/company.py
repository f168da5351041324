from sqlalchemy import Column, DateTime, Integer, String

from app.core.clock import utcnow
from app.database import Base
from app.models.types import JSONType


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)

    # {"job_updates": bool, "employee_updates": bool}; missing keys mean enabled.
    notification_settings = Column(JSONType, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    def notification_enabled(self, key: str) -> bool:
        raw = self.notification_settings
        if not isinstance(raw, dict):
            return True
        value = raw.get(key)
        if isinstance(value, bool):
            return value
        return True
