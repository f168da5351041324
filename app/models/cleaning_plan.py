from sqlalchemy import Column, DateTime, Integer, Numeric, String

from app.core.clock import utcnow
from app.database import Base


class CleaningPlan(Base):
    __tablename__ = "cleaning_plans"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
