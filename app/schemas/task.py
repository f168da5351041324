from typing import Literal, Optional

from pydantic import BaseModel, model_validator


class TaskUpdate(BaseModel):
    completed: Optional[bool] = None
    status: Optional[Literal["completed", "pending"]] = None

    @model_validator(mode="after")
    def _one_of(self):
        if self.completed is None and self.status is None:
            raise ValueError("Either 'completed' or 'status' is required")
        return self

    @property
    def is_completed(self) -> bool:
        if self.completed is not None:
            return bool(self.completed)
        return self.status == "completed"
