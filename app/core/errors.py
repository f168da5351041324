from typing import Iterable, List, Optional

from fastapi import HTTPException


class JobFlowError(ValueError):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def detail(self):
        return self.message


class Unauthorized(JobFlowError):
    status_code = 401


class NotFound(JobFlowError):
    status_code = 404


class Forbidden(JobFlowError):
    status_code = 403


class Conflict(JobFlowError):
    status_code = 409


class InvalidState(JobFlowError):
    status_code = 400


class AlreadyCheckedIn(InvalidState):
    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message or "You have already checked in to this job. Check-in can only be done once."
        )


class AlreadyCheckedOut(InvalidState):
    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message or "You have already checked out from this job. Check-out can only be done once."
        )


class NotCheckedIn(InvalidState):
    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "You must check in before checking out.")


class IncompleteTasks(InvalidState):
    def __init__(self, titles: Iterable[str]):
        self.incomplete_tasks: List[str] = list(titles)
        super().__init__(
            f"Cannot complete job: {len(self.incomplete_tasks)} task(s) still pending. "
            "Please complete all tasks first."
        )

    def detail(self):
        return {"message": self.message, "incomplete_tasks": self.incomplete_tasks}


def to_http_exception(exc: JobFlowError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail())
