"""
PATCH /jobs/{id} body: a union tagged by "action".

A body without "action" only replaces the internal notes.
"""
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, RootModel, Tag

NOTES_ONLY = "notes"


class _JobActionBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    notes: Optional[str] = Field(None, max_length=10000)

    @property
    def notes_given(self) -> bool:
        return "notes" in self.model_fields_set


class StartJob(_JobActionBase):
    action: Literal["start"]


class CompleteJob(_JobActionBase):
    action: Literal["complete"]


class PauseJob(_JobActionBase):
    action: Literal["pause"]


class RejectJob(_JobActionBase):
    action: Literal["reject"]


class UpdateNotes(_JobActionBase):
    action: None = None
    notes: Optional[str] = Field(..., max_length=10000)


def _action_tag(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        action = value.get("action")
    else:
        action = getattr(value, "action", None)
    return action if action is not None else NOTES_ONLY


JobAction = Annotated[
    Union[
        Annotated[StartJob, Tag("start")],
        Annotated[CompleteJob, Tag("complete")],
        Annotated[PauseJob, Tag("pause")],
        Annotated[RejectJob, Tag("reject")],
        Annotated[UpdateNotes, Tag(NOTES_ONLY)],
    ],
    Discriminator(_action_tag),
]


class JobActionRequest(RootModel[JobAction]):
    pass
