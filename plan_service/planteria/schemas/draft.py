"""
Plan draft schema: the structure the model must return, and the only shape the full-tree replace accepts.
Wire format is camelCase (doneWhen); snake_case is accepted too.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

NodeStatus = Literal["todo", "doing", "done"]


class _DraftModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="ignore")


class ActionDraft(_DraftModel):
    title: str = Field(..., min_length=3, max_length=80)
    status: NodeStatus = "todo"
    order: Optional[int] = Field(None, ge=0)


class DeliverableDraft(_DraftModel):
    title: str = Field(..., min_length=3, max_length=80)
    done_when: str = Field(..., alias="doneWhen", min_length=10, max_length=160)
    notes: Optional[str] = Field(None, max_length=160)
    status: NodeStatus = "todo"
    order: Optional[int] = Field(None, ge=0)
    actions: List[ActionDraft] = Field(default_factory=list, max_length=7)

    @field_validator("notes")
    @classmethod
    def _blank_notes_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class OutcomeDraft(_DraftModel):
    title: str = Field(..., min_length=3, max_length=80)
    summary: str = Field("", max_length=160)
    status: NodeStatus = "todo"
    order: Optional[int] = Field(None, ge=0)
    deliverables: List[DeliverableDraft] = Field(..., min_length=1, max_length=9)


class PlanDraft(_DraftModel):
    """Complete plan proposal. idea is echoed back so adjustments can be checked against the stored plan."""

    idea: str = Field(..., min_length=1, max_length=2000)
    title: str = Field(..., min_length=3, max_length=80)
    summary: str = Field(..., min_length=20, max_length=240)
    outcomes: List[OutcomeDraft] = Field(..., min_length=1, max_length=7)


def plan_draft_json_schema() -> dict:
    """JSON schema of PlanDraft by alias, embedded in prompts."""
    return PlanDraft.model_json_schema(by_alias=True)
