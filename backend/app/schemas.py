from pydantic import BaseModel, Field

from core.state import SignalKind


class FieldUpdateRequest(BaseModel):
    field: str
    value: str


class DraftRequest(BaseModel):
    text: str = ""


class AnswerRequest(BaseModel):
    text: str | None = None
    question_index: int | None = Field(default=None, ge=0)


class SignalRequest(BaseModel):
    kind: SignalKind
    value: bool


class TerminateRequest(BaseModel):
    reason: str = "Interview terminated early"


class SubmissionResult(BaseModel):
    accepted: bool
    reason: str | None = None
    response: dict | None = None
    session: dict
