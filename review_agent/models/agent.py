"""Response models for the Assistants-style agent service."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

FAILED_RUN_STATUSES: frozenset[str] = frozenset({"cancelled", "failed", "incomplete", "expired"})


class Assistant(BaseModel):
    id: str
    name: str | None = None
    model: str | None = None


class Thread(BaseModel):
    id: str


class FunctionCall(BaseModel):
    name: str
    arguments: str = ""


class RequiredToolCall(BaseModel):
    id: str
    type: str = "function"
    function: FunctionCall


class SubmitToolOutputsAction(BaseModel):
    tool_calls: List[RequiredToolCall] = Field(default_factory=list)


class RequiredAction(BaseModel):
    type: str = "submit_tool_outputs"
    submit_tool_outputs: SubmitToolOutputsAction = Field(default_factory=SubmitToolOutputsAction)


class RunError(BaseModel):
    code: str | None = None
    message: str | None = None


class Run(BaseModel):
    id: str
    thread_id: str | None = None
    # queued, in_progress, requires_action, cancelling, cancelled, failed, completed, incomplete, expired
    status: str
    required_action: RequiredAction | None = None
    last_error: RunError | None = None

    @property
    def pending_tool_calls(self) -> List[RequiredToolCall]:
        if self.required_action is None:
            return []
        return list(self.required_action.submit_tool_outputs.tool_calls)


class TextValue(BaseModel):
    value: str = ""


class MessageContent(BaseModel):
    type: str
    text: TextValue | None = None


class ThreadMessage(BaseModel):
    id: str
    role: str
    content: List[MessageContent] = Field(default_factory=list)

    @property
    def text(self) -> str:
        for part in self.content:
            if part.text is not None:
                return part.text.value
        return ""


class ToolOutput(BaseModel):
    tool_call_id: str
    output: str
