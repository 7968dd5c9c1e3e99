"""In-memory stand-ins for the agent service and review collaborators."""

from __future__ import annotations

import json
from typing import Any, Dict, List

from review_agent.models.agent import Assistant, Run, Thread, ThreadMessage, ToolOutput


def make_tool_call(call_id: str, name: str, arguments: Dict[str, Any] | str | None = None) -> Dict[str, Any]:
    if arguments is None:
        raw = "{}"
    elif isinstance(arguments, str):
        raw = arguments
    else:
        raw = json.dumps(arguments)
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": raw}}


def make_run(status: str, tool_calls: List[Dict[str, Any]] | None = None, run_id: str = "run_1") -> Run:
    data: Dict[str, Any] = {"id": run_id, "status": status}
    if tool_calls is not None:
        data["required_action"] = {
            "type": "submit_tool_outputs",
            "submit_tool_outputs": {"tool_calls": tool_calls},
        }
    return Run.model_validate(data)


def make_message(message_id: str, role: str, text: str) -> ThreadMessage:
    return ThreadMessage.model_validate(
        {"id": message_id, "role": role, "content": [{"type": "text", "text": {"value": text}}]}
    )


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeAgentClient:
    """Scripted agent service; ``fail_on`` maps a method name to the exception it raises."""

    def __init__(self, runs: List[Run] | None = None, messages: List[ThreadMessage] | None = None) -> None:
        self.runs = list(runs or [])
        self.messages = list(messages or [])
        self.fail_on: Dict[str, Exception] = {}
        self.calls: List[str] = []
        self.assistants: List[Dict[str, Any]] = []
        self.posted: List[Dict[str, Any]] = []
        self.submitted: List[List[ToolOutput]] = []
        self.deleted: List[str] = []
        self.retrieved = 0
        self._threads = 0

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise self.fail_on[name]

    async def create_assistant(self, **kwargs: Any) -> Assistant:
        self._record("create_assistant")
        self.assistants.append(kwargs)
        return Assistant(id="asst_1", name=kwargs.get("name"), model=kwargs.get("model"))

    async def create_thread(self) -> Thread:
        self._record("create_thread")
        self._threads += 1
        return Thread(id=f"thread_{self._threads}")

    async def delete_thread(self, thread_id: str) -> None:
        self._record("delete_thread")
        self.deleted.append(thread_id)

    async def create_message(self, thread_id: str, *, content: str, role: str = "user") -> None:
        self._record("create_message")
        self.posted.append({"thread_id": thread_id, "role": role, "content": content})

    async def create_run(self, thread_id: str, *, assistant_id: str) -> Run:
        self._record("create_run")
        return make_run("queued")

    async def retrieve_run(self, thread_id: str, run_id: str) -> Run:
        self._record("retrieve_run")
        self.retrieved += 1
        return self.runs.pop(0)

    async def submit_tool_outputs(self, thread_id: str, run_id: str, outputs) -> Run:
        self._record("submit_tool_outputs")
        self.submitted.append(list(outputs))
        return make_run("in_progress", run_id=run_id)

    async def list_messages(self, thread_id: str) -> List[ThreadMessage]:
        self._record("list_messages")
        return list(self.messages)

    async def aclose(self) -> None:
        self.calls.append("aclose")


class FakeFileSource:
    def __init__(self, files: Dict[str, str]) -> None:
        self.files = files
        self.requests: List[str] = []

    async def __call__(self, path: str) -> str:
        self.requests.append(path)
        if path not in self.files:
            raise FileNotFoundError(f"{path} not found")
        return self.files[path]


class FakeCommentSink:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.comments: List[tuple] = []

    async def __call__(self, description: str, file_name: str, line: int) -> None:
        if self.error is not None:
            raise self.error
        self.comments.append((description, file_name, line))
