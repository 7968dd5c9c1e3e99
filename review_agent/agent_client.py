"""Client wrapper for the Assistants-style agent service."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

import httpx

from review_agent.logger import conversation_logger, get_logger
from review_agent.models.agent import Assistant, Run, Thread, ThreadMessage, ToolOutput

logger = get_logger()


class AgentAPIError(RuntimeError):
    """Raised when the agent service responds with an error."""

    def __init__(self, message: str, status_code: int, detail: Any | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class AgentClient:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "OpenAI-Beta": "assistants=v2",
            },
        )
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def create_assistant(
        self,
        *,
        name: str,
        instructions: str,
        model: str,
        tools: Iterable[Dict[str, Any]],
    ) -> Assistant:
        payload = {"name": name, "instructions": instructions, "model": model, "tools": list(tools)}
        data = await self._request("POST", "/assistants", "create assistant", json=payload)
        assistant = Assistant.model_validate(data)
        logger.debug(f"Created assistant {assistant.id} (model={model})")
        return assistant

    async def create_thread(self) -> Thread:
        data = await self._request("POST", "/threads", "create thread", json={})
        return Thread.model_validate(data)

    async def delete_thread(self, thread_id: str) -> None:
        await self._request("DELETE", f"/threads/{thread_id}", "delete thread")
        conversation_logger(logger, thread_id).debug("Thread deleted")

    async def create_message(self, thread_id: str, *, content: str, role: str = "user") -> None:
        await self._request(
            "POST",
            f"/threads/{thread_id}/messages",
            "post message",
            json={"role": role, "content": content},
        )

    async def create_run(self, thread_id: str, *, assistant_id: str) -> Run:
        data = await self._request(
            "POST",
            f"/threads/{thread_id}/runs",
            "create run",
            json={"assistant_id": assistant_id},
        )
        return Run.model_validate(data)

    async def retrieve_run(self, thread_id: str, run_id: str) -> Run:
        data = await self._request("GET", f"/threads/{thread_id}/runs/{run_id}", "retrieve run")
        return Run.model_validate(data)

    async def submit_tool_outputs(self, thread_id: str, run_id: str, outputs: Iterable[ToolOutput]) -> Run:
        payload = {"tool_outputs": [output.model_dump() for output in outputs]}
        data = await self._request(
            "POST",
            f"/threads/{thread_id}/runs/{run_id}/submit_tool_outputs",
            "submit tool outputs",
            json=payload,
        )
        return Run.model_validate(data)

    async def list_messages(self, thread_id: str, *, limit: int = 100) -> List[ThreadMessage]:
        """Return the thread's messages, most recent first."""
        data = await self._request(
            "GET",
            f"/threads/{thread_id}/messages",
            "list messages",
            params={"limit": limit, "order": "desc"},
        )
        return [ThreadMessage.model_validate(entry) for entry in data.get("data", [])]

    async def _request(
        self,
        method: str,
        url: str,
        action: str,
        *,
        params: Dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> Dict[str, Any]:
        response = await self._client.request(method, url, params=params, json=json)
        _raise_for_status(action, response)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise AgentAPIError(
                f"Agent service returned invalid JSON while trying to {action}.",
                response.status_code,
                response.text,
            ) from exc


def _raise_for_status(action: str, response: httpx.Response) -> None:
    if response.status_code < 400:
        return
    detail: Any | None
    try:
        detail = response.json()
    except ValueError:
        detail = response.text
    raise AgentAPIError(
        f"Failed to {action}: status={response.status_code}, detail={detail}",
        response.status_code,
        detail,
    )
