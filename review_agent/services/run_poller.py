"""Drives a single agent run until it completes or the agent calls the done tool."""

from __future__ import annotations

import asyncio
import enum
from typing import Awaitable, Callable, List

from review_agent.agent_client import AgentClient
from review_agent.logger import conversation_logger, get_logger
from review_agent.models.agent import FAILED_RUN_STATUSES, Run, ToolOutput
from review_agent.services.tool_dispatcher import ToolDispatcher

logger = get_logger()

Sleeper = Callable[[float], Awaitable[None]]


class RunFailedError(RuntimeError):
    """Raised when the service reports the run ended without completing."""

    def __init__(self, run: Run):
        reason = run.last_error.message if run.last_error and run.last_error.message else "no error details"
        super().__init__(f"Run {run.id} ended with status '{run.status}': {reason}")
        self.run_id = run.id
        self.status = run.status


class RunTimeoutError(RuntimeError):
    """Raised when a run does not reach a terminal state within the poll bound."""


class RunOutcome(enum.Enum):
    COMPLETED = "completed"
    DONE_VIA_TOOL = "done_via_tool"


class RunPoller:
    def __init__(
        self,
        client: AgentClient,
        dispatcher: ToolDispatcher,
        *,
        poll_interval: float = 1.0,
        max_polls: int | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._client = client
        self._dispatcher = dispatcher
        self._poll_interval = poll_interval
        self._max_polls = max_polls
        self._sleep = sleep

    async def poll(self, thread_id: str, run_id: str) -> RunOutcome:
        ctx_logger = conversation_logger(logger, thread_id, run_id)
        polls = 0
        while True:
            run = await self._client.retrieve_run(thread_id, run_id)
            polls += 1
            ctx_logger.debug(f"Run status: {run.status} (poll {polls})")

            if run.status == "completed":
                ctx_logger.info(f"Run completed after {polls} poll(s)")
                return RunOutcome.COMPLETED
            if run.status in FAILED_RUN_STATUSES:
                raise RunFailedError(run)
            if run.status == "requires_action":
                outputs = await self._run_tool_calls(run, ctx_logger)
                if outputs is None:
                    return RunOutcome.DONE_VIA_TOOL
                await self._client.submit_tool_outputs(thread_id, run_id, outputs)
                ctx_logger.debug(f"Submitted {len(outputs)} tool output(s)")

            if self._max_polls is not None and polls >= self._max_polls:
                raise RunTimeoutError(f"Run {run_id} did not finish within {self._max_polls} polls")
            await self._sleep(self._poll_interval)

    async def _run_tool_calls(self, run: Run, ctx_logger) -> List[ToolOutput] | None:
        """Dispatch the pending calls in order; None means the agent signalled done."""

        tool_calls = run.pending_tool_calls
        ctx_logger.info(f"Run requires action: {len(tool_calls)} tool call(s)")
        outputs: List[ToolOutput] = []
        for tool_call in tool_calls:
            outcome = await self._dispatcher.dispatch(tool_call)
            if outcome.is_terminal:
                return None
            outputs.append(ToolOutput(tool_call_id=tool_call.id, output=outcome.output or ""))
        return outputs
