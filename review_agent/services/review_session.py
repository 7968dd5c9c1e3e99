"""Review session: one pull request review against the agent, with retries."""

from __future__ import annotations

import asyncio
from typing import Any, Iterable, Mapping

from review_agent.agent_client import AgentClient
from review_agent.assistant import AssistantDefinition
from review_agent.logger import conversation_logger, get_logger, log_failure, log_success, log_timing
from review_agent.models.review import ChangedFile, Conversation, ReviewRequest
from review_agent.services.file_cache import FileContentGetter, FileContextCache
from review_agent.services.run_poller import RunFailedError, RunPoller, Sleeper
from review_agent.services.tool_dispatcher import ReviewCommentPoster, ToolDispatcher
from review_agent.services.transcript import TranscriptReporter

logger = get_logger()

DEFAULT_MAX_ATTEMPTS = 3
BACKOFF_BASE_SECONDS = 1.0


class CodeReviewer:
    """Runs a review of changed files, recreating the conversation on failure.

    Each attempt creates a fresh thread, posts the review request, and polls
    the run until it completes or the agent calls the done tool. A failed
    attempt deletes its thread and waits ``2 ** attempts`` seconds before the
    next one. The last error is re-raised once ``max_attempts`` is exhausted.
    """

    def __init__(
        self,
        client: AgentClient,
        *,
        file_content_getter: FileContentGetter,
        post_comment: ReviewCommentPoster,
        definition: AssistantDefinition,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = BACKOFF_BASE_SECONDS,
        poll_interval: float = 1.0,
        max_polls: int | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._client = client
        self._file_content_getter = file_content_getter
        self._post_comment = post_comment
        self._definition = definition
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base
        self._poll_interval = poll_interval
        self._max_polls = max_polls
        self._sleep = sleep
        self._reporter = TranscriptReporter(client)

    async def review(self, changed_files: Iterable[ChangedFile | Mapping[str, Any]]) -> None:
        request = ReviewRequest.from_changed_files(changed_files)
        logger.info(f"Starting review of {len(request.files)} changed file(s)")

        try:
            with log_timing(logger, "create_assistant"):
                assistant = await self._client.create_assistant(
                    name=self._definition.name,
                    instructions=self._definition.instructions,
                    model=self._definition.model,
                    tools=self._definition.tools,
                )
        except Exception as exc:
            log_failure(logger, "Failed to initialize the reviewer assistant", exc)
            raise

        poller = RunPoller(
            self._client,
            ToolDispatcher(FileContextCache(self._file_content_getter), self._post_comment),
            poll_interval=self._poll_interval,
            max_polls=self._max_polls,
            sleep=self._sleep,
        )

        attempts = 0
        while True:
            thread_id: str | None = None
            try:
                thread = await self._client.create_thread()
                thread_id = thread.id
                await self._attempt(Conversation(thread_id=thread.id, assistant_id=assistant.id), request, poller)
                return
            except Exception as exc:
                if thread_id is not None:
                    await self._discard_thread(thread_id)
                attempts += 1
                run_failure = exc if isinstance(exc, RunFailedError) else None
                attempt_logger = conversation_logger(logger, thread_id or "-", run_failure and run_failure.run_id)
                if run_failure is not None:
                    attempt_logger.warning(f"Run ended as '{run_failure.status}' instead of completing")
                attempt_logger.warning(f"Error encountered: {exc}; retrying...")
                if attempts >= self._max_attempts:
                    log_failure(logger, "Max retries reached. Unable to complete code review.", exc)
                    raise
                delay = (2 ** attempts) * self._backoff_base
                logger.info(f"Retrying review in {delay:.1f}s (attempt {attempts + 1}/{self._max_attempts})")
                await self._sleep(delay)

    async def _attempt(self, conversation: Conversation, request: ReviewRequest, poller: RunPoller) -> None:
        ctx_logger = conversation_logger(logger, conversation.thread_id)
        await self._client.create_message(conversation.thread_id, content=request.to_message())
        run = await self._client.create_run(conversation.thread_id, assistant_id=conversation.assistant_id)
        ctx_logger.info(f"Created run {run.id}")

        with log_timing(conversation_logger(logger, conversation.thread_id, run.id), "poll_run"):
            outcome = await poller.poll(conversation.thread_id, run.id)
        ctx_logger.info(f"Run finished: {outcome.value}")

        await self._reporter.report(conversation.thread_id)
        log_success(logger, "Code review completed", thread_id=conversation.thread_id)

    async def _discard_thread(self, thread_id: str) -> None:
        try:
            await self._client.delete_thread(thread_id)
        except Exception as exc:
            # the attempt's own error is the one worth surfacing
            conversation_logger(logger, thread_id).warning(f"Failed to delete thread: {exc}")
