"""Emits the conversation transcript once a review run has finished."""

from __future__ import annotations

from typing import List

from review_agent.agent_client import AgentClient
from review_agent.logger import conversation_logger, get_logger
from review_agent.models.review import TranscriptEntry

logger = get_logger()


class TranscriptReporter:
    def __init__(self, client: AgentClient) -> None:
        self._client = client

    async def report(self, thread_id: str) -> List[TranscriptEntry]:
        messages = await self._client.list_messages(thread_id)
        ctx_logger = conversation_logger(logger, thread_id)
        # the service lists newest first
        entries = [TranscriptEntry(role=message.role, text=message.text) for message in reversed(messages)]
        for entry in entries:
            ctx_logger.info(f"{entry.role} > {entry.text}")
        return entries
