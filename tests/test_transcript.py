import pytest

from fakes import FakeAgentClient, make_message
from review_agent.models.agent import ThreadMessage
from review_agent.models.review import TranscriptEntry
from review_agent.services.transcript import TranscriptReporter


@pytest.mark.asyncio
async def test_reports_messages_oldest_first():
    client = FakeAgentClient(messages=[
        make_message("m3", "assistant", "C"),
        make_message("m2", "assistant", "B"),
        make_message("m1", "user", "A"),
    ])

    entries = await TranscriptReporter(client).report("thread_1")

    assert entries == [
        TranscriptEntry(role="user", text="A"),
        TranscriptEntry(role="assistant", text="B"),
        TranscriptEntry(role="assistant", text="C"),
    ]


@pytest.mark.asyncio
async def test_message_without_text_content_reports_empty_text():
    message = ThreadMessage.model_validate(
        {"id": "m1", "role": "assistant", "content": [{"type": "image_file"}]}
    )

    entries = await TranscriptReporter(FakeAgentClient(messages=[message])).report("thread_1")

    assert entries == [TranscriptEntry(role="assistant", text="")]
