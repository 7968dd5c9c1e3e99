import pytest

from fakes import FakeAgentClient, FakeCommentSink, FakeFileSource, RecordingSleep, make_run, make_tool_call
from review_agent.services.file_cache import FileContextCache
from review_agent.services.run_poller import RunFailedError, RunOutcome, RunPoller, RunTimeoutError
from review_agent.services.tool_dispatcher import ToolDispatcher


def _poller(client, *, sink=None, files=None, max_polls=None, sleep=None):
    dispatcher = ToolDispatcher(FileContextCache(FakeFileSource(files or {})), sink or FakeCommentSink())
    return RunPoller(client, dispatcher, poll_interval=1.0, max_polls=max_polls, sleep=sleep or RecordingSleep())


def _comment_call(call_id, line=3):
    return make_tool_call(call_id, "addReviewCommentToFileLine",
                          {"fileName": "a.py", "lineNumber": line, "foundIssueDescription": "Bug"})


@pytest.mark.asyncio
async def test_completes_when_service_reports_completed():
    sleep = RecordingSleep()
    client = FakeAgentClient(runs=[make_run("queued"), make_run("in_progress"), make_run("completed")])

    outcome = await _poller(client, sleep=sleep).poll("thread_1", "run_1")

    assert outcome is RunOutcome.COMPLETED
    assert client.retrieved == 3
    assert sleep.delays == [1.0, 1.0]
    assert client.submitted == []


@pytest.mark.asyncio
async def test_submits_one_result_per_tool_call_even_when_all_fail():
    calls = [
        make_tool_call("c1", "getFileContent", {"pathToFile": "gone.py", "startLineNumber": 1, "endLineNumber": 2}),
        _comment_call("c2"),
        make_tool_call("c3", "doesNotExist"),
    ]
    client = FakeAgentClient(runs=[make_run("requires_action", calls), make_run("completed")])
    sink = FakeCommentSink(error=RuntimeError("rejected"))

    outcome = await _poller(client, sink=sink).poll("thread_1", "run_1")

    assert outcome is RunOutcome.COMPLETED
    assert len(client.submitted) == 1
    batch = client.submitted[0]
    assert [output.tool_call_id for output in batch] == ["c1", "c2", "c3"]
    assert batch[0].output.startswith("Error processing getFileContent:")
    assert batch[1].output.startswith("There is an error in the 'addReviewCommentToFileLine' usage!")
    assert batch[2].output == "Unknown tool requested: doesNotExist"


@pytest.mark.asyncio
async def test_sleeps_after_submitting_tool_outputs():
    sleep = RecordingSleep()
    client = FakeAgentClient(runs=[make_run("requires_action", [_comment_call("c1")]), make_run("completed")])

    await _poller(client, sleep=sleep).poll("thread_1", "run_1")

    assert client.calls == ["retrieve_run", "submit_tool_outputs", "retrieve_run"]
    assert sleep.delays == [1.0]


@pytest.mark.asyncio
async def test_sole_done_call_ends_without_submission():
    client = FakeAgentClient(runs=[make_run("requires_action", [make_tool_call("c1", "codeReviewDone")])])

    outcome = await _poller(client).poll("thread_1", "run_1")

    assert outcome is RunOutcome.DONE_VIA_TOOL
    assert client.submitted == []
    assert client.runs == []


@pytest.mark.asyncio
async def test_done_call_stops_batch_processing():
    sink = FakeCommentSink()
    calls = [_comment_call("c1", line=1), make_tool_call("c2", "codeReviewDone"), _comment_call("c3", line=9)]
    client = FakeAgentClient(runs=[make_run("requires_action", calls), make_run("completed")])

    outcome = await _poller(client, sink=sink).poll("thread_1", "run_1")

    assert outcome is RunOutcome.DONE_VIA_TOOL
    assert sink.comments == [("Bug", "a.py", 1)]
    assert client.submitted == []
    assert client.retrieved == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["failed", "cancelled", "expired", "incomplete"])
async def test_unsuccessful_terminal_status_raises(status):
    client = FakeAgentClient(runs=[make_run("in_progress"), make_run(status)])

    with pytest.raises(RunFailedError, match=status):
        await _poller(client).poll("thread_1", "run_1")


@pytest.mark.asyncio
async def test_poll_bound_raises_timeout():
    sleep = RecordingSleep()
    client = FakeAgentClient(runs=[make_run("in_progress") for _ in range(5)])

    with pytest.raises(RunTimeoutError):
        await _poller(client, max_polls=3, sleep=sleep).poll("thread_1", "run_1")

    assert client.retrieved == 3
    assert sleep.delays == [1.0, 1.0]


@pytest.mark.asyncio
async def test_run_failure_carries_run_id_and_status():
    client = FakeAgentClient(runs=[make_run("expired", run_id="run_7")])

    with pytest.raises(RunFailedError) as excinfo:
        await _poller(client).poll("thread_1", "run_7")

    assert excinfo.value.run_id == "run_7"
    assert excinfo.value.status == "expired"


@pytest.mark.asyncio
async def test_poll_records_are_bound_to_thread_and_run(log_records):
    client = FakeAgentClient(runs=[make_run("completed")])

    await _poller(client).poll("thread_1", "run_1")

    assert log_records
    assert all(r["extra"]["thread_id"] == "thread_1" and r["extra"]["run_id"] == "run_1" for r in log_records)
