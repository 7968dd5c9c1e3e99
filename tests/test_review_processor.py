import pytest

from fakes import FakeAgentClient, make_run, make_tool_call
from review_agent.config import Settings
from review_agent.github_client import GitHubAPIError
from review_agent.queue import configure_review_handler, enqueue_review_job, shutdown_queue, wait_for_pending_jobs
from review_agent.queue.models import PullRequestInfo, PullRequestPayload, RepositoryInfo, ReviewJob
from review_agent.services.review_processor import ReviewProcessor, ReviewProcessorError


class FakeGitHubClient:
    def __init__(self, files=None, contents=None, list_error=None):
        self.files = files or []
        self.contents = contents or {}
        self.list_error = list_error
        self.comments = []
        self.content_requests = []
        self.closed = False

    async def get_pull_request(self, *, full_name, pull_number):
        return {"head": {"sha": "head-sha"}, "title": "Fix"}

    async def list_pull_request_files(self, *, full_name, pull_number):
        if self.list_error:
            raise self.list_error
        return self.files

    async def get_file_content(self, *, full_name, path, ref=None):
        self.content_requests.append((path, ref))
        return self.contents[path]

    async def create_review_comment(self, *, full_name, pull_number, commit_id, path, line, body):
        self.comments.append(
            {"full_name": full_name, "pull_number": pull_number, "commit_id": commit_id,
             "path": path, "line": line, "body": body}
        )

    async def aclose(self):
        self.closed = True


def _job(head_sha=None):
    return ReviewJob(
        delivery_id="d-1",
        payload=PullRequestPayload(
            repository=RepositoryInfo(full_name="octo/repo"),
            action="opened",
            pull_request=PullRequestInfo(number=7, head={"sha": head_sha}),
        ),
    )


def _processor(github, agent):
    return ReviewProcessor(
        settings=Settings(agent_api_key="key", poll_interval=0.0),
        github_client_factory=lambda settings, job: github,
        agent_client_factory=lambda settings: agent,
    )


@pytest.mark.asyncio
async def test_processor_wires_github_into_agent_tools():
    github = FakeGitHubClient(
        files=[{"filename": "a.py", "status": "modified", "additions": 1, "deletions": 0, "changes": 1}],
        contents={"a.py": "x = 1\ny = 2"},
    )
    agent = FakeAgentClient(runs=[
        make_run("requires_action", [
            make_tool_call("c1", "getFileContent", {"pathToFile": "a.py", "startLineNumber": 1, "endLineNumber": 2}),
            make_tool_call("c2", "addReviewCommentToFileLine",
                           {"fileName": "a.py", "lineNumber": 2, "foundIssueDescription": "Unused"}),
        ]),
        make_run("requires_action", [make_tool_call("c3", "codeReviewDone")]),
    ])

    await _processor(github, agent)(_job())

    assert github.content_requests == [("a.py", "head-sha")]
    assert github.comments == [{"full_name": "octo/repo", "pull_number": 7, "commit_id": "head-sha",
                                "path": "a.py", "line": 2, "body": "Unused"}]
    assert agent.submitted[0][1].output == "The note has been published."
    assert github.closed is True
    assert agent.calls[-1] == "aclose"


@pytest.mark.asyncio
async def test_processor_skips_review_without_changed_files():
    github = FakeGitHubClient(files=[])
    agent = FakeAgentClient()

    await _processor(github, agent)(_job(head_sha="abc"))

    assert "create_assistant" not in agent.calls
    assert github.closed is True


@pytest.mark.asyncio
async def test_processor_wraps_github_errors():
    github = FakeGitHubClient(list_error=GitHubAPIError("forbidden", 403))

    with pytest.raises(ReviewProcessorError) as excinfo:
        await _processor(github, FakeAgentClient())(_job(head_sha="abc"))

    assert excinfo.value.step == "build_review_context"
    assert github.closed is True


@pytest.mark.asyncio
async def test_queue_worker_runs_configured_handler():
    handled = []

    async def handler(job):
        handled.append(job.delivery_id)

    configure_review_handler(handler)
    try:
        await enqueue_review_job(_job(head_sha="abc"))
        await wait_for_pending_jobs()
    finally:
        configure_review_handler(None)
        await shutdown_queue()

    assert handled == ["d-1"]


@pytest.mark.asyncio
async def test_processor_logs_pull_request_title(log_records):
    github = FakeGitHubClient(files=[])

    await _processor(github, FakeAgentClient())(_job())

    messages = [r["message"] for r in log_records]
    assert 'Reviewing PR #7 "Fix" at head-sha (0 file(s))' in messages
