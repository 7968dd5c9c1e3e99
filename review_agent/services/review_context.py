"""Helpers to build review context from GitHub pull request jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from review_agent.github_client import GitHubAPIError, GitHubClient
from review_agent.logger import get_logger, log_timing, log_with_context
from review_agent.models.review import ChangedFile
from review_agent.queue.models import ReviewJob

logger = get_logger()


@dataclass(slots=True)
class PullRequestReviewContext:
    repository: str
    pull_number: int
    head_sha: str
    title: str | None = None
    files: List[ChangedFile] = field(default_factory=list)


def _serialize_files(files: List[dict]) -> List[ChangedFile]:
    serialized: List[ChangedFile] = []
    skipped_count = 0
    for file in files:
        try:
            serialized.append(ChangedFile.from_mapping(file))
        except ValueError as exc:
            logger.warning(f"Skipping file entry: {exc}")
            skipped_count += 1
    if skipped_count > 0:
        logger.warning(f"Skipped {skipped_count} file(s) due to missing path/filename")
    logger.debug(f"Serialized {len(serialized)} file(s) from {len(files)} file entries")
    return serialized


async def build_review_context(client: GitHubClient, job: ReviewJob) -> PullRequestReviewContext:
    payload = job.payload
    if not payload.repository.full_name:
        raise ValueError("Pull request payload missing repository full name")
    pr_info = payload.pull_request
    repo_name = payload.repository.full_name

    ctx_logger = log_with_context(logger,
                                  delivery_id=job.delivery_id,
                                  repository=repo_name,
                                  pull_number=pr_info.number)

    try:
        head_sha = pr_info.head.sha
        title = pr_info.title
        if not head_sha:
            with log_timing(ctx_logger, "fetch_pull_request"):
                details = await client.get_pull_request(full_name=repo_name, pull_number=pr_info.number)
            head_sha = (details.get("head") or {}).get("sha")
            title = title or details.get("title")
        if not head_sha:
            raise ValueError(f"Pull request #{pr_info.number} has no head commit sha")

        ctx_logger.info(f"Fetching PR files: head={head_sha[:8]}")
        with log_timing(ctx_logger, "fetch_pr_files"):
            files = await client.list_pull_request_files(full_name=repo_name, pull_number=pr_info.number)
    except GitHubAPIError as exc:
        if exc.status_code == 404:
            ctx_logger.error(f"PR or repository not found (404): {exc}")
        elif exc.status_code == 403:
            ctx_logger.error(f"Permission denied (403): {exc}")
        elif exc.status_code == 429:
            ctx_logger.error(f"Rate limit exceeded (429): {exc}")
        else:
            ctx_logger.error(f"GitHub API error ({exc.status_code}): {exc}")
        raise

    serialized_files = _serialize_files(files)
    if not serialized_files:
        ctx_logger.warning(f"No files changed in PR #{pr_info.number}")

    ctx_logger.info(f"PullRequestReviewContext created: PR#{pr_info.number}, files={len(serialized_files)}")
    return PullRequestReviewContext(
        repository=repo_name,
        pull_number=pr_info.number,
        head_sha=head_sha,
        title=title,
        files=serialized_files,
    )
