"""Queue job processor running an agent review of a GitHub pull request."""

from __future__ import annotations

from typing import Callable

from review_agent.agent_client import AgentClient
from review_agent.assistant import AssistantDefinition
from review_agent.config import Settings, SettingsError, get_settings
from review_agent.github_client import GitHubAPIError, GitHubClient
from review_agent.logger import get_logger, log_failure, log_success, log_timing, log_with_context
from review_agent.queue.models import ReviewJob
from review_agent.services.review_context import PullRequestReviewContext, build_review_context
from review_agent.services.review_session import CodeReviewer

logger = get_logger()

GitHubClientFactory = Callable[[Settings, ReviewJob], GitHubClient]
AgentClientFactory = Callable[[Settings], AgentClient]


class ReviewProcessorError(RuntimeError):
    """Raised when review processing fails."""

    def __init__(self, message: str, step: str, original_error: Exception | None = None):
        super().__init__(message)
        self.step = step
        self.original_error = original_error


def _default_github_client(settings: Settings, job: ReviewJob) -> GitHubClient:
    return GitHubClient(
        base_url=settings.normalized_github_api_base_url,
        credentials=settings.require_github_credentials(),
        installation_id=job.payload.installation_id,
    )


def _default_agent_client(settings: Settings) -> AgentClient:
    return AgentClient(settings.require_agent_api_key(), base_url=settings.normalized_agent_api_base_url)


class ReviewProcessor:
    def __init__(
        self,
        *,
        settings: Settings | None = None,
        github_client_factory: GitHubClientFactory = _default_github_client,
        agent_client_factory: AgentClientFactory = _default_agent_client,
    ) -> None:
        self._settings = settings
        self._github_client_factory = github_client_factory
        self._agent_client_factory = agent_client_factory

    async def __call__(self, job: ReviewJob) -> None:
        ctx_logger = log_with_context(logger, delivery_id=job.delivery_id,
                                      repository=job.payload.repository.full_name)
        ctx_logger.info("=== PROCESSOR: Starting review processing ===")

        github_client = None
        agent_client = None
        try:
            try:
                settings = self._settings or get_settings()
                github_client = self._github_client_factory(settings, job)
                agent_client = self._agent_client_factory(settings)
            except (SettingsError, ValueError) as exc:
                log_failure(logger, "Configuration missing", exc, delivery_id=job.delivery_id)
                raise ReviewProcessorError("Configuration incomplete", "load_configuration", exc) from exc

            try:
                with log_timing(ctx_logger, "build_review_context"):
                    context = await build_review_context(github_client, job)
            except GitHubAPIError as exc:
                log_failure(logger, f"Failed to build review context: {exc} (status={exc.status_code})",
                            exc, delivery_id=job.delivery_id)
                raise ReviewProcessorError("Failed to build review context", "build_review_context", exc) from exc
            except (ValueError, TypeError) as exc:
                log_failure(logger, f"Invalid job payload: {exc}", exc, delivery_id=job.delivery_id)
                raise ReviewProcessorError("Invalid job payload", "build_review_context", exc) from exc

            ctx_logger.info(f"Reviewing PR #{context.pull_number} \"{context.title or 'untitled'}\" "
                            f"at {context.head_sha[:8]} ({len(context.files)} file(s))")
            if not context.files:
                ctx_logger.info("No changed files to review")
                return

            reviewer = self._build_reviewer(settings, github_client, agent_client, context)
            try:
                with log_timing(ctx_logger, "agent_review"):
                    await reviewer.review(context.files)
            except Exception as exc:
                log_failure(logger, f"Agent review failed: {exc}", exc,
                            delivery_id=job.delivery_id, repository=context.repository)
                raise ReviewProcessorError("Agent review failed", "agent_review", exc) from exc

            log_success(logger, f"Review processing completed for {context.repository}#{context.pull_number}",
                        delivery_id=job.delivery_id)
        finally:
            if agent_client:
                await agent_client.aclose()
                ctx_logger.debug("Agent client closed")
            if github_client:
                await github_client.aclose()
                ctx_logger.debug("GitHub client closed")

    @staticmethod
    def _build_reviewer(
        settings: Settings,
        github_client: GitHubClient,
        agent_client: AgentClient,
        context: PullRequestReviewContext,
    ) -> CodeReviewer:
        async def get_file_content(path: str) -> str:
            return await github_client.get_file_content(
                full_name=context.repository, path=path, ref=context.head_sha
            )

        async def post_comment(description: str, file_name: str, line: int) -> None:
            await github_client.create_review_comment(
                full_name=context.repository,
                pull_number=context.pull_number,
                commit_id=context.head_sha,
                path=file_name,
                line=line,
                body=description,
            )

        return CodeReviewer(
            agent_client,
            file_content_getter=get_file_content,
            post_comment=post_comment,
            definition=AssistantDefinition(model=settings.agent_model),
            max_attempts=settings.max_attempts,
            poll_interval=settings.poll_interval,
            max_polls=settings.max_polls,
        )
