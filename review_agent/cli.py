"""One-shot pull request review, suitable for CI (GitHub Actions) runs."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
import uuid
from pathlib import Path
from typing import Any, Dict, List, Sequence

from review_agent.logger import configure_logger, get_logger
from review_agent.queue.models import PullRequestInfo, PullRequestPayload, RepositoryInfo, ReviewJob
from review_agent.services.review_processor import ReviewProcessor, ReviewProcessorError


def _load_github_event() -> Dict[str, Any]:
    """Load the GitHub Actions event payload, if running inside Actions."""
    event_path = os.getenv("GITHUB_EVENT_PATH")
    if not event_path or not Path(event_path).exists():
        return {}
    with open(event_path) as f:
        return json.load(f)


def _build_parser(event: Dict[str, Any]) -> argparse.ArgumentParser:
    pull_request = event.get("pull_request") or {}
    parser = argparse.ArgumentParser(prog="review-agent", description="Review a GitHub pull request with an AI agent")
    parser.add_argument(
        "--repository",
        default=os.getenv("GITHUB_REPOSITORY"),
        help="Repository in owner/repo form (default: $GITHUB_REPOSITORY)",
    )
    parser.add_argument(
        "--pull-number",
        type=int,
        default=pull_request.get("number"),
        help="Pull request number (default: taken from $GITHUB_EVENT_PATH)",
    )
    parser.add_argument("--log-level", default=None, help="Console log level (default: $APP_LOG_LEVEL or INFO)")
    return parser


def _build_job(repository: str, pull_number: int, event: Dict[str, Any]) -> ReviewJob:
    installation = event.get("installation") or {}
    return ReviewJob(
        delivery_id=f"cli-{uuid.uuid4()}",
        payload=PullRequestPayload(
            installation_id=installation.get("id"),
            repository=RepositoryInfo(full_name=repository),
            action="manual",
            pull_request=PullRequestInfo(number=pull_number),
        ),
    )


def main(argv: Sequence[str] | None = None) -> int:
    event = _load_github_event()
    args = _build_parser(event).parse_args(argv)
    if args.log_level:
        configure_logger(level=args.log_level, force=True)
    logger = get_logger()

    missing: List[str] = []
    if not args.repository:
        missing.append("--repository")
    if not args.pull_number:
        missing.append("--pull-number")
    if missing:
        logger.error(f"Missing required option(s): {', '.join(missing)}")
        return 2

    job = _build_job(args.repository, args.pull_number, event)
    try:
        asyncio.run(ReviewProcessor()(job))
    except ReviewProcessorError as exc:
        logger.error(f"Review failed during {exc.step}: {exc.original_error or exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
