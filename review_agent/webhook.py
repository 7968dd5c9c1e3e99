"""GitHub pull request webhook ingestion."""

from __future__ import annotations

import json
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError

from review_agent.config import Settings, SettingsError
from review_agent.dependencies import settings_dependency
from review_agent.logger import get_logger, log_failure, log_success, log_timing, log_with_context
from review_agent.queue import enqueue_review_job
from review_agent.queue.models import (
    PullRequestEndpoint,
    PullRequestInfo,
    PullRequestPayload,
    RepositoryInfo,
    ReviewJob,
)
from review_agent.utils.security import verify_github_signature

router = APIRouter()

logger = get_logger()

DELIVERY_TTL_SECONDS = 60 * 60  # retain delivery IDs for one hour
_delivery_cache: Dict[str, float] = {}
_supported_pr_actions = {"opened", "reopened", "synchronize", "ready_for_review"}


class IgnoreEventError(RuntimeError):
    """Raised when a webhook event should be acknowledged but not processed."""


def _prune_delivery_cache(now: float) -> None:
    expiry_threshold = now - DELIVERY_TTL_SECONDS
    expired = [key for key, timestamp in _delivery_cache.items() if timestamp < expiry_threshold]
    for key in expired:
        _delivery_cache.pop(key, None)


def _mark_delivery(delivery_id: str, now: float) -> None:
    _delivery_cache[delivery_id] = now


def _is_duplicate(delivery_id: str, now: float) -> bool:
    _prune_delivery_cache(now)
    return delivery_id in _delivery_cache


def reset_delivery_cache() -> None:
    """Forget seen delivery IDs (primarily for tests)."""
    _delivery_cache.clear()


def _build_pull_request_payload(event: str, payload: Dict[str, Any]) -> PullRequestPayload:
    if event != "pull_request":
        raise IgnoreEventError(f"Event '{event}' is not handled.")

    action = payload.get("action")
    if action not in _supported_pr_actions:
        raise IgnoreEventError(f"Pull request action '{action}' not actionable.")

    installation = payload.get("installation") or {}
    repository = payload.get("repository") or {}
    pull_request = payload.get("pull_request") or {}

    if not repository.get("full_name"):
        raise ValueError("Pull request event missing repository metadata.")
    if not pull_request.get("number"):
        raise ValueError("Pull request payload missing number.")
    if pull_request.get("draft"):
        raise IgnoreEventError("Draft pull requests are not reviewed.")

    head = pull_request.get("head") or {}
    base = pull_request.get("base") or {}
    logger.debug(f"Building PullRequestPayload: repo={repository.get('full_name')}, "
                 f"PR#{pull_request.get('number')}, action={action}, head_sha={head.get('sha')}")

    return PullRequestPayload(
        installation_id=installation.get("id"),
        repository=RepositoryInfo(
            id=repository.get("id"),
            full_name=repository.get("full_name"),
            owner=(repository.get("owner") or {}).get("login"),
            name=repository.get("name"),
        ),
        action=action,
        pull_request=PullRequestInfo(
            number=pull_request.get("number"),
            title=pull_request.get("title"),
            url=pull_request.get("html_url"),
            head=PullRequestEndpoint(ref=head.get("ref"), sha=head.get("sha")),
            base=PullRequestEndpoint(ref=base.get("ref"), sha=base.get("sha")),
        ),
        sender=payload.get("sender") or {},
    )


@router.post("/webhook", summary="Receive GitHub pull request webhooks")
async def receive_webhook(
    request: Request,
    settings: Settings = Depends(settings_dependency),
) -> Dict[str, str]:
    """Verify webhook signatures, dedupe deliveries, and enqueue review jobs."""

    start_time = time.monotonic()
    delivery_id = request.headers.get("X-GitHub-Delivery")
    event = request.headers.get("X-GitHub-Event")

    try:
        secret = settings.require_webhook_secret()
    except SettingsError as exc:
        log_failure(logger, "Configuration incomplete", exc, delivery_id=delivery_id, event_type=event)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Configuration error: {exc}"
        ) from exc

    if not delivery_id:
        log_failure(logger, "Missing X-GitHub-Delivery header", event_type=event)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing X-GitHub-Delivery header")
    if not event:
        log_failure(logger, "Missing X-GitHub-Event header", delivery_id=delivery_id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing X-GitHub-Event header")

    ctx_logger = log_with_context(logger, delivery_id=delivery_id, event_type=event)
    ctx_logger.info(f"Processing {event} event")

    raw_body = await request.body()
    if not verify_github_signature(secret, raw_body, request.headers.get("X-Hub-Signature-256")):
        log_failure(logger, "Webhook signature verification failed", delivery_id=delivery_id, event_type=event)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except json.JSONDecodeError as exc:
        log_failure(logger, "Invalid JSON payload", exc, delivery_id=delivery_id, event_type=event)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload") from exc

    now = time.time()
    if _is_duplicate(delivery_id, now):
        ctx_logger.info("Duplicate delivery ignored")
        return {"status": "ignored", "reason": "duplicate"}

    try:
        job_payload = _build_pull_request_payload(event, payload)
        job = ReviewJob(delivery_id=delivery_id, payload=job_payload)
    except IgnoreEventError as exc:
        ctx_logger.debug(f"Webhook ignored: {exc}")
        return {"status": "ignored", "reason": str(exc)}
    except (ValueError, ValidationError) as exc:
        log_failure(logger, f"Invalid payload structure: {exc}", exc, delivery_id=delivery_id, event_type=event)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    repo_name = job_payload.repository.full_name
    ctx_logger = log_with_context(logger, delivery_id=delivery_id, event_type=event, repository=repo_name)
    with log_timing(ctx_logger, "enqueue_review_job"):
        await enqueue_review_job(job)

    _mark_delivery(delivery_id, now)
    processing_time = time.monotonic() - start_time
    log_success(logger, f"Webhook accepted PR #{job_payload.pull_request.number} for {repo_name} "
                        f"(processed in {processing_time:.3f}s)",
                delivery_id=delivery_id, event_type=event, repository=repo_name)
    return {"status": "accepted"}
