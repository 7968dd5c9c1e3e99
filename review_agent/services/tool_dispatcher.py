"""Turns agent-issued tool calls into side effects and tool-result strings."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict

from review_agent.assistant import FETCH_CONTEXT_TOOL, MARK_DONE_TOOL, POST_COMMENT_TOOL
from review_agent.logger import get_logger, log_with_context
from review_agent.models.agent import RequiredToolCall
from review_agent.services.file_cache import FileContextCache

logger = get_logger()

ReviewCommentPoster = Callable[[str, str, int], Awaitable[Any]]

COMMENT_PUBLISHED = "The note has been published."


class ToolArgumentsError(ValueError):
    """Raised when a tool call carries malformed arguments."""


@dataclass(frozen=True, slots=True)
class FetchContextCall:
    call_id: str
    path: str
    start_line: int
    end_line: int


@dataclass(frozen=True, slots=True)
class PostCommentCall:
    call_id: str
    file_name: str
    line_number: int
    description: str


@dataclass(frozen=True, slots=True)
class MarkDoneCall:
    call_id: str


@dataclass(frozen=True, slots=True)
class UnknownToolCall:
    call_id: str
    name: str


ToolCall = FetchContextCall | PostCommentCall | MarkDoneCall | UnknownToolCall


@dataclass(frozen=True, slots=True)
class ToolOutcome:
    output: str | None
    is_terminal: bool = False


def _load_arguments(raw_arguments: str) -> Dict[str, Any]:
    if not raw_arguments or not raw_arguments.strip():
        return {}
    try:
        arguments = json.loads(raw_arguments)
    except json.JSONDecodeError as exc:
        raise ToolArgumentsError(f"arguments are not valid JSON: {exc}") from exc
    if not isinstance(arguments, dict):
        raise ToolArgumentsError("arguments must be a JSON object")
    return arguments


def _required(arguments: Dict[str, Any], key: str) -> Any:
    if arguments.get(key) is None:
        raise ToolArgumentsError(f"missing required argument '{key}'")
    return arguments[key]


def _required_int(arguments: Dict[str, Any], key: str) -> int:
    value = _required(arguments, key)
    if isinstance(value, bool):
        raise ToolArgumentsError(f"argument '{key}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ToolArgumentsError(f"argument '{key}' must be an integer") from exc


def parse_tool_call(raw: RequiredToolCall) -> ToolCall:
    """Map a raw service tool call onto one of the known call kinds."""

    name = raw.function.name
    if name == MARK_DONE_TOOL:
        return MarkDoneCall(call_id=raw.id)
    if name == FETCH_CONTEXT_TOOL:
        arguments = _load_arguments(raw.function.arguments)
        return FetchContextCall(
            call_id=raw.id,
            path=str(_required(arguments, "pathToFile")),
            start_line=_required_int(arguments, "startLineNumber"),
            end_line=_required_int(arguments, "endLineNumber"),
        )
    if name == POST_COMMENT_TOOL:
        arguments = _load_arguments(raw.function.arguments)
        return PostCommentCall(
            call_id=raw.id,
            file_name=str(_required(arguments, "fileName")),
            line_number=_required_int(arguments, "lineNumber"),
            description=str(_required(arguments, "foundIssueDescription")),
        )
    return UnknownToolCall(call_id=raw.id, name=name)


class ToolDispatcher:
    """Executes tool calls one at a time; a failing call never aborts the batch."""

    def __init__(self, cache: FileContextCache, post_comment: ReviewCommentPoster) -> None:
        self._cache = cache
        self._post_comment = post_comment

    async def dispatch(self, raw: RequiredToolCall) -> ToolOutcome:
        name = raw.function.name
        ctx_logger = log_with_context(logger, tool_call_id=raw.id, tool=name)
        try:
            call = parse_tool_call(raw)
            if isinstance(call, MarkDoneCall):
                ctx_logger.info("Agent marked the review as done")
                return ToolOutcome(output=None, is_terminal=True)
            if isinstance(call, FetchContextCall):
                ctx_logger.debug(f"Fetching context {call.path}:{call.start_line}-{call.end_line}")
                return ToolOutcome(await self._cache.fetch(call.path, call.start_line, call.end_line))
            if isinstance(call, PostCommentCall):
                return ToolOutcome(await self._publish_comment(call))
            if isinstance(call, UnknownToolCall):
                ctx_logger.warning(f"Unknown tool requested: {call.name}")
                return ToolOutcome(f"Unknown tool requested: {call.name}")
            raise TypeError(f"Unsupported tool call type: {type(call)!r}")
        except Exception as exc:
            ctx_logger.warning(f"Tool call failed: {exc}")
            return ToolOutcome(f"Error processing {name}: {exc}")

    async def _publish_comment(self, call: PostCommentCall) -> str:
        try:
            await self._post_comment(call.description, call.file_name, call.line_number)
        except Exception as exc:
            log_with_context(logger, tool_call_id=call.call_id).warning(
                f"Failed to publish comment on {call.file_name}:{call.line_number}: {exc}"
            )
            return f"There is an error in the '{POST_COMMENT_TOOL}' usage! Error message:\n{exc}"
        logger.info(f"Published comment on {call.file_name}:{call.line_number}")
        return COMMENT_PUBLISHED
