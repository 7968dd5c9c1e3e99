"""Per-review memo of file bodies backing the "get more context" tool."""

from __future__ import annotations

from typing import Awaitable, Callable, Dict

from review_agent.logger import get_logger

logger = get_logger()

FileContentGetter = Callable[[str], Awaitable[str]]

CONTEXT_MARGIN = 20


class ContentUnavailableError(RuntimeError):
    """Raised when the file content source cannot provide a file."""


class FileContextCache:
    """Fetches each path at most once and serves line windows from the stored text.

    Line numbers are 1-based as seen by the agent. The window holds ``margin``
    lines on each side of the requested range, clamped to the file.
    """

    def __init__(self, getter: FileContentGetter, *, margin: int = CONTEXT_MARGIN) -> None:
        self._getter = getter
        self._margin = margin
        self._contents: Dict[str, str] = {}

    def __contains__(self, path: str) -> bool:
        return path in self._contents

    async def _content(self, path: str) -> str:
        if path in self._contents:
            logger.debug(f"File cache hit: {path}")
            return self._contents[path]
        try:
            content = await self._getter(path)
        except Exception as exc:
            raise ContentUnavailableError(f"Failed to retrieve file content: {exc}") from exc
        self._contents[path] = content
        logger.debug(f"Cached {path} ({len(content)} characters)")
        return content

    async def fetch(self, path: str, start_line: int, end_line: int) -> str:
        lines = (await self._content(path)).splitlines()
        # 1-based line numbers to 0-based slice indices
        start = max(start_line - 1 - self._margin, 0)
        end = min(end_line + self._margin, len(lines))
        snippet = "\n".join(lines[start:end])
        return f"{path}\n'''\n{snippet}\n'''\n"
