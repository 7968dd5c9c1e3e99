"""Shared data structures for review sessions."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping, Tuple


@dataclass(frozen=True, slots=True)
class ChangedFile:
    filename: str
    status: str
    additions: int
    deletions: int
    changes: int
    patch: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ChangedFile":
        # GitHub API may return "filename" or "path" depending on endpoint
        filename = data.get("filename") or data.get("path")
        if not filename:
            raise ValueError(f"Changed file entry is missing a filename: {dict(data)!r}")
        return cls(
            filename=filename,
            status=data.get("status", "") or "",
            additions=int(data.get("additions", 0) or 0),
            deletions=int(data.get("deletions", 0) or 0),
            changes=int(data.get("changes", 0) or 0),
            patch=data.get("patch"),
        )


@dataclass(frozen=True, slots=True)
class ReviewRequest:
    files: Tuple[ChangedFile, ...]

    @classmethod
    def from_changed_files(cls, changed_files: Iterable[ChangedFile | Mapping[str, Any]]) -> "ReviewRequest":
        files = tuple(
            entry if isinstance(entry, ChangedFile) else ChangedFile.from_mapping(entry)
            for entry in changed_files
        )
        return cls(files=files)

    def to_message(self) -> str:
        """Serialize the request as the JSON array posted to the conversation."""
        return json.dumps([asdict(file) for file in self.files])


@dataclass(frozen=True, slots=True)
class Conversation:
    thread_id: str
    assistant_id: str


@dataclass(frozen=True, slots=True)
class TranscriptEntry:
    role: str
    text: str
