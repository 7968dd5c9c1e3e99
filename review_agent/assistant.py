"""Reviewer assistant definition: instructions and the tool schema it may call."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

FETCH_CONTEXT_TOOL = "getFileContent"
POST_COMMENT_TOOL = "addReviewCommentToFileLine"
MARK_DONE_TOOL = "codeReviewDone"

ASSISTANT_NAME = "AI code-reviewer"

INSTRUCTIONS = (
    "You are the smartest AI responsible for reviewing code in our company's GitHub PRs.\n"
    "Review the user's changes for logical errors and typos.\n"
    f"- Use the '{POST_COMMENT_TOOL}' tool to add a note to a code snippet containing a mistake. "
    "Pay extra attention to line numbers.\n"
    "Avoid repeating the same issue multiple times! Instead, look for other serious mistakes.\n"
    "And a most important point - comment only if you are 100% sure! Omit possible compilation errors.\n"
    f"- Use '{FETCH_CONTEXT_TOOL}' if you need more context to verify the provided changes!\n"
    f"- Call '{MARK_DONE_TOOL}' once the review is finished.\n"
    "Warning! Lines in any file are calculated from 1. "
    "You should complete your work and provide results to the user only via functions!"
)

TOOLS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": FETCH_CONTEXT_TOOL,
            "description": "Retrieves the file content to better understand the provided changes",
            "parameters": {
                "type": "object",
                "properties": {
                    "pathToFile": {
                        "type": "string",
                        "description": "The fully qualified path to the file.",
                    },
                    "startLineNumber": {
                        "type": "integer",
                        "description": "The starting line number of the code segment of interest.",
                    },
                    "endLineNumber": {
                        "type": "integer",
                        "description": "The ending line number of the code segment of interest.",
                    },
                },
                "required": ["pathToFile", "startLineNumber", "endLineNumber"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": POST_COMMENT_TOOL,
            "description": "Adds an AI-generated review comment to the specified line in a file.",
            "parameters": {
                "type": "object",
                "properties": {
                    "fileName": {
                        "type": "string",
                        "description": "The relative path to the file.",
                    },
                    "lineNumber": {
                        "type": "integer",
                        "description": "The line number in the file where the issue was found.",
                    },
                    "foundIssueDescription": {
                        "type": "string",
                        "description": "Description of the issue found.",
                    },
                },
                "required": ["fileName", "lineNumber", "foundIssueDescription"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": MARK_DONE_TOOL,
            "description": "Marks the code review as completed.",
            "parameters": {"type": "object", "properties": {}},
        },
    },
]


@dataclass(frozen=True)
class AssistantDefinition:
    model: str
    name: str = ASSISTANT_NAME
    instructions: str = INSTRUCTIONS
    tools: List[Dict[str, Any]] = field(default_factory=lambda: list(TOOLS))
