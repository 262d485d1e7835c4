"""Decoding of free-form model output into a tagged variant.

The model is asked for ``{"edited_text": ...}`` but may answer with plain
prose, fenced JSON, or JSON missing the field. Strict schema validation is
tried first; anything else becomes a :class:`RawText` variant.
"""

import json
import re
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

# Regex to strip reasoning-model thinking tokens
THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)
FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n(.*?)\n?```\s*$", re.DOTALL)


class StructuredEdit(BaseModel):
    kind: Literal["structured"] = "structured"
    edited_text: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="ignore")

    @property
    def text(self) -> str:
        return self.edited_text.strip()


class RawText(BaseModel):
    kind: Literal["raw"] = "raw"
    raw: str

    @property
    def text(self) -> str:
        return self.raw.strip()


DecodedResponse = Union[StructuredEdit, RawText]


def strip_thinking(text: str) -> str:
    """Remove <think>...</think> blocks from reasoning-model output."""
    return THINK_RE.sub("", text).strip()


def _unfence(text: str) -> str:
    match = FENCE_RE.match(text.strip())
    return match.group(1) if match else text


def decode_edit_response(content: object) -> DecodedResponse:
    text = content if isinstance(content, str) else _flatten(content)
    text = strip_thinking(text)
    candidate = _unfence(text).strip()

    if candidate.startswith("{"):
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            try:
                return StructuredEdit.model_validate(data)
            except ValidationError:
                return RawText(raw=candidate)

    # Fenced prose is still prose
    return RawText(raw=candidate)


def _flatten(content: object) -> str:
    """LangChain content may be a list of text/content blocks."""
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return str(content)
