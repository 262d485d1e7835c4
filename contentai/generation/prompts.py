EDITOR_SYSTEM_PROMPT = """You are a senior content editor helping a creator polish a {document_kind} titled "{title}".

Your Goal: Rewrite ONLY the passage the user selects, following the requested action, so that it reads naturally in place inside the full document below.

**Rules:**
- Keep the author's voice, language and formatting conventions (markdown, line breaks, emoji use).
- Do not rewrite, summarize or repeat any text outside the selected passage.
- Do not add commentary, explanations, headings or quotation marks around your answer.
- If the passage is an empty insertion point, write new text that fits at that position.

**Output Format:**
Return JSON matching this schema EXACTLY:
{{"edited_text": "<the rewritten passage>"}}

**Full document (for context only):**
\"\"\"
{document}
\"\"\"
"""

EDITOR_USER_PROMPT = """REQUESTED ACTION: {instruction}

SELECTED PASSAGE TO EDIT:
\"\"\"
{selection}
\"\"\"

Return ONLY the edited passage, ready to replace the text above."""

INSERTION_PLACEHOLDER = "(empty insertion point: write new text for this position)"

# Quick actions offered next to a selection
QUICK_ACTIONS = {
    "improve": "Improve this passage, keeping the same meaning but with more clarity and flow",
    "expand": "Expand this passage with more detail",
    "shorten": "Summarize this passage, keeping only what is essential",
    "rewrite": "Rewrite this passage in a different way",
}

DOCUMENT_KIND_LABELS = {
    "canvas": "note",
    "youtube_script": "YouTube video script",
}


def resolve_instruction(prompt: str | None = None, action: str | None = None) -> str:
    """Turn a quick action id or a free-form prompt into the instruction sent to the model."""
    if action:
        if action not in QUICK_ACTIONS:
            raise ValueError(f"Unknown quick action: {action!r}. Valid: {tuple(QUICK_ACTIONS)}")
        return QUICK_ACTIONS[action]
    if prompt and prompt.strip():
        return prompt.strip()
    raise ValueError("Either a prompt or a quick action is required")


def excerpt_around(document: str, start: int, end: int, max_chars: int) -> str:
    """Trim ``document`` to at most ``max_chars``, centred on the [start, end) span."""
    if len(document) <= max_chars:
        return document
    span = end - start
    room = max(max_chars - span, 0)
    left = max(start - room // 2, 0)
    right = min(left + span + room, len(document))
    left = max(right - max_chars, 0)
    prefix = "[...]\n" if left > 0 else ""
    suffix = "\n[...]" if right < len(document) else ""
    return f"{prefix}{document[left:right]}{suffix}"
