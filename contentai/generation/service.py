import asyncio
import logging
from typing import Dict, List, Optional, Protocol, Sequence

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from contentai.config import settings
from contentai.editor.exceptions import GenerationFailure
from contentai.generation.decoding import decode_edit_response
from contentai.generation.prompts import (
    DOCUMENT_KIND_LABELS,
    EDITOR_SYSTEM_PROMPT,
    EDITOR_USER_PROMPT,
    INSERTION_PLACEHOLDER,
    excerpt_around,
)
from contentai.llm.factory import get_editor_llm

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def generate(self, prompt: str, history: Sequence[Dict[str, str]] = ()) -> str: ...

    async def generate_edit(
        self,
        *,
        selection: str,
        instruction: str,
        document: str,
        title: str = "",
        document_kind: str = "canvas",
        start: int = 0,
        end: int = 0,
    ) -> str: ...


class GenerationService:
    """Request/response access to the chat-completion model.

    Every failure mode (provider misconfiguration, transport error, timeout,
    empty answer) surfaces as :class:`GenerationFailure`.
    """

    def __init__(self, llm: Optional[BaseChatModel] = None, timeout: Optional[float] = None):
        self._llm = llm
        self.timeout = timeout if timeout is not None else settings.GENERATION_TIMEOUT_SECONDS

    @property
    def llm(self) -> BaseChatModel:
        if self._llm is None:
            self._llm = get_editor_llm()
        return self._llm

    def _build_messages(self, prompt: str, history: Sequence[Dict[str, str]]) -> List[BaseMessage]:
        messages: List[BaseMessage] = []
        for msg in history:
            role = msg.get("role")
            if role == "system":
                messages.append(SystemMessage(content=msg["content"]))
            elif role == "user":
                messages.append(HumanMessage(content=msg["content"]))
            elif role == "assistant":
                messages.append(AIMessage(content=msg["content"]))
        messages.append(HumanMessage(content=prompt))
        return messages

    async def _invoke(self, messages: List[BaseMessage]) -> object:
        try:
            response = await asyncio.wait_for(self.llm.ainvoke(messages), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise GenerationFailure(f"no answer within {self.timeout:.0f}s", e) from e
        except Exception as e:
            logger.error(f"LLM call failed: {e}", exc_info=True)
            raise GenerationFailure(str(e) or type(e).__name__, e) from e
        return response.content

    async def generate(self, prompt: str, history: Sequence[Dict[str, str]] = ()) -> str:
        content = await self._invoke(self._build_messages(prompt, history))
        text = decode_edit_response(content).text
        if not text:
            raise GenerationFailure("empty response")
        return text

    async def generate_edit(
        self,
        *,
        selection: str,
        instruction: str,
        document: str,
        title: str = "",
        document_kind: str = "canvas",
        start: int = 0,
        end: int = 0,
    ) -> str:
        system_prompt = EDITOR_SYSTEM_PROMPT.format(
            document_kind=DOCUMENT_KIND_LABELS.get(document_kind, "document"),
            title=title or "Untitled",
            document=excerpt_around(document, start, end, settings.SUGGESTION_CONTEXT_CHARS) or "(empty)",
        )
        user_prompt = EDITOR_USER_PROMPT.format(
            instruction=instruction,
            selection=selection or INSERTION_PLACEHOLDER,
        )
        text = await self.generate(user_prompt, [{"role": "system", "content": system_prompt}])
        logger.info(f"Generated {len(text)} chars for a {len(selection)}-char selection")
        return text
