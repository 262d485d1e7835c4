import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from contentai.editor.exceptions import GenerationFailure
from contentai.generation.decoding import RawText, StructuredEdit, decode_edit_response
from contentai.generation.prompts import QUICK_ACTIONS, excerpt_around, resolve_instruction
from contentai.generation.service import GenerationService


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def test_structured_json_is_decoded():
    decoded = decode_edit_response('{"edited_text": "hello planet"}')
    assert isinstance(decoded, StructuredEdit)
    assert decoded.text == "hello planet"


def test_fenced_json_and_thinking_are_stripped():
    content = '<think>let me see</think>\n```json\n{"edited_text": "tidy"}\n```'
    decoded = decode_edit_response(content)
    assert isinstance(decoded, StructuredEdit)
    assert decoded.text == "tidy"


def test_plain_prose_falls_back_to_raw_text():
    decoded = decode_edit_response("Just the rewritten sentence.")
    assert isinstance(decoded, RawText)
    assert decoded.text == "Just the rewritten sentence."


def test_json_without_the_field_is_raw_text():
    decoded = decode_edit_response('{"answer": "x"}')
    assert isinstance(decoded, RawText)


def test_broken_json_is_raw_text():
    decoded = decode_edit_response('{"edited_text": "unterminated')
    assert isinstance(decoded, RawText)
    assert decoded.text.startswith("{")


def test_content_blocks_are_flattened():
    decoded = decode_edit_response([{"type": "text", "text": "part one, "}, "part two"])
    assert decoded.text == "part one, part two"


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

def test_quick_action_resolves_to_instruction():
    assert resolve_instruction(action="shorten") == QUICK_ACTIONS["shorten"]


def test_prompt_is_used_when_no_action():
    assert resolve_instruction(prompt="  Make it funnier ") == "Make it funnier"


def test_missing_instruction_is_rejected():
    with pytest.raises(ValueError):
        resolve_instruction(prompt="   ")
    with pytest.raises(ValueError):
        resolve_instruction(action="translate")


def test_excerpt_keeps_short_documents_whole():
    assert excerpt_around("short doc", 0, 5, 100) == "short doc"


def test_excerpt_is_centred_on_selection():
    document = "a" * 500 + "TARGET" + "b" * 500
    excerpt = excerpt_around(document, 500, 506, 100)
    assert "TARGET" in excerpt
    assert excerpt.startswith("[...]")
    assert excerpt.endswith("[...]")
    assert len(excerpt.replace("[...]", "").strip()) <= 100


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

def mock_llm(content):
    llm = MagicMock()
    llm.ainvoke = AsyncMock(return_value=AIMessage(content=content))
    return llm


@pytest.mark.asyncio
async def test_generate_edit_builds_prompts():
    llm = mock_llm('{"edited_text": "hello planet"}')
    service = GenerationService(llm=llm)

    text = await service.generate_edit(
        selection="world",
        instruction="Make it cosmic",
        document="hello world",
        title="Greeting",
        start=6,
        end=11,
    )

    assert text == "hello planet"
    messages = llm.ainvoke.await_args.args[0]
    assert isinstance(messages[0], SystemMessage)
    assert "hello world" in messages[0].content
    assert '"Greeting"' in messages[0].content
    assert isinstance(messages[1], HumanMessage)
    assert "Make it cosmic" in messages[1].content
    assert "world" in messages[1].content


@pytest.mark.asyncio
async def test_provider_error_becomes_generation_failure():
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=RuntimeError("rate limited"))
    service = GenerationService(llm=llm)

    with pytest.raises(GenerationFailure) as exc:
        await service.generate("hi")
    assert "rate limited" in str(exc.value)


@pytest.mark.asyncio
async def test_timeout_becomes_generation_failure():
    async def slow(messages):
        await asyncio.sleep(1)

    llm = MagicMock()
    llm.ainvoke = slow
    service = GenerationService(llm=llm, timeout=0.01)

    with pytest.raises(GenerationFailure):
        await service.generate("hi")


@pytest.mark.asyncio
async def test_empty_answer_is_a_failure():
    service = GenerationService(llm=mock_llm("<think>hmm</think>"))
    with pytest.raises(GenerationFailure):
        await service.generate("hi")


@pytest.mark.asyncio
async def test_history_roles_are_mapped():
    llm = mock_llm("ok")
    service = GenerationService(llm=llm)

    await service.generate("next", [
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "first"},
        {"role": "assistant", "content": "reply"},
    ])

    kinds = [type(m) for m in llm.ainvoke.await_args.args[0]]
    assert kinds == [SystemMessage, HumanMessage, AIMessage, HumanMessage]
