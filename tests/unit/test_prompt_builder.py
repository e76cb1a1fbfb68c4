"""
Test suite for prompt templates.
"""

import pytest

from docvault.core.errors import InvalidInputError
from docvault.rag.prompt_builder import (
    build_conversational_prompt,
    build_prompt,
    build_simple_prompt,
    build_summarization_prompt,
    estimate_tokens,
    truncate_context,
)


class TestBuildPrompt:
    """Grounded RAG prompt."""

    def test_fragments_should_be_numbered_in_input_order(self) -> None:
        prompt = build_prompt("What grew?", ["Sales grew.", "Costs fell.", "Staff doubled."])

        assert "[Fragment 1] Sales grew." in prompt
        assert "[Fragment 2] Costs fell." in prompt
        assert "[Fragment 3] Staff doubled." in prompt
        assert prompt.index("[Fragment 1]") < prompt.index("[Fragment 2]") < prompt.index("[Fragment 3]")

    def test_question_should_appear_verbatim_after_context(self) -> None:
        question = "  What grew in Q1?\n"
        prompt = build_prompt(question, ["Sales grew 20% in Q1."])

        assert question in prompt
        assert prompt.index("[Fragment 1]") < prompt.index(question)

    def test_layout_should_be_fragments_then_instructions_then_question(self) -> None:
        prompt = build_prompt("What grew in Q1?", ["Sales grew 20% in Q1."])

        fragments = prompt.index("[Fragment 1] Sales grew 20% in Q1.")
        instructions = prompt.index("IMPORTANT INSTRUCTIONS")
        question = prompt.index("What grew in Q1?")
        assert fragments < instructions < question

    def test_prompt_should_carry_grounding_instructions(self) -> None:
        prompt = build_prompt("Q?", ["Some context."]).lower()

        assert "only" in prompt
        assert "not have enough information" in prompt
        assert "fragment number" in prompt

    def test_blank_chunks_should_be_skipped(self) -> None:
        prompt = build_prompt("Q?", ["  ", "Real content.", ""])

        assert "[Fragment 1] Real content." in prompt
        assert "[Fragment 2]" not in prompt

    @pytest.mark.parametrize("question", ["", "   ", None])
    def test_empty_question_should_raise(self, question) -> None:
        with pytest.raises(InvalidInputError):
            build_prompt(question, ["context"])

    def test_no_chunks_should_raise(self) -> None:
        with pytest.raises(InvalidInputError, match="At least one"):
            build_prompt("Q?", [])

    def test_only_blank_chunks_should_raise(self) -> None:
        with pytest.raises(InvalidInputError, match="No valid"):
            build_prompt("Q?", ["", "  \n "])


class TestOtherTemplates:
    """Simple, conversational and summarization prompts."""

    def test_simple_prompt_should_join_context(self) -> None:
        prompt = build_simple_prompt(" Q? ", ["one", "two"])
        assert prompt.startswith("Context:\none\n\ntwo")
        assert "Question: Q?" in prompt

    def test_conversational_prompt_should_include_history(self) -> None:
        prompt = build_conversational_prompt(
            "And costs?",
            ["Costs fell 5%."],
            [{"role": "user", "content": "What grew?"}, {"role": "assistant", "content": "Sales."}],
        )
        assert "User: What grew?" in prompt
        assert "Assistant: Sales." in prompt
        assert "[Fragment 1] Costs fell 5%." in prompt

    def test_conversational_prompt_without_history(self) -> None:
        prompt = build_conversational_prompt("Q?", ["ctx"])
        assert "CONVERSATION HISTORY" not in prompt

    def test_summarization_prompt_should_name_topic(self) -> None:
        prompt = build_summarization_prompt("quarterly results", ["Sales grew.", "Costs fell."])
        assert "quarterly results" in prompt
        assert "Sales grew.\n\nCosts fell." in prompt

    def test_summarization_prompt_should_require_topic(self) -> None:
        with pytest.raises(InvalidInputError):
            build_summarization_prompt("", ["x"])


class TestTokenBudget:
    """Token estimation and context truncation."""

    def test_estimate_tokens_should_round_up(self) -> None:
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    def test_truncate_should_keep_chunks_that_fit(self) -> None:
        chunks = ["a" * 40, "b" * 40, "c" * 40]  # 10 tokens each
        assert truncate_context(chunks, 20) == chunks[:2]

    def test_truncate_should_cut_partial_chunk_when_room_remains(self) -> None:
        chunks = ["a" * 40, "b" * 4000]
        result = truncate_context(chunks, 100)

        assert result[0] == chunks[0]
        assert result[1] == "b" * 360 + "..."

    def test_truncate_should_drop_partial_chunk_when_little_room(self) -> None:
        chunks = ["a" * 40, "b" * 4000]
        assert truncate_context(chunks, 40) == chunks[:1]

    def test_truncate_should_reject_non_positive_budget(self) -> None:
        with pytest.raises(InvalidInputError):
            truncate_context(["x"], 0)
