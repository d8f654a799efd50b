"""Tests for unit execution, retries and concurrent fan-out."""

from unittest.mock import AsyncMock, patch

import pytest

from conftest import FakeCompletionClient, sample_output
from lessongen.exceptions import TransportError, UnknownUnitTypeError, ValidationError
from lessongen.generators.unit_executor import UnitExecutor
from lessongen.models.lesson import CompiledUnit, LessonContext, LessonPlanUnit
from lessongen.models.units import (
    ExplanationOutput,
    FlashcardOutput,
    TranslationOutput,
    UnitType,
)
from lessongen.utils.debug_recorder import DebugSession

@pytest.fixture
def context():
    return LessonContext(
        user_level="beginner",
        target_language="Spanish",
        native_language="English",
    )


def flashcard_plan(instructions="Greeting words"):
    return LessonPlanUnit(type=UnitType.FLASHCARD, instructions=instructions)


class TestBuildUnitPrompt:
    """Prompt rendering for a unit."""

    def test_renders_instructions_and_context(self, fake_client, context):
        prompt = UnitExecutor(fake_client).build_unit_prompt(flashcard_plan(), context)

        assert "Greeting words" in prompt
        assert "beginner" in prompt
        assert "Spanish" in prompt
        assert "{{" not in prompt

    def test_avoid_context_prepended(self, fake_client, context):
        """Test that avoid-context comes first, separated by a blank line."""
        prompt = UnitExecutor(fake_client).build_unit_prompt(
            flashcard_plan(), context, avoid_context="IMPORTANT: avoid hola"
        )
        assert prompt.startswith("IMPORTANT: avoid hola\n\n")

    def test_lesson_plan_context_included(self, fake_client):
        context = LessonContext(
            user_level="beginner",
            target_language="Spanish",
            native_language="English",
            lesson_plan_context="<lesson_plan></lesson_plan>",
        )
        prompt = UnitExecutor(fake_client).build_unit_prompt(flashcard_plan(), context)
        assert prompt.startswith("<lesson_plan></lesson_plan>")


class TestExecuteUnit:
    """Single-unit execution and the retry policy."""

    @pytest.mark.anyio
    async def test_structured_unit(self, fake_client, context):
        unit = await UnitExecutor(fake_client).execute_unit(flashcard_plan(), context)

        assert isinstance(unit, CompiledUnit)
        assert unit.type is UnitType.FLASHCARD
        assert isinstance(unit.output, FlashcardOutput)
        assert unit.plan == flashcard_plan()
        assert fake_client.prompts_for(FlashcardOutput)

    @pytest.mark.anyio
    async def test_explanation_uses_free_text(self, context):
        """Test that explanation units wrap the free-text answer."""
        client = FakeCompletionClient(free_text="## Ser\n\nIdentity.")
        plan = LessonPlanUnit(type=UnitType.EXPLANATION, instructions="Explain ser")

        unit = await UnitExecutor(client).execute_unit(plan, context)

        assert unit.output == ExplanationOutput(explanation="## Ser\n\nIdentity.")
        assert client.structured_calls == []
        assert len(client.free_text_calls) == 1

    @pytest.mark.anyio
    @patch("lessongen.generators.unit_executor.asyncio.sleep", new_callable=AsyncMock)
    async def test_retry_then_success(self, mock_sleep, context):
        """Test that failures are retried until a call succeeds."""
        outcomes = [TransportError("timeout"), ValidationError("bad json"), sample_output(UnitType.FLASHCARD)]
        client = FakeCompletionClient(responses={FlashcardOutput: lambda prompt: outcomes.pop(0)})

        unit = await UnitExecutor(client, max_attempts=3, retry_delay=0.5).execute_unit(
            flashcard_plan(), context
        )

        assert unit.output.theme == "Greetings"
        assert len(client.structured_calls) == 3
        assert mock_sleep.await_count == 2

    @pytest.mark.anyio
    @patch("lessongen.generators.unit_executor.asyncio.sleep", new_callable=AsyncMock)
    async def test_retry_exhaustion_reraises_last_error(self, mock_sleep, context):
        """Test three attempts, two delays and the final error re-raised unchanged."""
        errors = [TransportError("first"), TransportError("second"), TransportError("third")]
        client = FakeCompletionClient(responses={FlashcardOutput: lambda prompt: errors.pop(0)})

        with pytest.raises(TransportError) as exc_info:
            await UnitExecutor(client, max_attempts=3, retry_delay=0.5).execute_unit(
                flashcard_plan(), context
            )

        assert str(exc_info.value) == "third"
        assert len(client.structured_calls) == 3
        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(0.5)

    @pytest.mark.anyio
    async def test_unknown_type_not_retried(self, fake_client, context):
        """Test that an unregistered type fails before any completion call."""
        plan = LessonPlanUnit.model_construct(type="story", instructions="Tell a story")

        with pytest.raises(UnknownUnitTypeError) as exc_info:
            await UnitExecutor(fake_client).execute_unit(plan, context)

        assert exc_info.value.unit_type == "story"
        assert fake_client.structured_calls == []
        assert fake_client.free_text_calls == []

    def test_invalid_max_attempts(self, fake_client):
        with pytest.raises(ValueError):
            UnitExecutor(fake_client, max_attempts=0)


class TestRedoUnit:
    """Regeneration with avoid-context."""

    def test_flashcard_avoid_context(self, fake_client):
        previous = CompiledUnit(
            type=UnitType.FLASHCARD,
            plan=flashcard_plan(),
            output=sample_output(UnitType.FLASHCARD),
        )
        text = UnitExecutor(fake_client).build_avoid_context(previous)

        assert "DO NOT use any of these terms" in text
        assert "hola" in text
        assert "adiós" in text

    @pytest.mark.anyio
    async def test_redo_prompt_starts_with_avoid_context(self, fake_client, context):
        previous = CompiledUnit(
            type=UnitType.FLASHCARD,
            plan=flashcard_plan(),
            output=sample_output(UnitType.FLASHCARD),
        )

        unit = await UnitExecutor(fake_client).redo_unit(previous.plan, previous, context)

        prompt = fake_client.prompts_for(FlashcardOutput)[-1]
        assert prompt.startswith("IMPORTANT: Generate completely different flashcards.")
        assert unit.type is UnitType.FLASHCARD


class TestExecuteUnits:
    """Concurrent fan-out over a section's plans."""

    @pytest.mark.anyio
    async def test_results_in_plan_order_under_jitter(self, context):
        """Test that completion order does not affect result order."""
        client = FakeCompletionClient(jitter=0.02)
        types = [
            UnitType.WORD_ORDER,
            UnitType.FLASHCARD,
            UnitType.TRANSLATION,
            UnitType.CONVERSATION,
            UnitType.FILL_IN_BLANKS,
            UnitType.WORD_MATCH,
        ]
        plans = [LessonPlanUnit(type=t, instructions=f"unit {i}") for i, t in enumerate(types)]

        units = await UnitExecutor(client).execute_units(plans, context, section_index=0)

        assert [u.type for u in units] == types
        assert [u.plan.instructions for u in units] == [f"unit {i}" for i in range(len(types))]

    @pytest.mark.anyio
    async def test_first_failure_raised_after_all_complete(self, context):
        """Test that every unit finishes and the first failure in plan order is raised."""
        translation_error = TransportError("translation failed")
        client = FakeCompletionClient(responses={TranslationOutput: translation_error})
        session = DebugSession("test", "Greetings")
        plans = [
            flashcard_plan(),
            LessonPlanUnit(type=UnitType.TRANSLATION, instructions="Translate"),
            LessonPlanUnit(type=UnitType.WORD_ORDER, instructions="Order"),
        ]

        with pytest.raises(TransportError) as exc_info:
            await UnitExecutor(client, max_attempts=1).execute_units(
                plans, context, section_index=2, session=session
            )

        assert exc_info.value is translation_error
        unit_entries = [e for e in session.entries if e.stage == "UNIT_EXECUTION"]
        assert sorted(e.unit_index for e in unit_entries) == [0, 1, 2]
        failed = [e for e in unit_entries if e.error]
        assert [(e.section_index, e.unit_index, e.unit_type) for e in failed] == [(2, 1, "translation")]

    @pytest.mark.anyio
    async def test_per_unit_contexts(self, fake_client, context):
        contexts = [
            context.model_copy(update={"lesson_plan_context": "PLAN-A"}),
            context.model_copy(update={"lesson_plan_context": "PLAN-B"}),
        ]
        plans = [flashcard_plan("a"), flashcard_plan("b")]

        await UnitExecutor(fake_client).execute_units(plans, context, 0, contexts=contexts)

        prompts = fake_client.prompts_for(FlashcardOutput)
        assert any(p.startswith("PLAN-A") for p in prompts)
        assert any(p.startswith("PLAN-B") for p in prompts)

    @pytest.mark.anyio
    async def test_contexts_length_mismatch(self, fake_client, context):
        with pytest.raises(ValueError):
            await UnitExecutor(fake_client).execute_units(
                [flashcard_plan()], context, 0, contexts=[context, context]
            )
