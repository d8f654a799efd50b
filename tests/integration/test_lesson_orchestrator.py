"""End-to-end tests of the lesson pipelines against an in-memory completion client."""

import logging
from unittest.mock import patch

import pytest

from conftest import SECTION_INSTRUCTIONS, FakeCompletionClient
from lessongen.exceptions import MarkupParseError, TransportError
from lessongen.generators.lesson_orchestrator import LessonOrchestrator, SectionFailurePolicy
from lessongen.generators.unit_executor import UnitExecutor
from lessongen.models.lesson import (
    ProgressStage,
    SectionPlanOutput,
    StructuredLessonInput,
    TopicBreakdownOutput,
)
from lessongen.models.units import (
    FillInBlanksOutput,
    FlashcardOutput,
    TranslationOutput,
    UnitType,
    WordOrderOutput,
)

STRUCTURE_MARKUP = """
Here is the lesson:
```xml
<lesson>
  <section name="Warm-up">
    <unit type="flashcard" name="Greetings">Learn hola and adiós</unit>
  </section>
  <section name="Practice">
    <unit type="translation" name="Translate">Translate a short greeting dialogue</unit>
    <unit type="word_order" name="Order">Unscramble greeting sentences</unit>
  </section>
</lesson>
```
"""

SUMMARY = "You practiced greetings: hola, adiós and a short dialogue."


def structure_or_summary(markup):
    def answer(prompt):
        if prompt.startswith("Summarize what a"):
            return SUMMARY
        return markup

    return answer


def fail_section(instruction):
    """SectionPlanOutput response that fails only for one section instruction."""
    default = FakeCompletionClient().responses[SectionPlanOutput]

    def answer(prompt):
        if instruction in prompt:
            return TransportError(f"section failed: {instruction[:20]}")
        return default

    return answer


def make_orchestrator(client, recorder, **kwargs):
    return LessonOrchestrator(
        client,
        recorder=recorder,
        executor=UnitExecutor(client, max_attempts=1, retry_delay=0),
        **kwargs,
    )


@pytest.fixture
def structured_input():
    return StructuredLessonInput(
        user_level="beginner",
        lesson_title="Greetings",
        lesson_description="Say hello and goodbye",
        week_title="First contact",
    )


def debug_reports(recorder):
    return sorted(recorder.output_dir.glob("lesson-debug_*.txt"))


class TestSectionedLesson:
    """Topic breakdown → section plans → units."""

    @pytest.mark.anyio
    async def test_sections_and_units(self, fake_client, recorder, lesson_input):
        lesson = await make_orchestrator(fake_client, recorder).create_sectioned_lesson(lesson_input)

        assert lesson.input == lesson_input
        assert lesson.section_instructions == SECTION_INSTRUCTIONS
        assert [s.section_index for s in lesson.sections] == [0, 1]
        assert [s.section_instruction for s in lesson.sections] == SECTION_INSTRUCTIONS
        for section in lesson.sections:
            assert [u.type for u in section.units] == [UnitType.FLASHCARD, UnitType.FILL_IN_BLANKS]
            assert [u.plan for u in section.units] == section.unit_plans
            assert not section.failed

        assert len(fake_client.prompts_for(TopicBreakdownOutput)) == 1
        assert len(fake_client.prompts_for(SectionPlanOutput)) == 2
        assert len(fake_client.prompts_for(FlashcardOutput)) == 2
        assert len(fake_client.prompts_for(FillInBlanksOutput)) == 2

    @pytest.mark.anyio
    async def test_section_prompts_carry_instruction(self, fake_client, recorder, lesson_input):
        await make_orchestrator(fake_client, recorder).create_sectioned_lesson(lesson_input)

        section_prompts = fake_client.prompts_for(SectionPlanOutput)
        for instruction in SECTION_INSTRUCTIONS:
            assert sum(instruction in p for p in section_prompts) == 1
        assert lesson_input.instructions in fake_client.prompts_for(TopicBreakdownOutput)[0]

    @pytest.mark.anyio
    async def test_order_preserved_under_jitter(self, recorder, lesson_input):
        client = FakeCompletionClient(jitter=0.02)
        lesson = await make_orchestrator(client, recorder).create_sectioned_lesson(lesson_input)

        assert lesson.section_instructions == SECTION_INSTRUCTIONS
        assert [s.section_instruction for s in lesson.sections] == SECTION_INSTRUCTIONS

    @pytest.mark.anyio
    async def test_debug_report_written(self, fake_client, recorder, lesson_input):
        await make_orchestrator(fake_client, recorder).create_sectioned_lesson(lesson_input)

        reports = debug_reports(recorder)
        assert len(reports) == 1
        content = reports[0].read_text(encoding="utf-8")
        assert f"Instructions: {lesson_input.instructions}" in content
        assert "TOPIC_BREAKDOWN" in content
        assert content.count("] SECTION_GENERATION") == 2
        assert content.count("] UNIT_EXECUTION") == 4
        assert content.rstrip().endswith("SESSION_SUCCESS")

    @pytest.mark.anyio
    async def test_progress_sync_callback(self, fake_client, recorder, lesson_input):
        updates = []
        await make_orchestrator(fake_client, recorder).create_sectioned_lesson(
            lesson_input, progress=updates.append
        )

        stages = [u.stage for u in updates]
        assert stages[0] is ProgressStage.STRUCTURE
        assert stages[-1] is ProgressStage.COMPLETE
        unit_updates = [u for u in updates if u.stage is ProgressStage.UNITS]
        assert unit_updates[-1].current == unit_updates[-1].total == 2

    @pytest.mark.anyio
    async def test_progress_async_callback(self, fake_client, recorder, lesson_input):
        updates = []

        async def progress(update):
            updates.append(update)

        await make_orchestrator(fake_client, recorder).create_sectioned_lesson(
            lesson_input, progress=progress
        )
        assert updates[-1].stage is ProgressStage.COMPLETE

    @pytest.mark.anyio
    async def test_progress_callback_errors_ignored(self, fake_client, recorder, lesson_input, caplog):
        def progress(update):
            raise RuntimeError("client disconnected")

        with caplog.at_level(logging.WARNING):
            lesson = await make_orchestrator(fake_client, recorder).create_sectioned_lesson(
                lesson_input, progress=progress
            )

        assert len(lesson.sections) == 2
        assert "Progress callback failed" in caplog.text

    @pytest.mark.anyio
    async def test_topic_breakdown_failure(self, recorder, lesson_input):
        client = FakeCompletionClient(responses={TopicBreakdownOutput: TransportError("down")})

        with pytest.raises(TransportError):
            await make_orchestrator(client, recorder).create_sectioned_lesson(lesson_input)

        content = debug_reports(recorder)[0].read_text(encoding="utf-8")
        assert "--- ERROR ---\ndown" in content
        assert content.rstrip().endswith("SESSION_FAILED")


class TestSectionFailurePolicy:
    """All-or-nothing vs keep-partial."""

    @pytest.mark.anyio
    async def test_all_or_nothing_raises_first_failure(self, recorder, lesson_input):
        client = FakeCompletionClient(
            responses={SectionPlanOutput: fail_section(SECTION_INSTRUCTIONS[1])}
        )

        with pytest.raises(TransportError, match="section failed"):
            await make_orchestrator(client, recorder).create_sectioned_lesson(lesson_input)

        # The healthy section still ran to completion before the failure surfaced
        assert len(client.prompts_for(FlashcardOutput)) == 1

    @pytest.mark.anyio
    async def test_unit_failure_fails_lesson(self, recorder, lesson_input):
        client = FakeCompletionClient(responses={FillInBlanksOutput: TransportError("bad unit")})

        with pytest.raises(TransportError, match="bad unit"):
            await make_orchestrator(client, recorder).create_sectioned_lesson(lesson_input)

    @pytest.mark.anyio
    async def test_keep_partial(self, recorder, lesson_input):
        client = FakeCompletionClient(
            responses={SectionPlanOutput: fail_section(SECTION_INSTRUCTIONS[1])}
        )
        orchestrator = make_orchestrator(
            client, recorder, section_failure_policy=SectionFailurePolicy.KEEP_PARTIAL
        )

        lesson = await orchestrator.create_sectioned_lesson(lesson_input)

        ok, failed = lesson.sections
        assert not ok.failed
        assert len(ok.units) == 2
        assert failed.failed
        assert "section failed" in failed.error
        assert failed.units == []
        assert failed.section_index == 1
        assert failed.section_instruction == SECTION_INSTRUCTIONS[1]

    @pytest.mark.anyio
    async def test_keep_partial_all_failed_raises(self, recorder, lesson_input):
        client = FakeCompletionClient(responses={SectionPlanOutput: TransportError("down")})
        orchestrator = make_orchestrator(
            client, recorder, section_failure_policy=SectionFailurePolicy.KEEP_PARTIAL
        )

        with pytest.raises(TransportError):
            await orchestrator.create_sectioned_lesson(lesson_input)


class TestFlatLesson:
    @pytest.mark.anyio
    async def test_single_section(self, fake_client, recorder, lesson_input):
        lesson = await make_orchestrator(fake_client, recorder).create_flat_lesson(lesson_input)

        assert lesson.section_instructions == [lesson_input.instructions]
        assert len(lesson.sections) == 1
        assert [u.type for u in lesson.sections[0].units] == [
            UnitType.FLASHCARD,
            UnitType.FILL_IN_BLANKS,
        ]
        assert fake_client.prompts_for(TopicBreakdownOutput) == []
        assert len(fake_client.prompts_for(SectionPlanOutput)) == 1


class TestStructuredLesson:
    """Lesson-structure markup → parsed sections → units with lesson plan context."""

    @pytest.mark.anyio
    async def test_sections_from_markup(self, recorder, structured_input):
        client = FakeCompletionClient(free_text=structure_or_summary(STRUCTURE_MARKUP))

        lesson = await make_orchestrator(client, recorder).create_structured_lesson(structured_input)

        assert lesson.section_instructions == ["Greetings: Warm-up", "Greetings: Practice"]
        assert [s.name for s in lesson.sections] == ["Warm-up", "Practice"]
        assert [[u.type for u in s.units] for s in lesson.sections] == [
            [UnitType.FLASHCARD],
            [UnitType.TRANSLATION, UnitType.WORD_ORDER],
        ]
        assert all(s.learning_summary is None for s in lesson.sections)
        assert lesson.input.instructions == "Greetings: Say hello and goodbye"

        structure_prompt = client.free_text_calls[0]
        assert "Week theme: First contact" in structure_prompt
        assert "Lesson Title: Greetings" in structure_prompt

    @pytest.mark.anyio
    async def test_lesson_plan_context_spans_sections(self, recorder, structured_input):
        client = FakeCompletionClient(free_text=structure_or_summary(STRUCTURE_MARKUP))

        await make_orchestrator(client, recorder).create_structured_lesson(structured_input)

        flashcard_prompt = client.prompts_for(FlashcardOutput)[0]
        assert flashcard_prompt.startswith("<lesson_plan>")
        assert 'index="1" type="flashcard" name="Greetings" status="CURRENT"' in flashcard_prompt
        assert "Translate a short greeting dialogue" not in flashcard_prompt

        word_order_prompt = client.prompts_for(WordOrderOutput)[0]
        assert 'name="Greetings" status="completed"' in word_order_prompt
        assert 'name="Translate" status="completed"' in word_order_prompt
        assert 'index="3" type="word_order" name="Order" status="CURRENT"' in word_order_prompt

    @pytest.mark.anyio
    async def test_learning_summaries_and_progress(self, recorder, structured_input):
        client = FakeCompletionClient(free_text=structure_or_summary(STRUCTURE_MARKUP))
        updates = []

        lesson = await make_orchestrator(client, recorder).create_structured_lesson(
            structured_input, progress=updates.append, include_summaries=True
        )

        assert [s.learning_summary for s in lesson.sections] == [SUMMARY, SUMMARY]
        summary_prompts = [p for p in client.free_text_calls if p.startswith("Summarize what a")]
        assert len(summary_prompts) == 2
        assert any('"Practice"' in p and "[word_order]" in p for p in summary_prompts)

        stages = [u.stage for u in updates]
        assert stages[:2] == [ProgressStage.STRUCTURE, ProgressStage.PARSING]
        assert stages.index(ProgressStage.UNITS) < stages.index(ProgressStage.SUMMARIES)
        assert stages[-1] is ProgressStage.COMPLETE
        last_units = [u for u in updates if u.stage is ProgressStage.UNITS][-1]
        assert last_units.current == last_units.total == 3

    @pytest.mark.anyio
    async def test_summary_failure_keep_partial(self, recorder, structured_input):
        def answer(prompt):
            if prompt.startswith("Summarize what a"):
                return TransportError("summary failed")
            return STRUCTURE_MARKUP

        client = FakeCompletionClient(free_text=answer)
        orchestrator = make_orchestrator(
            client, recorder, section_failure_policy=SectionFailurePolicy.KEEP_PARTIAL
        )

        lesson = await orchestrator.create_structured_lesson(structured_input, include_summaries=True)

        assert all(s.learning_summary is None for s in lesson.sections)
        assert not any(s.failed for s in lesson.sections)

    @pytest.mark.anyio
    async def test_ungrouped_markup_single_section(self, recorder, structured_input):
        markup = "<lesson><unit type='flashcard' name='Words'>hola, adiós</unit></lesson>"
        client = FakeCompletionClient(free_text=markup)

        lesson = await make_orchestrator(client, recorder).create_structured_lesson(structured_input)

        assert lesson.section_instructions == ["Greetings: Say hello and goodbye"]
        assert lesson.sections[0].name == "Lesson"

    @pytest.mark.anyio
    async def test_unencodable_response_keeps_lesson(self, recorder, structured_input):
        """Test that a raw response the report cannot encode does not fail the lesson."""
        client = FakeCompletionClient(
            free_text="Sure \ud83d here it is:\n"
            '<lesson><unit type="flashcard" name="Greetings">Learn hello</unit></lesson>'
        )

        lesson = await make_orchestrator(client, recorder).create_structured_lesson(structured_input)

        assert [u.type for u in lesson.sections[0].units] == [UnitType.FLASHCARD]
        assert len(debug_reports(recorder)) == 1

    @pytest.mark.anyio
    async def test_debug_report_failure_keeps_lesson(self, recorder, structured_input, caplog):
        client = FakeCompletionClient(free_text=structure_or_summary(STRUCTURE_MARKUP))

        with patch(
            "lessongen.utils.debug_recorder.DebugSession.render",
            side_effect=RuntimeError("render failed"),
        ), caplog.at_level(logging.WARNING):
            lesson = await make_orchestrator(client, recorder).create_structured_lesson(
                structured_input
            )

        assert len(lesson.sections) == 2
        assert "Failed to write debug report" in caplog.text

    @pytest.mark.anyio
    async def test_unparseable_structure(self, recorder, structured_input):
        client = FakeCompletionClient(free_text="I'm sorry, I can't do that.")

        with pytest.raises(MarkupParseError):
            await make_orchestrator(client, recorder).create_structured_lesson(structured_input)

        content = debug_reports(recorder)[0].read_text(encoding="utf-8")
        assert "LESSON_STRUCTURE" in content
        assert "--- RAW RESPONSE ---" in content
        assert client.structured_calls == []


class TestRedo:
    """Unit and section regeneration."""

    @pytest.mark.anyio
    async def test_redo_unit(self, fake_client, recorder, lesson_input):
        orchestrator = make_orchestrator(fake_client, recorder)
        lesson = await orchestrator.create_sectioned_lesson(lesson_input)

        unit = await orchestrator.redo_unit(lesson, 1, 0)

        redo_prompt = fake_client.prompts_for(FlashcardOutput)[-1]
        assert redo_prompt.startswith("IMPORTANT: Generate completely different flashcards.")
        assert "hola" in redo_prompt
        assert unit.type is UnitType.FLASHCARD
        assert unit.plan == lesson.sections[1].unit_plans[0]

        updated = lesson.replace_unit(1, 0, unit)
        assert updated.sections[0] == lesson.sections[0]
        assert updated.sections[1].units[1] == lesson.sections[1].units[1]

    @pytest.mark.anyio
    async def test_redo_unit_bad_index(self, fake_client, recorder, lesson_input):
        orchestrator = make_orchestrator(fake_client, recorder)
        lesson = await orchestrator.create_sectioned_lesson(lesson_input)

        with pytest.raises(IndexError):
            await orchestrator.redo_unit(lesson, 5, 0)
        with pytest.raises(IndexError):
            await orchestrator.redo_unit(lesson, 0, 9)

    @pytest.mark.anyio
    async def test_redo_section(self, fake_client, recorder, lesson_input):
        orchestrator = make_orchestrator(fake_client, recorder)
        lesson = await orchestrator.create_sectioned_lesson(lesson_input)
        plans_before = len(fake_client.prompts_for(SectionPlanOutput))

        section = await orchestrator.redo_section(lesson, 0)

        assert len(fake_client.prompts_for(SectionPlanOutput)) == plans_before + 1
        assert section.section_index == 0
        assert section.section_instruction == SECTION_INSTRUCTIONS[0]
        updated = lesson.replace_section(section)
        assert updated.sections[1] == lesson.sections[1]

        with pytest.raises(IndexError):
            await orchestrator.redo_section(lesson, 2)

    @pytest.mark.anyio
    async def test_redo_unit_translation(self, recorder, structured_input):
        client = FakeCompletionClient(free_text=structure_or_summary(STRUCTURE_MARKUP))
        orchestrator = make_orchestrator(client, recorder)
        lesson = await orchestrator.create_structured_lesson(structured_input)

        await orchestrator.redo_unit(lesson, 1, 0)

        redo_prompt = client.prompts_for(TranslationOutput)[-1]
        assert redo_prompt.startswith("IMPORTANT: Generate a completely different paragraph.")
        assert "Hola, me llamo Ana." in redo_prompt

    @pytest.mark.anyio
    async def test_redo_unit_keeps_lesson_plan_context(self, recorder, structured_input):
        client = FakeCompletionClient(free_text=structure_or_summary(STRUCTURE_MARKUP))
        orchestrator = make_orchestrator(client, recorder)
        lesson = await orchestrator.create_structured_lesson(structured_input)

        await orchestrator.redo_unit(lesson, 1, 1)

        redo_prompt = client.prompts_for(WordOrderOutput)[-1]
        assert redo_prompt.startswith("IMPORTANT: ")
        assert "<lesson_plan>" in redo_prompt
        assert 'index="1" type="flashcard" name="Vocabulary flashcards" status="completed"' in redo_prompt
        assert 'index="3" type="word_order" name="Unscramble words" status="CURRENT"' in redo_prompt
        assert "Unscramble greeting sentences" in redo_prompt

    @pytest.mark.anyio
    async def test_redo_unit_sectioned_has_no_lesson_plan(self, fake_client, recorder, lesson_input):
        orchestrator = make_orchestrator(fake_client, recorder)
        lesson = await orchestrator.create_sectioned_lesson(lesson_input)

        await orchestrator.redo_unit(lesson, 0, 0)

        assert "<lesson_plan>" not in fake_client.prompts_for(FlashcardOutput)[-1]
