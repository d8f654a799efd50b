"""Multi-stage lesson generation.

Three pipeline variants share the same unit fan-out:

- Sectioned: topic breakdown → per-section unit plans → units (sections and
  units run concurrently)
- Flat: instructions → one list of unit plans → units
- Structured: lesson-structure markup → parsed sections → units, each unit
  seeing the "lesson so far" plan

Every public call opens its own debug session and always closes it, so
concurrent calls on one orchestrator never share mutable state.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from lessongen.exceptions import MarkupParseError
from lessongen.generators.unit_executor import UnitExecutor
from lessongen.models.lesson import (
    CompiledSection,
    CompiledUnit,
    LessonContext,
    LessonInput,
    LessonPlanUnit,
    ProgressStage,
    ProgressUpdate,
    SectionedLesson,
    SectionPlanOutput,
    StructuredLessonInput,
    TopicBreakdownOutput,
)
from lessongen.models.lesson_structure import ParsedSection, ParsedUnit
from lessongen.models.units import UNIT_TYPE_NAMES
from lessongen.parsers.lesson_parser import extract_lesson_markup, parse_lesson_sections
from lessongen.prompts.lesson_prompts import (
    FLAT_LESSON_PLAN_PROMPT,
    LEARNING_SUMMARY_PROMPT,
    SECTION_GENERATION_PROMPT,
    TOPIC_BREAKDOWN_PROMPT,
    build_lesson_plan_context,
    build_structure_prompt,
)
from lessongen.utils.debug_recorder import DebugRecorder, DebugSession
from lessongen.utils.llm_client import CompletionClient
from lessongen.utils.logging_config import pipeline_stage_logger
from lessongen.utils.template import render_template

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressUpdate], Union[None, Awaitable[None]]]


class SectionFailurePolicy(str, Enum):
    """What a failed section does to the whole lesson."""

    ALL_OR_NOTHING = "all_or_nothing"  # any failure fails the call
    KEEP_PARTIAL = "keep_partial"  # failed sections come back with `error` set and no units


class LessonOrchestrator:
    """Runs the lesson pipelines and the redo operations."""

    def __init__(
        self,
        client: CompletionClient,
        recorder: Optional[DebugRecorder] = None,
        executor: Optional[UnitExecutor] = None,
        section_failure_policy: SectionFailurePolicy = SectionFailurePolicy.ALL_OR_NOTHING,
    ):
        """Initialize the orchestrator.

        Args:
            client: Completion client for planning stages (and units, unless
                an executor is given)
            recorder: Debug recorder (default: one configured from env vars)
            executor: Unit executor (default: UnitExecutor(client))
            section_failure_policy: How section failures affect the result
        """
        self.client = client
        self.recorder = recorder or DebugRecorder()
        self.executor = executor or UnitExecutor(client)
        self.section_failure_policy = section_failure_policy

    # ========================================================================
    # Sectioned pipeline
    # ========================================================================

    async def create_sectioned_lesson(
        self,
        lesson_input: LessonInput,
        progress: Optional[ProgressCallback] = None,
    ) -> SectionedLesson:
        """Generate a lesson via topic breakdown, section plans and units.

        Args:
            lesson_input: Instructions and learner context
            progress: Optional sync or async callback receiving ProgressUpdate

        Returns:
            SectionedLesson with one section per section instruction

        Raises:
            LessonGenerationError: The first failure, unless the keep-partial
                policy absorbed it
        """
        logger.info(f"Creating sectioned lesson: '{lesson_input.instructions[:50]}'")
        session = self.recorder.start_session(lesson_input.instructions)
        success = False
        try:
            context = LessonContext.from_input(lesson_input)

            await self._notify(progress, ProgressStage.STRUCTURE, "Breaking topic into sections")
            section_instructions = await self._topic_breakdown(lesson_input, session)
            logger.info(f"Topic broken into {len(section_instructions)} sections")

            total = len(section_instructions)
            done = 0
            await self._notify(
                progress, ProgressStage.UNITS, f"Generating {total} sections", done, total
            )

            async def run_section(index: int, instruction: str) -> CompiledSection:
                nonlocal done
                section = await self._build_section(
                    index, instruction, lesson_input, context, session
                )
                done += 1
                await self._notify(
                    progress, ProgressStage.UNITS, f"Generated section {index + 1}", done, total
                )
                return section

            results = await asyncio.gather(
                *(run_section(i, instr) for i, instr in enumerate(section_instructions)),
                return_exceptions=True,
            )
            sections = self._collect_sections(section_instructions, results)

            lesson = SectionedLesson(
                input=lesson_input,
                section_instructions=section_instructions,
                sections=sections,
            )
            await self._notify(progress, ProgressStage.COMPLETE, "Lesson complete")
            logger.info("Sectioned lesson created successfully")
            success = True
            return lesson
        finally:
            self.recorder.end_session(session, success)

    async def _topic_breakdown(self, lesson_input: LessonInput, session: DebugSession) -> List[str]:
        prompt = render_template(
            TOPIC_BREAKDOWN_PROMPT,
            {
                "userLevel": lesson_input.user_level,
                "targetLanguage": lesson_input.target_language,
                "nativeLanguage": lesson_input.native_language,
                "instructions": lesson_input.instructions,
            },
        )
        with pipeline_stage_logger("topic_breakdown", user_level=lesson_input.user_level):
            try:
                output = await self.client.complete_structured(prompt, TopicBreakdownOutput)
            except Exception as e:
                session.log_topic_breakdown(prompt, error=e)
                raise
        session.log_topic_breakdown(prompt, output=output)
        return list(output.sections)

    async def _generate_section_plans(
        self,
        section_index: int,
        section_instruction: str,
        lesson_input: LessonInput,
        session: DebugSession,
    ) -> List[LessonPlanUnit]:
        prompt = render_template(
            SECTION_GENERATION_PROMPT,
            {
                "userLevel": lesson_input.user_level,
                "targetLanguage": lesson_input.target_language,
                "nativeLanguage": lesson_input.native_language,
                "sectionInstruction": section_instruction,
            },
        )
        with pipeline_stage_logger("section_generation", section_index=section_index):
            try:
                output = await self.client.complete_structured(prompt, SectionPlanOutput)
            except Exception as e:
                session.log_section_generation(section_index, prompt, error=e)
                raise
        session.log_section_generation(section_index, prompt, output=output)
        return list(output.units)

    async def _build_section(
        self,
        section_index: int,
        section_instruction: str,
        lesson_input: LessonInput,
        context: LessonContext,
        session: DebugSession,
        name: Optional[str] = None,
    ) -> CompiledSection:
        unit_plans = await self._generate_section_plans(
            section_index, section_instruction, lesson_input, session
        )
        with pipeline_stage_logger("unit_execution", section_index=section_index):
            units = await self.executor.execute_units(unit_plans, context, section_index, session)
        return CompiledSection(
            section_instruction=section_instruction,
            section_index=section_index,
            unit_plans=unit_plans,
            units=units,
            name=name,
        )

    def _collect_sections(
        self,
        section_instructions: Sequence[str],
        results: Sequence[Union[CompiledSection, BaseException]],
        names: Optional[Sequence[Optional[str]]] = None,
        unit_plans: Optional[Sequence[List[LessonPlanUnit]]] = None,
    ) -> List[CompiledSection]:
        """Apply the section failure policy to gathered section results."""
        failures = [r for r in results if isinstance(r, BaseException)]
        if not failures:
            return list(results)

        if self.section_failure_policy is SectionFailurePolicy.ALL_OR_NOTHING:
            raise failures[0]
        if len(failures) == len(results):
            logger.error(f"All {len(results)} sections failed")
            raise failures[0]

        sections: List[CompiledSection] = []
        for index, result in enumerate(results):
            if not isinstance(result, BaseException):
                sections.append(result)
                continue
            logger.warning(f"Section {index} failed, keeping partial lesson: {result}")
            sections.append(
                CompiledSection(
                    section_instruction=section_instructions[index],
                    section_index=index,
                    unit_plans=list(unit_plans[index]) if unit_plans else [],
                    units=[],
                    name=names[index] if names else None,
                    error=str(result) or type(result).__name__,
                )
            )
        return sections

    # ========================================================================
    # Flat pipeline
    # ========================================================================

    async def create_flat_lesson(
        self,
        lesson_input: LessonInput,
        progress: Optional[ProgressCallback] = None,
    ) -> SectionedLesson:
        """Generate a single-section lesson from one flat list of unit plans."""
        logger.info(f"Creating flat lesson: '{lesson_input.instructions[:50]}'")
        session = self.recorder.start_session(lesson_input.instructions)
        success = False
        try:
            context = LessonContext.from_input(lesson_input)
            prompt = render_template(
                FLAT_LESSON_PLAN_PROMPT,
                {
                    "userLevel": lesson_input.user_level,
                    "targetLanguage": lesson_input.target_language,
                    "nativeLanguage": lesson_input.native_language,
                    "instructions": lesson_input.instructions,
                },
            )

            await self._notify(progress, ProgressStage.STRUCTURE, "Planning lesson units")
            with pipeline_stage_logger("flat_plan", user_level=lesson_input.user_level):
                try:
                    plan_output = await self.client.complete_structured(prompt, SectionPlanOutput)
                except Exception as e:
                    session.log_section_generation(0, prompt, error=e)
                    raise
            session.log_section_generation(0, prompt, output=plan_output)
            unit_plans = list(plan_output.units)

            total = len(unit_plans)
            await self._notify(progress, ProgressStage.UNITS, f"Generating {total} units", 0, total)
            with pipeline_stage_logger("unit_execution", section_index=0):
                units = await self.executor.execute_units(unit_plans, context, 0, session)
            await self._notify(progress, ProgressStage.UNITS, "Units generated", total, total)

            section = CompiledSection(
                section_instruction=lesson_input.instructions,
                section_index=0,
                unit_plans=unit_plans,
                units=units,
            )
            lesson = SectionedLesson(
                input=lesson_input,
                section_instructions=[lesson_input.instructions],
                sections=[section],
            )
            await self._notify(progress, ProgressStage.COMPLETE, "Lesson complete")
            success = True
            return lesson
        finally:
            self.recorder.end_session(session, success)

    # ========================================================================
    # Structured (markup) pipeline
    # ========================================================================

    async def create_structured_lesson(
        self,
        structured_input: StructuredLessonInput,
        progress: Optional[ProgressCallback] = None,
        include_summaries: bool = False,
    ) -> SectionedLesson:
        """Generate a lesson from model-authored lesson-structure markup.

        Progress stages: structure → parsing → units → summaries (if enabled)
        → complete.

        Args:
            structured_input: Learner profile, lesson overview and journey context
            progress: Optional sync or async callback receiving ProgressUpdate
            include_summaries: Generate a learning summary for each section

        Returns:
            SectionedLesson with one section per parsed <section> (or one
            section when the markup has no grouping)

        Raises:
            MarkupParseError: If the structure markup has no lesson or no valid unit
            LessonGenerationError: The first other failure, unless absorbed by
                the keep-partial policy
        """
        lesson_input = structured_input.to_lesson_input()
        logger.info(f"Creating structured lesson: '{structured_input.lesson_title}'")
        session = self.recorder.start_session(lesson_input.instructions)
        success = False
        try:
            await self._notify(progress, ProgressStage.STRUCTURE, "Generating lesson structure")
            parsed_sections = await self._lesson_structure(structured_input, session)

            await self._notify(progress, ProgressStage.PARSING, "Parsing lesson structure")
            if len(parsed_sections) == 1:
                section_instructions = [structured_input.section_instruction]
            else:
                section_instructions = [
                    f"{structured_input.lesson_title}: {section.name}" for section in parsed_sections
                ]
            names = [section.name for section in parsed_sections]
            unit_plans = [[unit.to_plan() for unit in section.units] for section in parsed_sections]
            base_context = LessonContext.from_input(lesson_input)
            contexts = self._lesson_plan_contexts(lesson_input, parsed_sections)

            total = sum(len(plans) for plans in unit_plans)
            done = 0
            await self._notify(progress, ProgressStage.UNITS, f"Generating {total} units", done, total)

            async def run_section(index: int) -> CompiledSection:
                nonlocal done
                with pipeline_stage_logger("unit_execution", section_index=index):
                    units = await self.executor.execute_units(
                        unit_plans[index],
                        base_context,
                        index,
                        session,
                        contexts=contexts[index],
                    )
                done += len(units)
                await self._notify(
                    progress, ProgressStage.UNITS, f"Generated section '{names[index]}'", done, total
                )
                return CompiledSection(
                    section_instruction=section_instructions[index],
                    section_index=index,
                    unit_plans=unit_plans[index],
                    units=units,
                    name=names[index],
                )

            results = await asyncio.gather(
                *(run_section(i) for i in range(len(parsed_sections))), return_exceptions=True
            )
            sections = self._collect_sections(section_instructions, results, names, unit_plans)

            if include_summaries:
                await self._notify(progress, ProgressStage.SUMMARIES, "Writing learning summaries")
                sections = await self._add_learning_summaries(lesson_input, sections, session)

            lesson = SectionedLesson(
                input=lesson_input,
                section_instructions=section_instructions,
                sections=sections,
            )
            await self._notify(progress, ProgressStage.COMPLETE, "Lesson complete")
            logger.info(f"Structured lesson created with {total} units")
            success = True
            return lesson
        finally:
            self.recorder.end_session(session, success)

    async def _lesson_structure(
        self, structured_input: StructuredLessonInput, session: DebugSession
    ) -> List[ParsedSection]:
        prompt = build_structure_prompt(structured_input)
        with pipeline_stage_logger("lesson_structure", user_level=structured_input.user_level):
            try:
                raw = await self.client.complete_free_text(prompt)
            except Exception as e:
                session.log_lesson_structure(prompt, error=e)
                raise

            try:
                parsed_sections = parse_lesson_sections(extract_lesson_markup(raw))
            except MarkupParseError as e:
                session.log_lesson_structure(prompt, raw_response=raw, error=e)
                raise

        session.log_lesson_structure(prompt, raw_response=raw, output=parsed_sections)
        logger.info(
            f"Parsed {sum(len(s.units) for s in parsed_sections)} units "
            f"in {len(parsed_sections)} sections"
        )
        return parsed_sections

    def _lesson_plan_contexts(
        self, lesson_input: LessonInput, parsed_sections: Sequence[ParsedSection]
    ) -> List[List[LessonContext]]:
        """Per-unit contexts; unit i sees the lesson plan up to and including itself."""
        all_units = [unit for section in parsed_sections for unit in section.units]
        contexts: List[List[LessonContext]] = []
        position = 0
        for section in parsed_sections:
            section_contexts = []
            for _ in section.units:
                section_contexts.append(
                    LessonContext.from_input(
                        lesson_input,
                        lesson_plan_context=build_lesson_plan_context(all_units, position),
                    )
                )
                position += 1
            contexts.append(section_contexts)
        return contexts

    async def _add_learning_summaries(
        self,
        lesson_input: LessonInput,
        sections: List[CompiledSection],
        session: DebugSession,
    ) -> List[CompiledSection]:
        async def summarize(section: CompiledSection) -> CompiledSection:
            if section.failed:
                return section
            unit_list = "\n".join(
                f"- [{plan.type.value}] {plan.instructions}" for plan in section.unit_plans
            )
            prompt = render_template(
                LEARNING_SUMMARY_PROMPT,
                {
                    "userLevel": lesson_input.user_level,
                    "targetLanguage": lesson_input.target_language,
                    "nativeLanguage": lesson_input.native_language,
                    "sectionName": section.name or section.section_instruction,
                    "unitList": unit_list,
                },
            )
            try:
                summary = await self.client.complete_free_text(prompt)
            except Exception as e:
                session.log_learning_summary(section.section_index, prompt, error=e)
                if self.section_failure_policy is SectionFailurePolicy.ALL_OR_NOTHING:
                    raise
                logger.warning(f"Learning summary for section {section.section_index} failed: {e}")
                return section
            session.log_learning_summary(section.section_index, prompt, output=summary)
            return section.model_copy(update={"learning_summary": summary.strip()})

        with pipeline_stage_logger("learning_summaries", sections=len(sections)):
            return list(await asyncio.gather(*(summarize(s) for s in sections)))

    # ========================================================================
    # Redo
    # ========================================================================

    def _get_section(self, lesson: SectionedLesson, section_index: int) -> CompiledSection:
        if not 0 <= section_index < len(lesson.sections):
            raise IndexError(f"Section {section_index} not found")
        return lesson.sections[section_index]

    def _redo_context(
        self, lesson: SectionedLesson, section_index: int, unit_index: int
    ) -> LessonContext:
        """Learner context for a regenerated unit.

        Named sections come from the structured pipeline, so their units see the
        lesson plan again, rebuilt from the stored plans. Unit display names fall
        back to the type names since compiled sections do not keep them.
        """
        if lesson.sections[section_index].name is None:
            return LessonContext.from_input(lesson.input)

        all_units: List[ParsedUnit] = []
        position = 0
        for index, section in enumerate(lesson.sections):
            if index == section_index:
                position = len(all_units) + unit_index
            all_units.extend(
                ParsedUnit(
                    type=plan.type, name=UNIT_TYPE_NAMES[plan.type], instructions=plan.instructions
                )
                for plan in section.unit_plans
            )
        return LessonContext.from_input(
            lesson.input, lesson_plan_context=build_lesson_plan_context(all_units, position)
        )

    async def redo_unit(
        self, lesson: SectionedLesson, section_index: int, unit_index: int
    ) -> CompiledUnit:
        """Regenerate one unit without repeating its previous output.

        The unit's plan is reused; sibling units are untouched. Use
        ``lesson.replace_unit`` to splice the result into the lesson.

        Raises:
            IndexError: If the section or unit does not exist
        """
        section = self._get_section(lesson, section_index)
        if not 0 <= unit_index < len(section.units):
            raise IndexError(f"Unit {unit_index} not found in section {section_index}")

        previous = section.units[unit_index]
        context = self._redo_context(lesson, section_index, unit_index)
        session = self.recorder.start_session(
            f"Redo unit {unit_index} of section {section_index}: {lesson.input.instructions}"
        )
        success = False
        try:
            avoid_context = self.executor.build_avoid_context(previous)
            prompt = self.executor.build_unit_prompt(previous.plan, context, avoid_context)
            with pipeline_stage_logger(
                "redo_unit", section_index=section_index, unit_index=unit_index
            ):
                try:
                    unit = await self.executor.execute_prompt(previous.plan, prompt)
                except Exception as e:
                    session.log_unit_execution(
                        section_index, unit_index, previous.type.value, prompt, error=e
                    )
                    raise
            session.log_unit_execution(
                section_index, unit_index, unit.type.value, prompt, output=unit.output
            )
            success = True
            return unit
        finally:
            self.recorder.end_session(session, success)

    async def redo_section(self, lesson: SectionedLesson, section_index: int) -> CompiledSection:
        """Regenerate one section's unit plans and units.

        Use ``lesson.replace_section`` to splice the result into the lesson.

        Raises:
            IndexError: If the section does not exist
        """
        previous = self._get_section(lesson, section_index)
        section_instruction = lesson.section_instructions[section_index]
        context = LessonContext.from_input(lesson.input)

        session = self.recorder.start_session(
            f"Redo section {section_index}: {section_instruction}"
        )
        success = False
        try:
            section = await self._build_section(
                section_index,
                section_instruction,
                lesson.input,
                context,
                session,
                name=previous.name,
            )
            success = True
            return section
        finally:
            self.recorder.end_session(session, success)

    # ========================================================================
    # Progress
    # ========================================================================

    async def _notify(
        self,
        progress: Optional[ProgressCallback],
        stage: ProgressStage,
        message: str,
        current: Optional[int] = None,
        total: Optional[int] = None,
    ) -> None:
        if progress is None:
            return
        update = ProgressUpdate(stage=stage, message=message, current=current, total=total)
        try:
            result = progress(update)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.warning(f"Progress callback failed at stage '{stage.value}'", exc_info=True)
