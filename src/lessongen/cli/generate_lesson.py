"""CLI for generating language lessons.

Modes:
- sectioned: topic breakdown → sections → units (default)
- flat: one flat list of units
- structured: lesson-structure markup for a lesson in a learning journey

An existing lesson JSON can also be partially regenerated with --redo-unit or
--redo-section.

Usage:
    python -m lessongen.cli.generate_lesson \\
        --instructions "Ser vs estar" --level beginner \\
        --output output/lessons/ser_estar.json
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from tqdm import tqdm

from lessongen import USER_LEVELS
from lessongen.exceptions import LessonGenerationError
from lessongen.generators.lesson_orchestrator import LessonOrchestrator, SectionFailurePolicy
from lessongen.models.lesson import (
    LessonInput,
    ProgressStage,
    ProgressUpdate,
    SectionedLesson,
    StructuredLessonInput,
    WeekLesson,
)
from lessongen.utils.debug_recorder import DebugRecorder
from lessongen.utils.file_io import read_json, read_model, write_model
from lessongen.utils.llm_client import LLMClient
from lessongen.utils.logging_config import configure_logging

logger = logging.getLogger(__name__)

load_dotenv()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Generate a sectioned language lesson with an LLM",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sectioned lesson for a beginner
  python -m lessongen.cli.generate_lesson \\
      --instructions "Ser vs estar" --level beginner \\
      --output output/lessons/ser_estar.json

  # Structured lesson inside a weekly theme, with learning summaries
  python -m lessongen.cli.generate_lesson --mode structured \\
      --level beginner \\
      --lesson-title "AR Verb Basics" \\
      --lesson-description "Introduce -AR conjugation with hablar, cantar, bailar" \\
      --week-lessons output/week1_lessons.json \\
      --summaries --output output/lessons/ar_verbs.json

  # Regenerate unit 2 of section 0 in an existing lesson
  python -m lessongen.cli.generate_lesson \\
      --lesson output/lessons/ser_estar.json --redo-unit 0 2 \\
      --output output/lessons/ser_estar.json
        """,
    )

    parser.add_argument(
        "--mode",
        default="sectioned",
        choices=["sectioned", "flat", "structured"],
        help="Pipeline variant (default: sectioned)",
    )
    parser.add_argument("--instructions", help="What the lesson should teach (sectioned/flat)")
    parser.add_argument(
        "--level",
        default="beginner",
        choices=USER_LEVELS,
        help="Learner proficiency level",
    )
    parser.add_argument("--target-language", default="Spanish", help="Language being learned")
    parser.add_argument("--native-language", default="English", help="Learner's native language")

    structured = parser.add_argument_group("structured mode")
    structured.add_argument("--lesson-title", help="Title of the lesson")
    structured.add_argument("--lesson-description", help="Description of the lesson")
    structured.add_argument("--week-title", help="Theme of the current week")
    structured.add_argument("--week-description", help="Description of the current week")
    structured.add_argument(
        "--week-lessons",
        type=Path,
        help='JSON file with earlier lessons this week: [{"title": ..., "description": ...}]',
    )
    structured.add_argument("--previous-weeks-summary", help="Summary of previous weeks")
    structured.add_argument(
        "--summaries",
        action="store_true",
        help="Generate a learning summary for each section",
    )

    redo = parser.add_argument_group("redo")
    redo.add_argument("--lesson", type=Path, help="Existing lesson JSON to regenerate parts of")
    redo_target = redo.add_mutually_exclusive_group()
    redo_target.add_argument(
        "--redo-unit",
        nargs=2,
        type=int,
        metavar=("SECTION", "UNIT"),
        help="Regenerate one unit without repeating its content",
    )
    redo_target.add_argument(
        "--redo-section",
        type=int,
        metavar="SECTION",
        help="Regenerate the unit plans and units of one section",
    )

    parser.add_argument("--output", required=True, type=Path, help="Output JSON file path")
    parser.add_argument("--model", default=None, help="LLM model (default: LLM_MODEL env var)")
    parser.add_argument(
        "--keep-partial",
        action="store_true",
        help="Return failed sections with an error instead of failing the lesson",
    )
    parser.add_argument("--debug-dir", type=Path, default=None, help="Debug report directory")
    parser.add_argument("--no-debug", action="store_true", help="Do not write debug reports")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    args = parser.parse_args(argv)

    if (args.redo_unit is not None or args.redo_section is not None) and args.lesson is None:
        parser.error("--redo-unit/--redo-section require --lesson")
    if args.lesson is None:
        if args.mode == "structured" and not (args.lesson_title and args.lesson_description):
            parser.error("--mode structured requires --lesson-title and --lesson-description")
        if args.mode != "structured" and not args.instructions:
            parser.error(f"--mode {args.mode} requires --instructions")

    return args


class ProgressBar:
    """Feeds orchestrator progress updates into a tqdm bar."""

    def __init__(self) -> None:
        self.bar = tqdm(total=0, desc="Lesson", unit="unit")

    def __call__(self, update: ProgressUpdate) -> None:
        if update.total is not None and update.total != self.bar.total:
            self.bar.total = update.total
        if update.current is not None:
            self.bar.n = update.current
        self.bar.set_description(update.stage.value)
        self.bar.set_postfix_str(update.message)
        if update.stage is ProgressStage.COMPLETE:
            self.bar.close()

    def close(self) -> None:
        self.bar.close()


def build_structured_input(args: argparse.Namespace) -> StructuredLessonInput:
    week_lessons: List[WeekLesson] = []
    if args.week_lessons:
        week_lessons = [WeekLesson(**item) for item in read_json(args.week_lessons)]

    return StructuredLessonInput(
        user_level=args.level,
        target_language=args.target_language,
        native_language=args.native_language,
        lesson_title=args.lesson_title,
        lesson_description=args.lesson_description,
        week_title=args.week_title,
        week_description=args.week_description,
        week_lessons_so_far=week_lessons,
        previous_weeks_summary=args.previous_weeks_summary,
    )


async def run(args: argparse.Namespace, orchestrator: LessonOrchestrator) -> SectionedLesson:
    """Run the requested pipeline or redo operation and return the resulting lesson."""
    if args.lesson is not None:
        lesson = read_model(args.lesson, SectionedLesson)
        if args.redo_unit is not None:
            section_index, unit_index = args.redo_unit
            unit = await orchestrator.redo_unit(lesson, section_index, unit_index)
            return lesson.replace_unit(section_index, unit_index, unit)
        if args.redo_section is not None:
            section = await orchestrator.redo_section(lesson, args.redo_section)
            return lesson.replace_section(section)
        return lesson

    progress = ProgressBar()
    try:
        if args.mode == "structured":
            return await orchestrator.create_structured_lesson(
                build_structured_input(args),
                progress=progress,
                include_summaries=args.summaries,
            )

        lesson_input = LessonInput(
            instructions=args.instructions,
            user_level=args.level,
            target_language=args.target_language,
            native_language=args.native_language,
        )
        if args.mode == "flat":
            return await orchestrator.create_flat_lesson(lesson_input, progress=progress)
        return await orchestrator.create_sectioned_lesson(lesson_input, progress=progress)
    finally:
        progress.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = parse_args(argv)

    configure_logging(level=getattr(logging, args.log_level), json_format=False)

    logger.info("=" * 80)
    logger.info("Lesson Generation")
    logger.info("=" * 80)
    if args.lesson is not None:
        logger.info(f"Lesson: {args.lesson}")
        if args.redo_unit is not None:
            logger.info(f"Redo unit: section {args.redo_unit[0]}, unit {args.redo_unit[1]}")
        if args.redo_section is not None:
            logger.info(f"Redo section: {args.redo_section}")
    else:
        logger.info(f"Mode: {args.mode}")
        logger.info(f"Level: {args.level}")
        logger.info(f"Languages: {args.target_language} (native {args.native_language})")
    logger.info(f"Output: {args.output}")
    logger.info("=" * 80)

    llm_client = LLMClient(model=args.model)
    orchestrator = LessonOrchestrator(
        llm_client,
        recorder=DebugRecorder(output_dir=args.debug_dir, enabled=not args.no_debug),
        section_failure_policy=(
            SectionFailurePolicy.KEEP_PARTIAL if args.keep_partial else SectionFailurePolicy.ALL_OR_NOTHING
        ),
    )

    try:
        lesson = asyncio.run(run(args, orchestrator))
    except (LessonGenerationError, IndexError) as e:
        logger.error(f"Lesson generation failed: {e}", exc_info=True)
        return 1

    write_model(lesson, args.output)

    failed = [s for s in lesson.sections if s.failed]
    unit_count = sum(len(s.units) for s in lesson.sections)
    logger.info(f"Sections: {len(lesson.sections)} ({len(failed)} failed), units: {unit_count}")

    usage = llm_client.get_usage_summary()
    logger.info("-" * 80)
    logger.info("TOKEN USAGE & COST")
    logger.info("-" * 80)
    logger.info(f"Model: {usage['model']}")
    logger.info(f"Total tokens: {usage['total_tokens']:,}")
    logger.info(f"Estimated cost: ${usage['estimated_cost_usd']:.4f}")
    logger.info("=" * 80)

    return 0


if __name__ == "__main__":
    sys.exit(main())
