"""CLI for generating a month/week/lesson curriculum from a learning goal.

Usage:
    python -m lessongen.cli.generate_curriculum \\
        --goal "Complete beginner, conversational Spanish in 6 months" \\
        --output output/curriculum.json
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from lessongen.exceptions import LessonGenerationError
from lessongen.generators.curriculum_generator import CurriculumGenerator
from lessongen.utils.file_io import write_model
from lessongen.utils.llm_client import LLMClient
from lessongen.utils.logging_config import configure_logging

logger = logging.getLogger(__name__)

load_dotenv()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Generate a curriculum (months → weeks → lessons) for a learning goal",
    )
    goal = parser.add_mutually_exclusive_group(required=True)
    goal.add_argument("--goal", help="Learner goal as free text")
    goal.add_argument("--goal-file", type=Path, help="Text file containing the learner goal")
    parser.add_argument("--output", required=True, type=Path, help="Output JSON file path")
    parser.add_argument("--model", default=None, help="LLM model (default: LLM_MODEL env var)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = parse_args(argv)
    configure_logging(level=getattr(logging, args.log_level), json_format=False)

    user_goal = args.goal
    if args.goal_file:
        user_goal = args.goal_file.read_text(encoding="utf-8").strip()

    llm_client = LLMClient(model=args.model)
    generator = CurriculumGenerator(llm_client)

    try:
        curriculum = asyncio.run(generator.generate_curriculum(user_goal))
    except LessonGenerationError as e:
        logger.error(f"Curriculum generation failed: {e}", exc_info=True)
        return 1

    write_model(curriculum, args.output)

    for month in curriculum.months:
        logger.info(f"Month {month.month_index + 1}: {month.name} ({len(month.weeks)} weeks)")

    usage = llm_client.get_usage_summary()
    logger.info(f"Total tokens: {usage['total_tokens']:,}, estimated cost: ${usage['estimated_cost_usd']:.4f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
