"""Generate a month/week/lesson curriculum from a learner's goal."""

import logging

from lessongen.models.curriculum import Curriculum
from lessongen.parsers.curriculum_parser import (
    extract_curriculum_markup,
    parse_curriculum_markup,
)
from lessongen.prompts.curriculum_prompts import CURRICULUM_PROMPT
from lessongen.utils.llm_client import CompletionClient
from lessongen.utils.logging_config import pipeline_stage_logger
from lessongen.utils.template import render_template

logger = logging.getLogger(__name__)


class CurriculumGenerator:
    """Turns a free-text learning goal into a parsed Curriculum."""

    def __init__(self, client: CompletionClient):
        self.client = client

    def build_prompt(self, user_goal: str) -> str:
        return render_template(CURRICULUM_PROMPT, {"userGoal": user_goal})

    async def generate_curriculum(self, user_goal: str) -> Curriculum:
        """Generate and parse a curriculum.

        Args:
            user_goal: Description of the learner and what they want to reach

        Returns:
            Parsed curriculum with month, week and lesson indices assigned

        Raises:
            CompletionError: If the completion call fails
            MarkupParseError: If the response has no <curriculum> or no months
        """
        logger.info(f"Generating curriculum for goal: '{user_goal[:50]}'")

        with pipeline_stage_logger("curriculum_generation"):
            raw = await self.client.complete_free_text(self.build_prompt(user_goal))
            curriculum = parse_curriculum_markup(extract_curriculum_markup(raw), user_goal)

        logger.info(
            f"Generated curriculum: {curriculum.total_months} months, "
            f"{curriculum.total_weeks} weeks, {curriculum.total_lessons} lessons"
        )
        return curriculum
