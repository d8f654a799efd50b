"""Parser for curriculum markup.

Expected shape (tag names are case-insensitive):

    <curriculum>
      <Month name="..." description="...">
        <Week name="..." description="...">
          <Lesson name="...">bullet points</Lesson>
        </Week>
      </Month>
    </curriculum>

Indices are assigned in one left-to-right pass: month_index, week_index (within
its month), global_week_index, lesson_index (within its week) and
global_lesson_index. Elements without a ``name`` are skipped and consume no
index.
"""

import logging
from typing import List

from lessongen.exceptions import MarkupParseError
from lessongen.models.curriculum import (
    Curriculum,
    CurriculumLesson,
    CurriculumMonth,
    CurriculumWeek,
)
from lessongen.parsers.markup import Element, extract_root, parse_markup

logger = logging.getLogger(__name__)

CURRICULUM_TAG = "curriculum"
MONTH_TAG = "month"
WEEK_TAG = "week"
LESSON_TAG = "lesson"


def extract_curriculum_markup(text: str) -> str:
    """Isolate the ``<curriculum>...</curriculum>`` element from a raw model response.

    Handles code fences, XML declarations and prose before or after the
    element.
    """
    return extract_root(text, CURRICULUM_TAG)


def _named_children(parent: Element, tag: str) -> List[Element]:
    children = []
    for child in parent.children:
        if child.name != tag:
            continue
        if not child.get("name").strip():
            logger.warning(f"Skipping <{tag}> without a name attribute")
            continue
        children.append(child)
    return children


def parse_curriculum_markup(text: str, user_goal: str) -> Curriculum:
    """Parse curriculum markup into a Curriculum.

    Args:
        text: Curriculum markup (raw model output is fine)
        user_goal: The goal the curriculum was generated for

    Returns:
        Curriculum with totals matching the parsed months, weeks and lessons

    Raises:
        MarkupParseError: If there is no <curriculum> root or it has no months
    """
    root = parse_markup(text).find(CURRICULUM_TAG)
    if root is None:
        raise MarkupParseError("No <curriculum> element found in curriculum markup")

    months: List[CurriculumMonth] = []
    global_week_index = 0
    global_lesson_index = 0

    for month_index, month_el in enumerate(_named_children(root, MONTH_TAG)):
        weeks: List[CurriculumWeek] = []

        for week_index, week_el in enumerate(_named_children(month_el, WEEK_TAG)):
            lessons: List[CurriculumLesson] = []

            for lesson_index, lesson_el in enumerate(_named_children(week_el, LESSON_TAG)):
                lessons.append(
                    CurriculumLesson(
                        name=lesson_el.get("name").strip(),
                        description=lesson_el.text,
                        lesson_index=lesson_index,
                        global_lesson_index=global_lesson_index,
                    )
                )
                global_lesson_index += 1

            weeks.append(
                CurriculumWeek(
                    name=week_el.get("name").strip(),
                    description=week_el.get("description").strip(),
                    week_index=week_index,
                    global_week_index=global_week_index,
                    lessons=lessons,
                )
            )
            global_week_index += 1

        months.append(
            CurriculumMonth(
                name=month_el.get("name").strip(),
                description=month_el.get("description").strip(),
                month_index=month_index,
                weeks=weeks,
            )
        )

    if not months:
        raise MarkupParseError("No valid <Month> elements found in curriculum markup")

    return Curriculum(
        user_goal=user_goal,
        total_months=len(months),
        total_weeks=global_week_index,
        total_lessons=global_lesson_index,
        months=months,
    )
