"""Parsers for LLM-emitted lesson and curriculum markup.

Both parsers sit on the tolerant tokenizer in ``markup.py`` and are pure
functions over text.
"""

from lessongen.parsers.curriculum_parser import (
    extract_curriculum_markup,
    parse_curriculum_markup,
)
from lessongen.parsers.lesson_parser import (
    extract_lesson_markup,
    parse_lesson_markup,
    parse_lesson_sections,
)

__all__ = [
    "extract_curriculum_markup",
    "extract_lesson_markup",
    "parse_curriculum_markup",
    "parse_lesson_markup",
    "parse_lesson_sections",
]
