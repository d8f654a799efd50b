"""Parser for lesson-structure markup.

Expected shape, with optional ``<section>`` grouping:

    <lesson>
      <section name="Introduction">
        <unit type="flashcard" name="Greetings">Learn hello/goodbye</unit>
      </section>
    </lesson>

Units with an unknown type are skipped with a warning. A missing ``<lesson>``
root or a lesson with no valid units is a MarkupParseError.
"""

import logging
from typing import Iterable, List, Optional

from lessongen.exceptions import MarkupParseError
from lessongen.models.lesson_structure import ParsedSection, ParsedUnit
from lessongen.models.units import UNIT_TYPE_NAMES, UnitType
from lessongen.parsers.markup import Element, extract_root, parse_markup

logger = logging.getLogger(__name__)

LESSON_TAG = "lesson"
SECTION_TAG = "section"
UNIT_TAG = "unit"

# Section name used when the lesson lists units without <section> grouping
DEFAULT_SECTION_NAME = "Lesson"

# Spelled-out names models sometimes use instead of the type identifiers
UNIT_TYPE_ALIASES = {
    "fill in the blanks": UnitType.FILL_IN_BLANKS,
    "fill_in_the_blanks": UnitType.FILL_IN_BLANKS,
    "word meaning match": UnitType.WORD_MATCH,
    "word_meaning_match": UnitType.WORD_MATCH,
    "write in the blanks": UnitType.WRITE_IN_BLANKS,
    "write_in_the_blanks": UnitType.WRITE_IN_BLANKS,
}


def extract_lesson_markup(text: str) -> str:
    """Isolate the ``<lesson>...</lesson>`` element from a raw model response."""
    return extract_root(text, LESSON_TAG)


def normalize_unit_type(raw_type: str) -> Optional[UnitType]:
    """Map a unit ``type`` attribute to a UnitType.

    Returns:
        The UnitType, or None if the value names no known type
    """
    normalized = raw_type.strip().lower()
    if normalized in UNIT_TYPE_ALIASES:
        return UNIT_TYPE_ALIASES[normalized]
    try:
        return UnitType(normalized)
    except ValueError:
        return None


def _parse_units(elements: Iterable[Element]) -> List[ParsedUnit]:
    units: List[ParsedUnit] = []
    for element in elements:
        raw_type = element.get("type")
        unit_type = normalize_unit_type(raw_type)
        if unit_type is None:
            logger.warning(f"Unknown unit type '{raw_type}', skipping")
            continue

        instructions = element.text
        if not instructions:
            logger.warning(f"Unit '{element.get('name')}' ({unit_type.value}) has no instructions, skipping")
            continue

        units.append(
            ParsedUnit(
                type=unit_type,
                name=element.get("name").strip() or UNIT_TYPE_NAMES[unit_type],
                instructions=instructions,
            )
        )
    return units


def _find_lesson(text: str) -> Element:
    lesson = parse_markup(text).find(LESSON_TAG)
    if lesson is None:
        raise MarkupParseError("No <lesson> element found in lesson markup")
    return lesson


def parse_lesson_sections(text: str) -> List[ParsedSection]:
    """Parse lesson markup into named sections of units.

    When the lesson has ``<section>`` children, each becomes a ParsedSection
    (sections left with no valid units are dropped). Otherwise all units are
    wrapped in a single section named "Lesson".

    Args:
        text: Lesson markup (raw model output is fine)

    Returns:
        Non-empty list of sections, each with at least one unit

    Raises:
        MarkupParseError: If there is no <lesson> root or no valid unit
    """
    lesson = _find_lesson(text)

    section_elements = [child for child in lesson.children if child.name == SECTION_TAG]
    sections: List[ParsedSection] = []
    for position, element in enumerate(section_elements, start=1):
        units = _parse_units(element.iter(UNIT_TAG))
        if not units:
            logger.warning(f"Section {position} has no valid units, dropping it")
            continue
        name = element.get("name").strip() or f"Section {position}"
        sections.append(ParsedSection(name=name, units=units))

    if sections:
        loose = [child for child in lesson.children if child.name == UNIT_TAG]
        if loose:
            logger.warning(f"Ignoring {len(loose)} units outside <section> elements")
        return sections

    units = _parse_units(lesson.iter(UNIT_TAG))
    if not units:
        raise MarkupParseError("No valid <unit> elements found in lesson markup")
    return [ParsedSection(name=DEFAULT_SECTION_NAME, units=units)]


def parse_lesson_markup(text: str) -> List[ParsedUnit]:
    """Parse lesson markup into a flat, ordered list of units.

    Raises:
        MarkupParseError: If there is no <lesson> root or no valid unit
    """
    return [unit for section in parse_lesson_sections(text) for unit in section.units]
