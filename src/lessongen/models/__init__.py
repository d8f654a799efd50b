"""Data models for lessons, unit outputs, curricula and debug entries."""

from lessongen.models.curriculum import (
    Curriculum,
    CurriculumLesson,
    CurriculumMonth,
    CurriculumWeek,
)
from lessongen.models.debug import DebugEntry
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
    WeekLesson,
)
from lessongen.models.lesson_structure import ParsedSection, ParsedUnit
from lessongen.models.units import UNIT_OUTPUT_SCHEMAS, UNIT_TYPE_NAMES, UnitType

__all__ = [
    "CompiledSection",
    "CompiledUnit",
    "Curriculum",
    "CurriculumLesson",
    "CurriculumMonth",
    "CurriculumWeek",
    "DebugEntry",
    "LessonContext",
    "LessonInput",
    "LessonPlanUnit",
    "ParsedSection",
    "ParsedUnit",
    "ProgressStage",
    "ProgressUpdate",
    "SectionedLesson",
    "SectionPlanOutput",
    "StructuredLessonInput",
    "TopicBreakdownOutput",
    "UNIT_OUTPUT_SCHEMAS",
    "UNIT_TYPE_NAMES",
    "UnitType",
    "WeekLesson",
]
