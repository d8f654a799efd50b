"""Lesson and curriculum generators."""

from lessongen.generators.curriculum_generator import CurriculumGenerator
from lessongen.generators.lesson_orchestrator import LessonOrchestrator, SectionFailurePolicy
from lessongen.generators.unit_executor import UnitExecutor
from lessongen.generators.unit_registry import UNIT_REGISTRY, UnitSpec

__all__ = [
    "CurriculumGenerator",
    "LessonOrchestrator",
    "SectionFailurePolicy",
    "UNIT_REGISTRY",
    "UnitExecutor",
    "UnitSpec",
]
