"""Transient structures produced by the lesson markup parser."""

from typing import List

from pydantic import BaseModel, Field

from lessongen.models.lesson import LessonPlanUnit
from lessongen.models.units import UnitType


class ParsedUnit(BaseModel):
    type: UnitType
    name: str = Field(..., description="Display name for this unit")
    instructions: str = Field(..., description="Detailed instructions for the unit generator")

    def to_plan(self) -> LessonPlanUnit:
        return LessonPlanUnit(type=self.type, instructions=self.instructions)


class ParsedSection(BaseModel):
    name: str
    units: List[ParsedUnit]
