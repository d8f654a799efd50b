"""Pydantic models for the long-horizon (month/week/lesson) curriculum."""

from typing import List

from pydantic import BaseModel, Field


class CurriculumLesson(BaseModel):
    name: str = Field(..., description="Name/title of the lesson")
    description: str = Field(..., description="Bullet points describing what the lesson covers")
    lesson_index: int = Field(..., description="Index within the week")
    global_lesson_index: int = Field(..., description="Global index across entire curriculum")


class CurriculumWeek(BaseModel):
    name: str = Field(..., description="Theme/title of the week")
    description: str = Field(..., description="2-3 sentence description of what this week covers")
    week_index: int = Field(..., description="Index within the month")
    global_week_index: int = Field(..., description="Global index across entire curriculum")
    lessons: List[CurriculumLesson]


class CurriculumMonth(BaseModel):
    name: str = Field(..., description="Theme/title of the month")
    description: str = Field(..., description="2-3 sentence description of what this month covers")
    month_index: int = Field(..., description="Index of this month (0-based)")
    weeks: List[CurriculumWeek]


class Curriculum(BaseModel):
    user_goal: str
    total_months: int
    total_weeks: int
    total_lessons: int
    months: List[CurriculumMonth]
