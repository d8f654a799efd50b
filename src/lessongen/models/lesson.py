"""Pydantic models for lesson plans, compiled units and sectioned lessons.

Lessons are assembled from immutable pieces: a redo replaces a unit or a
section wholesale instead of mutating it in place.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lessongen.models.units import UNIT_OUTPUT_SCHEMAS, UnitOutput, UnitType


# ============================================================================
# Defaults for learner context
# ============================================================================

# Placeholders until per-learner vocabulary and grammar tracking exists
DEFAULT_WORD_LIST: List[str] = [
    # Household & common objects
    "mesa", "silla", "ventana", "libro", "casa", "puerta",
    # People & relationships
    "amigo", "familia", "persona",
    # Time & frequency
    "mañana", "noche", "día", "ayer", "siempre",
    # Adjectives
    "feliz", "verde", "grande", "pequeño",
    # Intermediate verbs
    "lograr", "aprovechar", "desarrollar", "soportar",
    # Abstract/intermediate
    "extraño", "actual", "rincón", "cotidiano", "alrededor",
]

DEFAULT_GRAMMAR_LIST: List[str] = [
    "present tense regular verbs",
    "definite articles (el, la, los, las)",
    "adjective agreement",
    "question formation",
    "ser vs estar basics",
]


# ============================================================================
# Plans and compiled units
# ============================================================================


class LessonPlanUnit(BaseModel):
    """Pre-generation specification of a unit (type + free-text instructions)."""

    model_config = ConfigDict(frozen=True)

    type: UnitType = Field(..., description="One of the unit types, using the EXACT type name")
    instructions: str = Field(
        ...,
        description="A COMPLETE instruction string with ALL details the unit generator needs",
    )


class CompiledUnit(BaseModel):
    """A lesson plan unit after successful, schema-validated generation.

    The class of ``output`` is fixed by ``type``; raw dicts (e.g. loaded from a
    saved lesson) are coerced into the matching model.
    """

    model_config = ConfigDict(frozen=True)

    type: UnitType
    plan: LessonPlanUnit
    output: UnitOutput

    @model_validator(mode="before")
    @classmethod
    def coerce_output(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not isinstance(data.get("output"), dict):
            return data
        try:
            schema = UNIT_OUTPUT_SCHEMAS.get(UnitType(data.get("type")))
        except ValueError:
            return data
        if schema is None:
            return data
        return {**data, "output": schema.model_validate(data["output"])}

    @model_validator(mode="after")
    def check_output_matches_type(self) -> "CompiledUnit":
        expected = UNIT_OUTPUT_SCHEMAS[self.type]
        if not isinstance(self.output, expected):
            raise ValueError(
                f"output for unit type '{self.type.value}' must be {expected.__name__}, "
                f"got {type(self.output).__name__}"
            )
        if self.plan.type != self.type:
            raise ValueError(
                f"plan type '{self.plan.type.value}' does not match unit type '{self.type.value}'"
            )
        return self


class CompiledSection(BaseModel):
    """A section of a lesson with its plans and compiled units.

    ``units[i]`` corresponds to ``unit_plans[i]``. ``error`` is only set when
    the orchestrator runs with the keep-partial failure policy.
    """

    model_config = ConfigDict(frozen=True)

    section_instruction: str
    section_index: int
    unit_plans: List[LessonPlanUnit]
    units: List[CompiledUnit]
    name: Optional[str] = None
    learning_summary: Optional[str] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


# ============================================================================
# Pipeline inputs
# ============================================================================


class LessonInput(BaseModel):
    """Learner context and instructions for the flat and sectioned pipelines."""

    model_config = ConfigDict(frozen=True)

    instructions: str = Field(..., min_length=1)
    user_level: str = Field(..., description="beginner, intermediate or advanced")
    target_language: str = "Spanish"
    native_language: str = "English"


class WeekLesson(BaseModel):
    title: str
    description: str


class StructuredLessonInput(BaseModel):
    """Input for markup-based lesson generation within a learning journey."""

    model_config = ConfigDict(frozen=True)

    user_level: str
    target_language: str = "Spanish"
    native_language: str = "English"

    lesson_title: str
    lesson_description: str

    week_title: Optional[str] = None
    week_description: Optional[str] = None
    week_lessons_so_far: List[WeekLesson] = Field(default_factory=list)
    previous_weeks_summary: Optional[str] = None

    @property
    def section_instruction(self) -> str:
        return f"{self.lesson_title}: {self.lesson_description}"

    def to_lesson_input(self) -> LessonInput:
        return LessonInput(
            instructions=self.section_instruction,
            user_level=self.user_level,
            target_language=self.target_language,
            native_language=self.native_language,
        )


class LessonContext(BaseModel):
    """Learner profile handed to every unit prompt."""

    model_config = ConfigDict(frozen=True)

    user_level: str
    target_language: str
    native_language: str
    user_word_list: List[str] = Field(default_factory=lambda: list(DEFAULT_WORD_LIST))
    user_grammar_list: List[str] = Field(default_factory=lambda: list(DEFAULT_GRAMMAR_LIST))
    lesson_plan_context: Optional[str] = None

    @classmethod
    def from_input(cls, lesson_input: LessonInput, **overrides: Any) -> "LessonContext":
        return cls(
            user_level=lesson_input.user_level,
            target_language=lesson_input.target_language,
            native_language=lesson_input.native_language,
            **overrides,
        )

    def template_values(self) -> Dict[str, Any]:
        """Values available to every unit prompt template."""
        return {
            "userLevel": self.user_level,
            "targetLanguage": self.target_language,
            "nativeLanguage": self.native_language,
            "userWordList": ", ".join(self.user_word_list),
            "userGrammarList": ", ".join(self.user_grammar_list),
            "lessonPlanContext": self.lesson_plan_context,
        }


# ============================================================================
# Stage outputs
# ============================================================================


class TopicBreakdownOutput(BaseModel):
    """Stage 1: ordered section instructions."""

    sections: List[str] = Field(
        ...,
        min_length=1,
        description=(
            "An array of detailed instructional strings. Each string describes one logical "
            "sub-section of the topic, what specifically to teach, key points to cover, "
            "common mistakes to address, and the suggested flow of activities for that section."
        ),
    )


class SectionPlanOutput(BaseModel):
    """Stage 2: ordered unit plans for one section (or a whole flat lesson)."""

    units: List[LessonPlanUnit] = Field(
        ...,
        description=(
            "A sequence of learning units for this section. Each unit has a specific "
            "type and instructions."
        ),
    )


# ============================================================================
# Root artifact
# ============================================================================


class SectionedLesson(BaseModel):
    """A complete lesson organized into sections."""

    model_config = ConfigDict(frozen=True)

    input: LessonInput
    section_instructions: List[str]
    sections: List[CompiledSection]

    @model_validator(mode="after")
    def check_sections_match_instructions(self) -> "SectionedLesson":
        if len(self.sections) != len(self.section_instructions):
            raise ValueError(
                f"{len(self.sections)} sections for {len(self.section_instructions)} section instructions"
            )
        return self

    def replace_section(self, section: CompiledSection) -> "SectionedLesson":
        """Return a copy with the section at ``section.section_index`` swapped."""
        sections = list(self.sections)
        sections[section.section_index] = section
        return self.model_copy(update={"sections": sections})

    def replace_unit(
        self, section_index: int, unit_index: int, unit: CompiledUnit
    ) -> "SectionedLesson":
        """Return a copy with a single unit swapped."""
        section = self.sections[section_index]
        units = list(section.units)
        units[unit_index] = unit
        return self.replace_section(section.model_copy(update={"units": units}))


# ============================================================================
# Progress channel
# ============================================================================


class ProgressStage(str, Enum):
    STRUCTURE = "structure"
    PARSING = "parsing"
    UNITS = "units"
    SUMMARIES = "summaries"
    COMPLETE = "complete"


class ProgressUpdate(BaseModel):
    """Observational progress event for callers streaming status to a user."""

    stage: ProgressStage
    message: str
    current: Optional[int] = None
    total: Optional[int] = None
