"""Shared fixtures: an in-memory completion client and sample unit outputs."""

import asyncio
import random
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, Union

import pytest
from pydantic import BaseModel

from lessongen.models.lesson import (
    LessonInput,
    LessonPlanUnit,
    SectionPlanOutput,
    TopicBreakdownOutput,
)
from lessongen.models.units import (
    ColumnLabels,
    ConversationCharacter,
    ConversationOutput,
    ExplanationOutput,
    FillInBlanksExercise,
    FillInBlanksOutput,
    FlashcardItem,
    FlashcardOutput,
    TranslationExercise,
    TranslationOutput,
    UnitType,
    WordMatchExercise,
    WordMatchOutput,
    WordOrderOutput,
    WordOrderSentence,
    WriteInBlanksExercise,
    WriteInBlanksOutput,
    WritingPracticeOutput,
    WritingPrompt,
    WrittenBlank,
)
from lessongen.utils.debug_recorder import DebugRecorder
from lessongen.utils.llm_client import CompletionClient

SECTION_INSTRUCTIONS = [
    "Greetings and farewells: hola, adiós, buenos días",
    "Introducing yourself: me llamo, soy de",
]

CURRICULUM_RESPONSE = """
Here is a six-month plan.

```xml
<curriculum>
  <Month name="Foundations" description="Greetings and numbers.">
    <Week name="Hello" description="First words.">
      <Lesson name="Greetings">- hola, adiós</Lesson>
      <Lesson name="Names">- me llamo</Lesson>
    </Week>
  </Month>
  <Month name="Everyday life" description="Food and routines.">
    <Week name="Food" description="Ordering food.">
      <Lesson name="Breakfast">- pan, café</Lesson>
    </Week>
    <Week name="Routines" description="Daily verbs.">
      <Lesson name="Mornings">- despertarse</Lesson>
    </Week>
  </Month>
</curriculum>
```
"""


def sample_output(unit_type: UnitType) -> BaseModel:
    """A small valid output for each unit type."""
    samples: Dict[UnitType, BaseModel] = {
        UnitType.FLASHCARD: FlashcardOutput(
            cards=[
                FlashcardItem(term="hola", definition="hello"),
                FlashcardItem(term="adiós", definition="goodbye"),
            ],
            theme="Greetings",
        ),
        UnitType.EXPLANATION: ExplanationOutput(
            explanation="## Ser vs estar\n\nUse *ser* for identity and *estar* for states."
        ),
        UnitType.FILL_IN_BLANKS: FillInBlanksOutput(
            exercises=[
                FillInBlanksExercise(
                    template="Yo [*] hambre.", answers=["tengo"], distractors=["soy", "estoy"]
                )
            ]
        ),
        UnitType.WORD_MATCH: WordMatchOutput(
            exercises=[
                WordMatchExercise(
                    column_labels=ColumnLabels(a="Spanish", b="English"),
                    pairs=[("hola", "hello"), ("gracias", "thank you")],
                    distractors=["cat"],
                    instruction="Match the Spanish words with their English translations.",
                )
            ]
        ),
        UnitType.WRITE_IN_BLANKS: WriteInBlanksOutput(
            exercises=[
                WriteInBlanksExercise(
                    template="Mañana yo [*] al cine.",
                    blanks=[WrittenBlank(correct_answer="voy", clue="(ir)")],
                )
            ]
        ),
        UnitType.TRANSLATION: TranslationOutput(
            exercises=[
                TranslationExercise(
                    paragraph="Hola, me llamo Ana.", translation="Hello, my name is Ana."
                )
            ]
        ),
        UnitType.CONVERSATION: ConversationOutput(
            characters=[
                ConversationCharacter(name="Ana", age="adult", gender="female"),
                ConversationCharacter(name="Luis", age="adult", gender="male"),
            ],
            conversation="**Ana**: ¡Hola!\n**Luis**: ¡Hola, Ana!",
        ),
        UnitType.WRITING_PRACTICE: WritingPracticeOutput(
            topic="Family",
            prompts=[
                WritingPrompt(
                    prompt="Describe tu familia.",
                    prompt_translation="Describe your family.",
                    expected_length="short",
                )
            ],
        ),
        UnitType.WORD_ORDER: WordOrderOutput(
            sentences=[WordOrderSentence(sentence="Yo como pan.", translation="I eat bread.")]
        ),
    }
    return samples[unit_type]


Response = Union[BaseModel, str, BaseException, Callable[[str], Any]]


class FakeCompletionClient(CompletionClient):
    """CompletionClient that answers from a table keyed by response schema.

    A response may be a value, an exception (raised) or a callable taking the
    prompt and returning either. Every call is recorded.
    """

    def __init__(
        self,
        responses: Optional[Dict[Type[BaseModel], Response]] = None,
        free_text: Response = "Free text answer",
        jitter: float = 0.0,
        seed: int = 7,
    ):
        self.responses: Dict[Type[BaseModel], Response] = {
            TopicBreakdownOutput: TopicBreakdownOutput(sections=SECTION_INSTRUCTIONS),
            SectionPlanOutput: SectionPlanOutput(
                units=[
                    LessonPlanUnit(type=UnitType.FLASHCARD, instructions="Greeting words"),
                    LessonPlanUnit(type=UnitType.FILL_IN_BLANKS, instructions="Greeting sentences"),
                ]
            ),
        }
        for unit_type in UnitType:
            if unit_type is not UnitType.EXPLANATION:
                output = sample_output(unit_type)
                self.responses[type(output)] = output
        self.responses.update(responses or {})
        self.free_text = free_text
        self.jitter = jitter
        self.random = random.Random(seed)
        self.structured_calls: List[Tuple[str, Type[BaseModel]]] = []
        self.free_text_calls: List[str] = []

    async def _answer(self, response: Response, prompt: str) -> Any:
        if self.jitter:
            await asyncio.sleep(self.random.uniform(0, self.jitter))
        if callable(response) and not isinstance(response, (BaseModel, BaseException)):
            response = response(prompt)
        if isinstance(response, BaseException):
            raise response
        return response

    async def complete_structured(self, prompt, schema):
        self.structured_calls.append((prompt, schema))
        return await self._answer(self.responses[schema], prompt)

    async def complete_free_text(self, prompt):
        self.free_text_calls.append(prompt)
        return await self._answer(self.free_text, prompt)

    def prompts_for(self, schema: Type[BaseModel]) -> List[str]:
        return [prompt for prompt, called_schema in self.structured_calls if called_schema is schema]

    def get_usage_summary(self) -> dict:
        return {"model": "fake", "total_tokens": 0, "estimated_cost_usd": 0.0}


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_client():
    return FakeCompletionClient()


@pytest.fixture
def recorder(tmp_path):
    return DebugRecorder(output_dir=tmp_path / "debug", enabled=True)


@pytest.fixture
def lesson_input():
    return LessonInput(
        instructions="Greetings and introductions",
        user_level="beginner",
        target_language="Spanish",
        native_language="English",
    )
