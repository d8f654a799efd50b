"""Unit types and the output schema produced for each of them.

Every model here doubles as the response model handed to the completion
client, so field descriptions are written for the LLM as much as for readers.
"""

from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple, Type, Union

from pydantic import BaseModel, Field


# ============================================================================
# Enums
# ============================================================================


class UnitType(str, Enum):
    """Exercise unit type (closed set of 9)."""

    FLASHCARD = "flashcard"
    EXPLANATION = "explanation"
    FILL_IN_BLANKS = "fill_in_blanks"
    WORD_MATCH = "word_match"
    WRITE_IN_BLANKS = "write_in_blanks"
    TRANSLATION = "translation"
    CONVERSATION = "conversation"
    WRITING_PRACTICE = "writing_practice"
    WORD_ORDER = "word_order"


UNIT_TYPE_NAMES: Dict[UnitType, str] = {
    UnitType.FLASHCARD: "Vocabulary flashcards",
    UnitType.EXPLANATION: "Concept explanation",
    UnitType.FILL_IN_BLANKS: "Multiple-choice fill-in",
    UnitType.WORD_MATCH: "Matching exercise (2 columns)",
    UnitType.WRITE_IN_BLANKS: "User types answer (no choices)",
    UnitType.TRANSLATION: "Translate paragraph/sentences",
    UnitType.CONVERSATION: "Scripted dialogue between 2 characters",
    UnitType.WRITING_PRACTICE: "Open-ended prompts",
    UnitType.WORD_ORDER: "Unscramble words",
}


# ============================================================================
# Flashcard
# ============================================================================


class FlashcardItem(BaseModel):
    """Single flashcard."""

    term: str = Field(..., description="The word or phrase in the target language")
    definition: str = Field(
        ..., description="The translation/meaning in the native language"
    )
    example: Optional[str] = Field(
        None, description="An example sentence using the term (in target language)"
    )
    example_translation: Optional[str] = Field(
        None, description="Translation of the example sentence"
    )


class FlashcardOutput(BaseModel):
    cards: List[FlashcardItem] = Field(
        ...,
        description="Array of flashcard items with terms, definitions, and optional examples",
    )
    theme: str = Field(..., description="The theme or category of these flashcards")


# ============================================================================
# Explanation
# ============================================================================


class ExplanationOutput(BaseModel):
    """Free-text explanation wrapped so it can sit in a CompiledUnit."""

    explanation: str = Field(..., description="The full explanation in Markdown format")


# ============================================================================
# Fill in the blanks / Write in the blanks
# ============================================================================


class FillInBlanksExercise(BaseModel):
    template: str = Field(
        ..., description="The sentence with [*] for blanks. E.g., 'Yo [*] hambre.'"
    )
    answers: List[str] = Field(
        ..., description="The correct words for the [*] slots in order"
    )
    distractors: List[str] = Field(..., description="Incorrect words")


class FillInBlanksOutput(BaseModel):
    exercises: List[FillInBlanksExercise] = Field(
        ..., description="An array of Fill in the Blanks exercises"
    )


class WrittenBlank(BaseModel):
    correct_answer: str = Field(..., description="The exact string the user must type")
    clue: str = Field(..., description="The infinitive or root word, e.g., '(ir)'")
    accepted_alternates: List[str] = Field(
        default_factory=list,
        description="Variations to accept, e.g. with/without accents",
    )


class WriteInBlanksExercise(BaseModel):
    template: str = Field(
        ..., description="The sentence with [*] for blanks. E.g., 'Yo [*] hambre.'"
    )
    blanks: List[WrittenBlank]


class WriteInBlanksOutput(BaseModel):
    exercises: List[WriteInBlanksExercise] = Field(
        ..., description="An array of Write in the Blanks exercises"
    )


# ============================================================================
# Word match
# ============================================================================


class ColumnLabels(BaseModel):
    a: str = Field(..., description="E.g., 'Sentence Start'")
    b: str = Field(..., description="E.g., 'Sentence End'")


class WordMatchExercise(BaseModel):
    column_labels: ColumnLabels
    pairs: List[Tuple[str, str]] = Field(
        ..., description="Pairs of strings that belong together"
    )
    distractors: List[str] = Field(
        ..., description="Extra items for Column B that fit the theme but are wrong"
    )
    instruction: str = Field(
        ...,
        description="E.g., 'Match the Spanish verbs with their English translations.'",
    )


class WordMatchOutput(BaseModel):
    exercises: List[WordMatchExercise]


# ============================================================================
# Translation
# ============================================================================


class TranslationExercise(BaseModel):
    paragraph: str = Field(
        ...,
        description="The paragraph or sentence in the starting language the user needs to translate",
    )
    translation: str = Field(..., description="The ideal translation of the paragraph")


class TranslationOutput(BaseModel):
    exercises: List[TranslationExercise] = Field(
        ..., description="An array of Translation exercises"
    )


# ============================================================================
# Conversation
# ============================================================================


class ConversationCharacter(BaseModel):
    name: str = Field(..., description="The name of the character")
    age: Literal["child", "teen", "adult", "elderly"] = Field(
        ..., description="The age of the character"
    )
    gender: Literal["male", "female", "other"] = Field(
        ..., description="The gender of the character"
    )


class ConversationOutput(BaseModel):
    characters: List[ConversationCharacter] = Field(
        ..., description="The characters in the conversation"
    )
    conversation: str = Field(
        ...,
        description=(
            "The full conversation text. Format: **Name**: Dialogue sentence. "
            "Use new lines between turns."
        ),
    )


# ============================================================================
# Writing practice
# ============================================================================


class WritingPrompt(BaseModel):
    prompt: str = Field(
        ...,
        description="The writing prompt/question in the target language that the user must respond to",
    )
    prompt_translation: str = Field(
        ..., description="Translation of the prompt in the native language for clarity"
    )
    hints: Optional[List[str]] = Field(
        None, description="Optional vocabulary or grammar hints to help the user"
    )
    expected_length: Literal["short", "medium", "long"] = Field(
        ...,
        description="Expected response length: short (1-2 sentences), medium (3-5 sentences), long (paragraph)",
    )


class WritingPracticeOutput(BaseModel):
    topic: str = Field(..., description="The overall topic or theme of the writing prompts")
    prompts: List[WritingPrompt] = Field(
        ..., description="Array of writing prompts for the user to respond to"
    )


# ============================================================================
# Word order
# ============================================================================


class WordOrderSentence(BaseModel):
    sentence: str = Field(..., description="A complete sentence in the target language")
    translation: str = Field(
        ..., description="The translation of the sentence in the native language"
    )


class WordOrderOutput(BaseModel):
    sentences: List[WordOrderSentence] = Field(
        ..., description="Array of sentences for the user to reorder"
    )


# ============================================================================
# Type -> schema mapping
# ============================================================================

UnitOutput = Union[
    FlashcardOutput,
    ExplanationOutput,
    FillInBlanksOutput,
    WordMatchOutput,
    WriteInBlanksOutput,
    TranslationOutput,
    ConversationOutput,
    WritingPracticeOutput,
    WordOrderOutput,
]

UNIT_OUTPUT_SCHEMAS: Dict[UnitType, Type[BaseModel]] = {
    UnitType.FLASHCARD: FlashcardOutput,
    UnitType.EXPLANATION: ExplanationOutput,
    UnitType.FILL_IN_BLANKS: FillInBlanksOutput,
    UnitType.WORD_MATCH: WordMatchOutput,
    UnitType.WRITE_IN_BLANKS: WriteInBlanksOutput,
    UnitType.TRANSLATION: TranslationOutput,
    UnitType.CONVERSATION: ConversationOutput,
    UnitType.WRITING_PRACTICE: WritingPracticeOutput,
    UnitType.WORD_ORDER: WordOrderOutput,
}
