"""Registry of unit types: prompt template, output schema and avoid-context rule.

Adding a unit type means adding a UnitType member, an output model and one
entry here. The table is checked when this module is imported, so a missing
entry fails at startup rather than mid-lesson.
"""

from typing import Callable, Dict, List, NamedTuple, Type

from pydantic import BaseModel

from lessongen.models.units import (
    UNIT_OUTPUT_SCHEMAS,
    ConversationOutput,
    ExplanationOutput,
    FillInBlanksOutput,
    FlashcardOutput,
    TranslationOutput,
    UnitType,
    WordMatchOutput,
    WordOrderOutput,
    WriteInBlanksOutput,
    WritingPracticeOutput,
)
from lessongen.prompts import unit_prompts

# Characters of long-form output quoted back in avoid-context
AVOID_EXCERPT_CHARS = 500


# ============================================================================
# Avoid-context rules
# ============================================================================


def _excerpt(text: str) -> str:
    return text[:AVOID_EXCERPT_CHARS]


def _avoid_flashcard(output: FlashcardOutput) -> str:
    terms = ", ".join(card.term for card in output.cards)
    return (
        "IMPORTANT: Generate completely different flashcards. "
        f"DO NOT use any of these terms: {terms}. "
        "Choose different vocabulary within the same theme."
    )


def _avoid_explanation(output: ExplanationOutput) -> str:
    return (
        "IMPORTANT: Generate completely different content. "
        f'The previous explanation covered: "{_excerpt(output.explanation)}...". '
        "Use different examples, different structure, and different explanations."
    )


def _avoid_blank_sentences(output: BaseModel) -> str:
    templates = "; ".join(exercise.template for exercise in output.exercises)
    return (
        "IMPORTANT: Generate completely different sentences. "
        f"DO NOT use any of these sentences or similar variations: {templates}"
    )


def _avoid_word_match(output: WordMatchOutput) -> str:
    words: List[str] = [pair[0] for exercise in output.exercises for pair in exercise.pairs]
    return (
        "IMPORTANT: Generate completely different word pairs. "
        f"DO NOT use any of these words: {', '.join(words)}"
    )


def _avoid_translation(output: TranslationOutput) -> str:
    paragraphs = " | ".join(exercise.paragraph for exercise in output.exercises)
    return (
        "IMPORTANT: Generate a completely different paragraph. "
        f"DO NOT use this paragraph or similar variations: {paragraphs}"
    )


def _avoid_conversation(output: ConversationOutput) -> str:
    return (
        "IMPORTANT: Generate a completely different conversation. "
        f'The previous conversation was: "{_excerpt(output.conversation)}...". '
        "Use different characters, different scenario, different dialogue."
    )


def _avoid_writing_practice(output: WritingPracticeOutput) -> str:
    prompts = "; ".join(prompt.prompt for prompt in output.prompts)
    return (
        "IMPORTANT: Generate completely different writing prompts. "
        f"DO NOT use any of these prompts or similar variations: {prompts}. "
        "Choose a different angle on the same topic."
    )


def _avoid_word_order(output: WordOrderOutput) -> str:
    sentences = "; ".join(sentence.sentence for sentence in output.sentences)
    return (
        "IMPORTANT: Generate completely different sentences. "
        f"DO NOT use any of these sentences or similar variations: {sentences}"
    )


# ============================================================================
# Registry
# ============================================================================


class UnitSpec(NamedTuple):
    template: str
    schema: Type[BaseModel]
    avoid_context: Callable[[BaseModel], str]
    free_text: bool = False  # generated with complete_free_text, not structured output


UNIT_REGISTRY: Dict[UnitType, UnitSpec] = {
    UnitType.FLASHCARD: UnitSpec(
        unit_prompts.FLASHCARD_PROMPT, FlashcardOutput, _avoid_flashcard
    ),
    UnitType.EXPLANATION: UnitSpec(
        unit_prompts.EXPLANATION_PROMPT, ExplanationOutput, _avoid_explanation, free_text=True
    ),
    UnitType.FILL_IN_BLANKS: UnitSpec(
        unit_prompts.FILL_IN_BLANKS_PROMPT, FillInBlanksOutput, _avoid_blank_sentences
    ),
    UnitType.WORD_MATCH: UnitSpec(
        unit_prompts.WORD_MATCH_PROMPT, WordMatchOutput, _avoid_word_match
    ),
    UnitType.WRITE_IN_BLANKS: UnitSpec(
        unit_prompts.WRITE_IN_BLANKS_PROMPT, WriteInBlanksOutput, _avoid_blank_sentences
    ),
    UnitType.TRANSLATION: UnitSpec(
        unit_prompts.TRANSLATION_PROMPT, TranslationOutput, _avoid_translation
    ),
    UnitType.CONVERSATION: UnitSpec(
        unit_prompts.CONVERSATION_PROMPT, ConversationOutput, _avoid_conversation
    ),
    UnitType.WRITING_PRACTICE: UnitSpec(
        unit_prompts.WRITING_PRACTICE_PROMPT, WritingPracticeOutput, _avoid_writing_practice
    ),
    UnitType.WORD_ORDER: UnitSpec(
        unit_prompts.WORD_ORDER_PROMPT, WordOrderOutput, _avoid_word_order
    ),
}


def check_registry() -> None:
    """Verify every UnitType has exactly one consistent registry entry.

    Raises:
        ImportError: If a type is missing or its schema disagrees with the models
    """
    missing = [t.value for t in UnitType if t not in UNIT_REGISTRY]
    if missing:
        raise ImportError(f"Unit registry is missing types: {', '.join(missing)}")

    for unit_type, spec in UNIT_REGISTRY.items():
        if spec.schema is not UNIT_OUTPUT_SCHEMAS.get(unit_type):
            raise ImportError(
                f"Unit registry schema for '{unit_type.value}' does not match UNIT_OUTPUT_SCHEMAS"
            )
        if "{{instructions}}" not in spec.template:
            raise ImportError(f"Prompt template for '{unit_type.value}' has no {{{{instructions}}}}")


check_registry()
