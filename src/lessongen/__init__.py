"""
Multi-stage lesson generation pipeline for language learners.

This package turns a short natural-language instruction into a sectioned lesson
made of typed exercise units (flashcards, explanations, fill in the blanks, ...)
by orchestrating structured LLM completions.

**Version**: 0.1.0
**Key Dependencies**: instructor, pydantic, openai, anthropic, langfuse
"""

__version__ = "0.1.0"
__author__ = "Lessongen"

# Proficiency levels understood by the prompts
USER_LEVELS = ["beginner", "intermediate", "advanced"]

__all__ = [
    "__version__",
    "__author__",
    "USER_LEVELS",
]
