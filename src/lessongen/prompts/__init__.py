"""Centralized prompt templates for the lesson pipeline.

This package contains every LLM prompt used by the generators:
- lesson_prompts.py: Topic breakdown, section generation, flat plan, lesson
  structure markup and learning summaries
- unit_prompts.py: One template per unit type
- curriculum_prompts.py: Goal → month/week/lesson curriculum markup

Templates use ``{{name}}`` placeholders rendered by
``lessongen.utils.template.render_template``.
"""
