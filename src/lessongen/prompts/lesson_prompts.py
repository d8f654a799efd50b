"""Prompts for lesson planning stages.

The sectioned pipeline uses TOPIC_BREAKDOWN then SECTION_GENERATION per
section; the flat pipeline uses FLAT_LESSON_PLAN once. The structured pipeline
asks for LESSON_STRUCTURE markup instead of JSON.
"""

from typing import List

from lessongen.models.lesson import StructuredLessonInput
from lessongen.models.lesson_structure import ParsedUnit
from lessongen.utils.template import render_template

UNIT_REQUIREMENTS = """
### UNIT TYPES (use these EXACT type names)

The "instructions" field must contain ALL details the unit generator needs.

**flashcard** - Vocabulary flashcards
Include: theme, card count (4-6 beginner, 6-10 other), whether to include examples
Example: "Generate 5 flashcards for basic greeting vocabulary. Include example sentences."

**explanation** - Explain ONE concept
Include: exact topic, aspects to cover, depth appropriate to level
Example: "Explain ser vs estar for beginners. Focus on: ser=permanent, estar=temporary."

**fill_in_blanks** - Multiple-choice fill-in
Include: grammar focus, sentence count (3-5), blanks per sentence (1-2), distractor type
Example: "Create 4 fill-in-blank sentences testing ser vs estar. 1 blank each. Distractors: the other verb."

**word_match** - Matching exercise (2 columns)
Include: match type, theme, pair count (4-8), distractor count (2-3)
Example: "Match Spanish infinitive to English meaning. Theme: -ar verbs. 6 pairs, 2 distractors."

**write_in_blanks** - User types answer (no choices)
Include: grammar target, sentence count (2-4), blanks per sentence (1-2), clue format
Example: "Create 3 sentences for -ar verb conjugation. 1 blank each. Provide infinitive as clue."

**translation** - Translate paragraph/sentences
Include: theme, direction, sentence count (1-4)
Example: "Generate 2 sentences about daily routines. Translate English to Spanish."

**conversation** - Scripted dialogue between 2 characters
Include: situation, turn count (4-6 short, 8-10 medium, 12+ long), vocab/grammar to use
Example: "Create a medium conversation (8 turns) at a coffee shop. Use greetings and 'querer'."

**writing_practice** - Open-ended prompts
Include: topic, prompt count (2-3), expected response length
Example: "Generate 2 writing prompts about daily routines. Expect 2-3 sentence responses."

**word_order** - Unscramble words
Include: theme/grammar focus, sentence count (4-7), complexity hint
Example: "Create 5 word order sentences using gustar. Simple present tense."
""".strip()

LEVEL_DEFAULTS = """
### LEVEL-SPECIFIC DEFAULTS (use these unless the instruction says otherwise)

**Beginner:** flashcard 4-5 cards; fill/write-in blanks 3 sentences, 1 blank each;
word match 4-5 pairs, 2 distractors; translation 1-2 short sentences;
conversation short (4-6 turns); writing 2 prompts, short; word order 4-5 simple sentences

**Intermediate:** flashcard 6-8 cards; fill/write-in blanks 4 sentences, 1-2 blanks;
word match 6-8 pairs, 2-3 distractors; translation 2-3 sentences;
conversation medium (8-10 turns); writing 2-3 prompts, medium; word order 5-6 sentences

**Advanced:** flashcard 8-10 cards; fill/write-in blanks 5 sentences, 2 blanks;
word match 8-10 pairs, 3 distractors; translation 3-4 sentences;
conversation long (12+ turns); writing 3 prompts, long; word order 6-8 complex sentences
""".strip()


TOPIC_BREAKDOWN_PROMPT = """
### ROLE
You are the first stage of a custom lesson generation system. You will be given a topic
and need to break it down into a logical sequence of sections. Later stages turn each
section into activities, so your only job is to produce brief section instructions.

### USER PROFILE
- Level: {{userLevel}}
- Target: {{targetLanguage}} / Native: {{nativeLanguage}}

### THE TOPIC
{{instructions}}

### DECONSTRUCTION STRATEGY
Break the topic into as many sections as the user's level needs. If you produce several
sections, finish with a bridge section that combines everything taught before it.
If the topic is simple, use a single section.

Each section instruction is handed to an agent that never sees the other sections or the
original topic. Say where the section fits in the lesson (what came before, what comes next),
then trust that agent to fill in the content. Be extremely concise.

NEVER waste tokens on tone, on explaining grammar to the next agent, or on unneeded detail.

### LEVEL CONSTRAINTS
- **Beginner:** Max 2 sections + (optional) 1 bridge. Keep vocabulary simple.
- **Intermediate:** 2-3 sections + 1 bridge. Introduce common exceptions.
- **Advanced:** 3-4 sections + 1 bridge. Focus on nuance and complex synthesis.

### OUTPUT FORMAT
Return JSON: {"sections": ["Section 1: ...", "Section 2: ..."]}
""".strip()


SECTION_GENERATION_PROMPT = (
    """
### ROLE
You are Stage 2 of a lesson generation system. You receive one section instruction and
must generate the learning units for that section.

### USER PROFILE
- Level: {{userLevel}}
- Target: {{targetLanguage}} / Native: {{nativeLanguage}}

### SECTION INSTRUCTION
{{sectionInstruction}}

---
"""
    + UNIT_REQUIREMENTS
    + """
---

### YOUR TASK
Generate a sequence of units. Follow this learning flow:
1. **Introduce** (explanation or flashcard): set context, teach the rule or vocabulary
2. **Drill** (fill_in_blanks, word_match, write_in_blanks, word_order): practice with guardrails
3. **Produce** (translation, writing_practice, conversation): use it in context

"""
    + LEVEL_DEFAULTS
    + """

### RULES
- Each unit's instructions must be self-contained (the unit generator sees ONLY them)
- For bridging or final sections, include more production units

### OUTPUT FORMAT
Return JSON with a "units" array. Each unit has "type" and "instructions" fields only.
"""
).strip()


FLAT_LESSON_PLAN_PROMPT = (
    """
### ROLE
You are planning a complete short language lesson as a flat list of learning units.

### USER PROFILE
- Level: {{userLevel}}
- Target: {{targetLanguage}} / Native: {{nativeLanguage}}

### LESSON INSTRUCTIONS
{{instructions}}

---
"""
    + UNIT_REQUIREMENTS
    + """
---

"""
    + LEVEL_DEFAULTS
    + """

### RULES
- Introduce before you drill, drill before you produce
- If you provide an explanation, the next unit must test it
- Each unit's instructions must be self-contained

### OUTPUT FORMAT
Return JSON with a "units" array. Each unit has "type" and "instructions" fields only.
"""
).strip()


LESSON_STRUCTURE_PROMPT = """
You're an agent in a pipeline creating a custom language learning lesson. You will be given
a lesson instruction, then you decide how to structure the lesson into logical components.

The components available are:

**flashcard** - Vocabulary flashcards
**explanation** - Explain a concept
**fill_in_blanks** - Multiple-choice fill-in
**word_match** - Matching exercise (2 columns)
**write_in_blanks** - User types answer (no choices)
**translation** - Translate paragraph/sentences
**conversation** - Scripted dialogue between 2 characters
**writing_practice** - Open-ended prompts
**word_order** - Unscramble words

Use components as often as useful and tailor them to the user level: writing and translation
practice are for upper beginners and above. For beginners, prioritise word_order,
write_in_blanks and very basic translation whenever you want them to produce language.
If you provide an explanation, the next unit should always test it.

If the lesson needs vocabulary that will appear throughout but is not its focus, introduce
it first with a flashcard unit. If you introduce several concepts, split the lesson into
sections (explanation -> practice -> repeat).

This lesson is part of a weekly theme on the way to a long term goal. Keep what the user
learnt this week and in previous weeks in mind.

## User Info

{{userInfo}}

## What they have learnt this week:

{{weekSummary}}

## What they have learnt in previous weeks:

{{previousWeekSummary}}

## Current lesson

{{lessonOverview}}

### OUTPUT STRUCTURE (in XML please)

<lesson>
<section name="section name">
<unit type="unit_type" name="display name for unit">Detailed instructions for the unit generator</unit>
</section>
</lesson>

Sections are optional; a lesson may also list <unit> elements directly under <lesson>.
""".strip()


LEARNING_SUMMARY_PROMPT = """
Summarize what a {{userLevel}} {{targetLanguage}} learner (native {{nativeLanguage}}) has just
practiced in the lesson section "{{sectionName}}".

### UNITS IN THIS SECTION
{{unitList}}

Write 2-3 sentences in {{nativeLanguage}}, addressed to the learner, naming the concrete
vocabulary and grammar covered. No headings, no bullet points.
""".strip()


NO_WEEK_LESSONS = "This is the first lesson of the week. No previous lessons yet."
NO_PREVIOUS_WEEKS = "No previous weeks yet."


def build_structure_prompt(structured_input: StructuredLessonInput) -> str:
    """Build the lesson-structure markup prompt for a lesson in a learning journey.

    Args:
        structured_input: Learner profile, lesson overview and journey context

    Returns:
        Rendered LESSON_STRUCTURE_PROMPT
    """
    user_info = (
        f"Level: {structured_input.user_level}\n"
        f"Target Language: {structured_input.target_language}\n"
        f"Native Language: {structured_input.native_language}"
    )

    week_summary = NO_WEEK_LESSONS
    if structured_input.week_lessons_so_far:
        week_summary = "\n".join(
            f"Lesson {i + 1}: {lesson.title} - {lesson.description}"
            for i, lesson in enumerate(structured_input.week_lessons_so_far)
        )
    if structured_input.week_title:
        header = f"Week theme: {structured_input.week_title}"
        if structured_input.week_description:
            header += f" - {structured_input.week_description}"
        week_summary = f"{header}\n{week_summary}"

    lesson_overview = (
        f"Lesson Title: {structured_input.lesson_title}\n"
        f"Description: {structured_input.lesson_description}"
    )

    return render_template(
        LESSON_STRUCTURE_PROMPT,
        {
            "userInfo": user_info,
            "weekSummary": week_summary,
            "previousWeekSummary": structured_input.previous_weeks_summary or NO_PREVIOUS_WEEKS,
            "lessonOverview": lesson_overview,
        },
    )


def build_lesson_plan_context(units: List[ParsedUnit], current_index: int) -> str:
    """Render the "lesson so far" block shown to the generator of one unit.

    Units before ``current_index`` are marked completed, the unit at
    ``current_index`` is marked CURRENT, later units are omitted.
    """
    lines = ["<lesson_plan>"]
    for i, unit in enumerate(units[: current_index + 1]):
        status = "CURRENT" if i == current_index else "completed"
        lines.append(
            f'  <unit index="{i + 1}" type="{unit.type.value}" name="{unit.name}" status="{status}">'
        )
        lines.append(f"    <instructions>{unit.instructions}</instructions>")
        lines.append("  </unit>")
    lines.append("</lesson_plan>")
    return "\n".join(lines)
