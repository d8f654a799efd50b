"""Unit generator prompts, one per unit type.

Every template may use userLevel, targetLanguage, nativeLanguage, instructions,
userWordList, userGrammarList and lessonPlanContext. lessonPlanContext is empty
outside the structured pipeline.
"""

FLASHCARD_PROMPT = """
{{lessonPlanContext}}
You are an expert language teacher creating flashcards for vocabulary learning.

## Context
- User Level: {{userLevel}}
- Target Language: {{targetLanguage}}
- Native Language: {{nativeLanguage}}
- Known Vocabulary: {{userWordList}}

## Instructions
{{instructions}}

## Requirements
1. Create the number of cards the instructions ask for (level default if unspecified)
2. Each card has a term in {{targetLanguage}} and a concise definition in {{nativeLanguage}}
3. Optionally add a simple example sentence with its translation
4. Avoid words already in the known vocabulary list
5. Group terms around the theme and order them from common to less common

## Output Format
A JSON object with "cards" and "theme" (a brief description of the vocabulary theme).
""".strip()


EXPLANATION_PROMPT = """
{{lessonPlanContext}}
### TASK
Generate a clear, pedagogical explanation in {{nativeLanguage}} about {{targetLanguage}} for a
{{userLevel}} student, so the student can apply the concept in upcoming exercises.

### TOPIC TO EXPLAIN
{{instructions}}

### LEVEL-APPROPRIATE GUIDELINES
- **Beginner:** Simple wording, no heavy jargon. 2-3 very clear examples.
- **Intermediate:** Standard grammar terms are fine. Contrast with {{nativeLanguage}}. 3-5 examples.
- **Advanced:** Nuance, regional variation, formal vs informal usage.

### VOCABULARY & GRAMMAR INTEGRATION
Only if they help clarify the topic, use these in your examples:
- Words: [{{userWordList}}]
- Grammar: [{{userGrammarList}}]

### CONSTRAINTS
1. Clean Markdown: bold for emphasis, code blocks for examples
2. Start with a high-level summary, then specific rules and examples
3. Encouraging, expert and concise. No fluff.
""".strip()


FILL_IN_BLANKS_PROMPT = """
{{lessonPlanContext}}
Create "Fill in the Blank" exercises for a {{userLevel}} {{targetLanguage}} student
(native {{nativeLanguage}}).

Topic and specification: {{instructions}}

The student is also reviewing these words: {{userWordList}}. Work some of them into the
non-blank text only where the sentence stays perfectly natural.

### FORMAT
Write each sentence as a template with [*] marking every blank. "answers" lists the
correct word for each blank in order. "distractors" lists wrong options.

### CONSTRAINTS (CRITICAL)
1. **Zero Ambiguity:** Distractors must be incorrect in context. A distractor that fits is a fail.
2. **Real Words Only:** Distractors must be real {{targetLanguage}} words.
3. **No Duplicate Answers:** Never repeat a correct answer among the distractors.
4. **Unique Answers:** In multi-blank sentences each answer fits only its own slot.
""".strip()


WORD_MATCH_PROMPT = """
{{lessonPlanContext}}
Create a "Match the Columns" exercise for a {{userLevel}} {{targetLanguage}} student
(native {{nativeLanguage}}).

Specification: {{instructions}}

The student is also reviewing these words: {{userWordList}}. Include any that fit naturally.

### CONSTRAINTS (CRITICAL)
1. **Column Labels:** Label Column A and Column B by what they contain.
2. **Unique Matches:** Each Column A item has exactly ONE correct Column B match.
3. **Distractors:** Extra Column B items that fit the theme but match nothing. Near-misses, not random words.
4. **Balanced Length:** Items in each column are of similar length.
5. **Clear Instruction:** One concise instruction explaining the matching task.
""".strip()


WRITE_IN_BLANKS_PROMPT = """
{{lessonPlanContext}}
Create "Write in the Blank" exercises for a {{userLevel}} {{targetLanguage}} student
(native {{nativeLanguage}}).

Topic and specification: {{instructions}}

### CONSTRAINTS (CRITICAL)
1. **Blank Marker:** Mark every blank in the template with [*].
2. **Clue Integration:** Every blank has a clue giving the root word to transform, e.g. "(tener)".
3. **Vocabulary Injection:** Work 2-3 words from [{{userWordList}}] into the non-blank text.
4. **Deterministic Answers:** Context must allow only ONE correct form per blank. List
   genuinely acceptable variants in accepted_alternates.
5. **Natural Syntax:** The completed sentence must be natural, conversational {{targetLanguage}}.
""".strip()


TRANSLATION_PROMPT = """
{{lessonPlanContext}}
### TASK
Generate a short paragraph for a {{userLevel}} student to translate, together with an
ideal translation the student can model their answer on. The learner's languages are
{{targetLanguage}} (learning) and {{nativeLanguage}} (native); follow the translation
direction given in the instructions.

### TOPIC/CONTEXT
{{instructions}}

### VOCABULARY (OPTIONAL)
If any of these words fit naturally, include them: [{{userWordList}}]

### CONSTRAINTS
1. Complexity must match {{userLevel}}
2. The paragraph reads like native speech, not a list of disconnected sentences
3. All sentences connect into one coherent theme
""".strip()


CONVERSATION_PROMPT = """
{{lessonPlanContext}}
### TASK
Generate a conversation in {{targetLanguage}} for a {{userLevel}} student.
Create 2 characters relevant to the situation and give their name, age group and gender.

### CONTEXT & TOPIC
{{instructions}}

### LENGTH GUIDE
- **short:** 4-6 turns of dialogue
- **medium:** 8-12 turns of dialogue
- **long:** 14-20 turns of dialogue

### VOCABULARY & GRAMMAR (OPTIONAL)
Words: [{{userWordList}}]
Grammar: [{{userGrammarList}}]
Natural dialogue always wins over including these.

### FORMAT
Write the conversation as one line per turn: "**Name**: utterance".

### CONSTRAINTS (CRITICAL)
1. Vocabulary and structures match the {{userLevel}} level
2. Write how native speakers actually talk, not textbook dialogue
3. Give each character a slightly different speech pattern
""".strip()


WRITING_PRACTICE_PROMPT = """
{{lessonPlanContext}}
### TASK
Create writing practice prompts for a {{userLevel}} {{targetLanguage}} learner
(native {{nativeLanguage}}).

### INSTRUCTIONS
{{instructions}}

### LEVEL DEFAULTS (use if not specified in instructions)
- **Beginner:** 2 prompts, 2-3 sentence responses, simple questions (describe, list)
- **Intermediate:** 2-3 prompts, short paragraph responses, opinion or comparison questions
- **Advanced:** 3 prompts, longer responses, hypothetical or argumentative questions

### CONSTRAINTS
1. Write prompts in {{targetLanguage}} with a translation in {{nativeLanguage}}
2. Include helpful hints (useful vocabulary or structures)
3. expected_length is one of "short", "medium", "long"
""".strip()


WORD_ORDER_PROMPT = """
{{lessonPlanContext}}
You are a language learning assistant creating word order exercises.

### CONTEXT
- User Level: {{userLevel}}
- Target Language: {{targetLanguage}}
- Native Language: {{nativeLanguage}}

### TASK
Generate sentences based on: "{{instructions}}"

Each sentence must:
1. Suit the user's level
2. Be complete and grammatically correct
3. Come with its translation in {{nativeLanguage}}
4. Vary in structure (no repetitive patterns)

### GUIDELINES
- Beginners: 4-7 words per sentence, simple structures
- Intermediate: 6-10 words, some subordinate clauses
- Advanced: 8-15 words, complex structures allowed
""".strip()
