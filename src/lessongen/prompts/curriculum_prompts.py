"""Prompt for goal → curriculum generation."""

CURRICULUM_PROMPT = """
You are going to be given a user goal. Give a week by week breakdown (do not combine
multiple weeks into one) on how to get there.

Assume 4 weeks per month and 5 lessons per week. Typically make the last lesson of each
week a review that combines that week's learning. Lessons take 15-20 minutes and mix
introducing a concept, testing it and combining it with what the user already knows, so
each lesson must be a suitable topic for that length of time. Review lessons must name the
concepts they review.

# LIMITATIONS OF LESSONS #

Lessons are AI generated. They can explain things and run reading, flashcard, production
(writing and translation) and fill in the blank activities. Lessons cannot involve
listening or speaking.

Only include the output specified below, with no leading or trailing text. Output XML.

<curriculum>

<Month name="THEME OF THIS MONTH" description="2-3 SENTENCE DESCRIPTION OF THIS MONTH">

<Week name="THEME OF THIS WEEK" description="2-3 SENTENCE DESCRIPTION OF THIS WEEK">

<Lesson name="NAME OF LESSON">
- Bullet point discussing what the lesson covers
- Bullet point discussing what the lesson covers
</Lesson>

</Week>

</Month>

</curriculum>

## USER GOAL

{{userGoal}}
""".strip()
