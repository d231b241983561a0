"""Prompt for the business idea stream.

The prompt is fixed; every connection asks for one fresh idea.
"""

IDEA_PROMPT = (
    "Reply with a new business idea for AI Agents, formatted with headings, "
    "sub-headings and bullet points. "
    "The business case should address processes commonly seen in football "
    "tournament management systems as well as in sports clubs in general. "
    "The business case should use emojis where appropriate."
)

IDEA_MESSAGES = (
    {"role": "user", "content": IDEA_PROMPT},
)
