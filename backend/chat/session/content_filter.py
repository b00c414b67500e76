"""Profanity filtering for relayed chat text."""

from better_profanity import profanity

profanity.load_censor_words()


def clean(text: str) -> str:
    """Return text with profane words masked."""
    return profanity.censor(text)
