"""@mention extraction and fuzzy participant resolution."""

import re
from collections.abc import Iterable, Sequence

from roundtable.models import Message, Participant

# ASCII word characters only: "@José" yields "jos"
MENTION_PATTERN = re.compile(r"@(\w+)", re.ASCII)

DEFAULT_MENTION_WINDOW = 15


def extract_mentions(content: str) -> list[str]:
    """Return every @mention in content, lower-cased, in text order.

    Duplicates are kept so that a repeated name is offered to the
    resolver once per occurrence.
    """
    if not content:
        return []
    return [m.lower() for m in MENTION_PATTERN.findall(content)]


def _names_match(display_name: str, mention: str) -> bool:
    name = display_name.lower()
    mention = mention.lower()
    return name == mention or mention in name or name in mention


def find_participant_by_name(
    participants: Sequence[Participant],
    mention: str,
) -> Participant | None:
    """Resolve a mention to the first participant whose name matches.

    A name matches on case-insensitive equality, or when either string
    contains the other. This tolerates nicknames and partial names at the
    cost of false positives: "@bob" resolves to "Bobby" when Bobby was
    registered before Bob. Ties go to registration order.
    """
    for participant in participants:
        if _names_match(participant.display_name, mention):
            return participant
    return None


def extract_mentions_from_messages(
    messages: Iterable[Message],
    window: int = DEFAULT_MENTION_WINDOW,
) -> list[str]:
    """Unique mentions across the last `window` messages, first-seen order."""
    recent = list(messages)[-window:] if window > 0 else []
    seen: dict[str, None] = {}
    for msg in recent:
        for mention in extract_mentions(getattr(msg, "content", "") or ""):
            seen.setdefault(mention, None)
    return list(seen)


def is_mentioned(display_name: str, content: str) -> bool:
    """True if any @mention in content resolves to display_name."""
    return any(_names_match(display_name, m) for m in extract_mentions(content))
