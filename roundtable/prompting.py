"""Turn prompt assembly and reply cleanup: transcript window, variety nudges, mention guidance."""

import random
import re
from collections.abc import Sequence

from config.config_loader import PromptsConfig
from roundtable.mentions import is_mentioned
from roundtable.models import Message, Participant

HISTORY_WINDOW = 15

_PREAMBLE = re.compile(r"^(Here is|My response|I think|Let me):\s*", re.IGNORECASE)
_BOLD = re.compile(r"\*\*(.*?)\*\*")
_UNDERSCORE_RUN = re.compile(r"_{2,}")

VARIETY_PROMPTS = [
    "Ask a thoughtful question to engage others.",
    "Share a different perspective from what's been said.",
    "Build on someone else's point with a short comment.",
    "Offer a practical suggestion or example.",
    "Express agreement or disagreement respectfully and briefly.",
    "Reference a specific previous comment using @Name format.",
    "Bring up a related point that hasn't been discussed yet.",
    "Challenge an assumption someone made.",
]


def _contains_mention(msg: Message) -> bool:
    return "@" in (msg.content or "")


def format_transcript(messages: Sequence[Message]) -> str:
    parts = []
    for msg in messages:
        parts.append(f"{msg.sender_name or 'AI'}: {msg.content}")
    return "\n\n".join(parts)


def variety_prompt(
    was_mentioned: bool,
    recent: Sequence[Message],
    rng: random.Random,
) -> str:
    """Pick a style nudge; mentioned speakers are asked to keep it short."""
    if was_mentioned:
        if sum(1 for m in recent[-3:] if _contains_mention(m)) >= 2:
            return (
                "You were mentioned, but avoid creating a long back-and-forth. "
                "Respond briefly and let others join the conversation."
            )
        return "You were specifically mentioned - respond directly but keep it brief."
    return rng.choice(VARIETY_PROMPTS)


def mention_guidance(was_mentioned: bool, recent: Sequence[Message]) -> str:
    if sum(1 for m in recent[-5:] if _contains_mention(m)) >= 3:
        return (
            "IMPORTANT: There have been many @mentions recently. Avoid using @mentions "
            "in your response to let the conversation flow naturally."
        )
    if was_mentioned:
        return "You can @mention someone else if relevant, but keep it brief to avoid long chains."
    return "You can use @Name to reference someone if truly relevant, but don't overuse it."


def build_opening_prompt(prompts: PromptsConfig, participant: Participant, topic: str) -> str:
    return prompts.opening.format(name=participant.display_name, topic=topic)


def build_turn_prompt(
    prompts: PromptsConfig,
    participant: Participant,
    topic: str,
    history: Sequence[Message],
    mention_context: str,
    rng: random.Random,
) -> str:
    """Render the turn template for participant from the recent transcript."""
    recent = list(history)[-HISTORY_WINDOW:]
    last = recent[-1] if recent else None
    was_mentioned = last is not None and is_mentioned(participant.display_name, last.content)

    return prompts.turn.format(
        name=participant.display_name,
        topic=topic,
        transcript=format_transcript(recent),
        variety=variety_prompt(was_mentioned, recent, rng),
        mention_guidance=mention_guidance(was_mentioned, recent),
        mention_context=mention_context,
    )


def clean_response(text: str, display_name: str) -> str:
    """Strip a "<Name>:" echo, filler preambles and bold markup from a reply.

    @mentions are left untouched.
    """
    cleaned = text.strip()
    cleaned = re.sub(rf"^{re.escape(display_name)}:\s*", "", cleaned, flags=re.IGNORECASE)
    cleaned = _PREAMBLE.sub("", cleaned)
    cleaned = _BOLD.sub(r"\1", cleaned)
    return _UNDERSCORE_RUN.sub("", cleaned)
