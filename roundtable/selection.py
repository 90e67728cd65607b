"""Random speaker selection with anti-repetition damping, plus turn bookkeeping."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from roundtable.models import Participant

if TYPE_CHECKING:
    from roundtable.flow import ConversationFlowState


def select_random_speaker(
    state: ConversationFlowState,
    rng: random.Random,
) -> Participant | None:
    """Pick a speaker at random, never the last one when anyone else exists.

    Participants who just took max_consecutive_turns or more turns in a row
    are only chosen when nobody else is left. Returns None only for an empty
    participant list.
    """
    if not state.participants:
        return None

    available = [p for p in state.participants if p.id != state.last_speaker_id]
    preferred = [
        p for p in available
        if state.consecutive_turn_counts.get(p.id, 0) < state.max_consecutive_turns
    ]
    candidates = preferred or available
    if not candidates:
        return rng.choice(state.participants)
    return rng.choice(candidates)


def record_turn(state: ConversationFlowState, speaker: Participant) -> None:
    """Mark speaker as the last speaker and zero everyone else's streak."""
    state.last_speaker_id = speaker.id
    streak = state.consecutive_turn_counts.get(speaker.id, 0) + 1
    for p in state.participants:
        state.consecutive_turn_counts[p.id] = 0
    state.consecutive_turn_counts[speaker.id] = streak
