"""Mention chain guard: decides whether an @mention may pick the next speaker.

Chains are tracked per ordered pair (mentioner, mentioned). A mention is
refused when one side has already pulled the other in too often, when the
pair has been volleying mentions back and forth, or when the same
directional mention happened within the cooldown.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from roundtable.models import MentionRecord, Participant

if TYPE_CHECKING:
    from roundtable.flow import ConversationFlowState

logger = logging.getLogger(__name__)

ChainKey = tuple[str, str]


class ChainBreakReason(Enum):
    MAX_CHAIN = "max_chain"
    BACK_AND_FORTH = "too_much_back_forth"
    COOLDOWN = "cooldown"


def check_mention_chain(
    state: ConversationFlowState,
    mentioner: str,
    mentioned: str,
    now_ms: float,
) -> ChainBreakReason | None:
    """Return why the mention must be ignored, or None if it may proceed."""
    key: ChainKey = (mentioner, mentioned)
    forward = state.mention_chain_counts.get(key, 0)
    reverse = state.mention_chain_counts.get((mentioned, mentioner), 0)
    since_last = now_ms - state.last_mention_timestamps.get(key, 0)

    if forward >= state.max_mention_chain:
        reason = ChainBreakReason.MAX_CHAIN
    elif forward + reverse >= state.max_mention_chain * 2:
        reason = ChainBreakReason.BACK_AND_FORTH
    elif since_last < state.mention_cooldown_ms:
        reason = ChainBreakReason.COOLDOWN
    else:
        return None

    logger.info(
        "Breaking mention chain %s->%s (%s): forward=%d reverse=%d since_last=%.0fms",
        mentioner, mentioned, reason.value, forward, reverse, since_last,
    )
    return reason


def record_mention(
    state: ConversationFlowState,
    mentioner: str,
    mentioned: Participant,
    now_ms: float,
) -> None:
    """Count an accepted mention and expire pairs idle past chain_expiry_ms."""
    key: ChainKey = (mentioner, mentioned.display_name)
    count = state.mention_chain_counts.get(key, 0) + 1
    state.mention_chain_counts[key] = count
    state.last_mention_timestamps[key] = now_ms
    state.last_mentions[mentioned.id] = MentionRecord(mentioned_by=mentioner, timestamp=now_ms)

    cutoff = now_ms - state.chain_expiry_ms
    expired = [k for k, ts in state.last_mention_timestamps.items() if ts < cutoff]
    for k in expired:
        state.mention_chain_counts.pop(k, None)
        state.last_mention_timestamps.pop(k, None)

    logger.debug(
        "Mention chain %s->%s now %d (%d expired)",
        mentioner, mentioned.display_name, count, len(expired),
    )


def reset_chains_for_speaker(state: ConversationFlowState, speaker_name: str) -> int:
    """Forget every chain the speaker is part of, in either direction.

    Returns the number of pairs removed.
    """
    # both maps share their key set, so scanning one is enough
    keys = [k for k in state.mention_chain_counts if speaker_name in k]
    for k in keys:
        state.mention_chain_counts.pop(k, None)
        state.last_mention_timestamps.pop(k, None)

    if keys:
        logger.debug("Reset %d mention chain(s) for %s", len(keys), speaker_name)
    return len(keys)
