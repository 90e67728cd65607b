"""Conversation flow controller: who speaks next.

One ConversationFlowState per conversation id, owned by a FlowController.
Each call to get_next_speaker tries the @mentions of the last message in
order, lets the chain guard veto them, and falls back to anti-repetition
random selection when no mention is usable.

The controller never suspends, but get_next_speaker performs several
read-modify-write steps across the state maps. Callers that may run turns
for the same conversation concurrently must hold lock(conversation_id)
around selection and the generation that follows it.
"""

import asyncio
import logging
import random
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from config.config_loader import FlowConfig
from roundtable.chains import (
    ChainKey,
    check_mention_chain,
    record_mention,
    reset_chains_for_speaker,
)
from roundtable.mentions import (
    extract_mentions,
    extract_mentions_from_messages,
    find_participant_by_name,
)
from roundtable.models import FlowStatistics, MentionRecord, Message, Participant
from roundtable.selection import record_turn, select_random_speaker

logger = logging.getLogger(__name__)

REASON_RANDOM = "smart_random"


def _epoch_ms() -> float:
    return time.time() * 1000


@dataclass
class ConversationFlowState:
    participants: list[Participant]
    # Shuffled once at init. Diagnostics only; selection never reads it.
    speaking_order: list[Participant]
    max_mention_chain: int = 2
    mention_cooldown_ms: int = 30_000
    chain_expiry_ms: int = 300_000
    max_consecutive_turns: int = 2
    mention_context_window: int = 15
    recent_mention_window_ms: int = 300_000
    last_speaker_id: str | None = None
    consecutive_turn_counts: dict[str, int] = field(default_factory=dict)
    mention_chain_counts: dict[ChainKey, int] = field(default_factory=dict)
    last_mention_timestamps: dict[ChainKey, float] = field(default_factory=dict)
    last_mentions: dict[str, MentionRecord] = field(default_factory=dict)
    last_selection_reason: str | None = None

    @property
    def last_speaker(self) -> Participant | None:
        if self.last_speaker_id is None:
            return None
        return self.participant_by_id(self.last_speaker_id)

    def participant_by_id(self, participant_id: str) -> Participant | None:
        return next((p for p in self.participants if p.id == participant_id), None)


class FlowController:
    """Keyed store of flow states plus the turn-taking policy applied to them."""

    def __init__(
        self,
        settings: FlowConfig | None = None,
        clock: Callable[[], float] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings or FlowConfig()
        self._clock = clock or _epoch_ms
        self._rng = rng or random.Random()
        self._states: dict[str, ConversationFlowState] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    # --- lifecycle ---

    def initialize_conversation(
        self,
        conversation_id: str,
        participants: Sequence[Participant],
    ) -> ConversationFlowState:
        """Create (or silently replace) the flow state for a conversation."""
        members = list(participants)
        speaking_order = list(members)
        self._rng.shuffle(speaking_order)
        s = self._settings
        state = ConversationFlowState(
            participants=members,
            speaking_order=speaking_order,
            max_mention_chain=s.max_mention_chain,
            mention_cooldown_ms=s.mention_cooldown_ms,
            chain_expiry_ms=s.chain_expiry_ms,
            max_consecutive_turns=s.max_consecutive_turns,
            mention_context_window=s.mention_context_window,
            recent_mention_window_ms=s.recent_mention_window_ms,
        )
        self._states[conversation_id] = state
        logger.info(
            "Flow initialized for %s: %d participants, max chain %d",
            conversation_id, len(members), state.max_mention_chain,
        )
        return state

    def get_conversation_state(self, conversation_id: str) -> ConversationFlowState | None:
        return self._states.get(conversation_id)

    def cleanup_conversation(self, conversation_id: str) -> None:
        self._states.pop(conversation_id, None)
        self._locks.pop(conversation_id, None)
        logger.info("Flow state cleaned up for %s", conversation_id)

    def lock(self, conversation_id: str) -> asyncio.Lock:
        """Per-conversation lock serializing turns for the same id."""
        if conversation_id not in self._locks:
            self._locks[conversation_id] = asyncio.Lock()
        return self._locks[conversation_id]

    # --- turn taking ---

    def _speaker_from_mentions(
        self,
        conversation_id: str,
        state: ConversationFlowState,
        last_message: Message,
    ) -> Participant | None:
        sender = last_message.sender_name
        for mention in extract_mentions(last_message.content):
            mentioned = find_participant_by_name(state.participants, mention)
            if mentioned is None or mentioned.display_name == sender:
                continue

            now = self._clock()
            if check_mention_chain(state, sender, mentioned.display_name, now) is not None:
                logger.info(
                    "Mention of %s by %s ignored in %s (chain limit)",
                    mentioned.display_name, sender, conversation_id,
                )
                continue

            record_mention(state, sender, mentioned, now)
            return mentioned
        return None

    def get_next_speaker(
        self,
        conversation_id: str,
        last_message: Message | None = None,
    ) -> Participant | None:
        """Choose the next speaker and update the conversation's bookkeeping.

        Returns None when the conversation was never initialized, or when it
        has no participants at all.
        """
        state = self._states.get(conversation_id)
        if state is None:
            logger.error("No flow state for conversation %s", conversation_id)
            return None

        has_sender = last_message is not None and bool(last_message.sender_name)
        next_speaker: Participant | None = None
        if has_sender and last_message.content:
            next_speaker = self._speaker_from_mentions(conversation_id, state, last_message)

        if next_speaker is not None:
            reason = f"mentioned_by_{last_message.sender_name}"
        else:
            next_speaker = select_random_speaker(state, self._rng)
            reason = REASON_RANDOM
            if has_sender:
                reset_chains_for_speaker(state, last_message.sender_name)

        if next_speaker is None:
            logger.error("Conversation %s has no participants to choose from", conversation_id)
            return None

        record_turn(state, next_speaker)
        state.last_selection_reason = reason
        logger.info(
            "Next speaker for %s: %s (%s, %d consecutive)",
            conversation_id,
            next_speaker.display_name,
            reason,
            state.consecutive_turn_counts[next_speaker.id],
        )
        return next_speaker

    # --- read-only views ---

    def generate_mention_context(
        self,
        conversation_id: str,
        participant: Participant,
        recent_messages: Sequence[Message],
    ) -> str:
        """Advisory prompt hints about mentions, or "" when none apply."""
        state = self._states.get(conversation_id)
        if state is None:
            return ""

        additions: list[str] = []
        record = state.last_mentions.get(participant.id)
        if record and self._clock() - record.timestamp < state.recent_mention_window_ms:
            additions.append(
                f"You were specifically mentioned by {record.mentioned_by}. "
                "What are your thoughts on this?"
            )

        recent = extract_mentions_from_messages(recent_messages, state.mention_context_window)
        if recent:
            additions.append(
                f"Recent mentions: {', '.join(recent)}. You can reference participants "
                "using @Name, but avoid long back-and-forth chains."
            )

        if not additions:
            return ""
        return "\n\nSpecial context:\n" + "\n".join(additions)

    def get_flow_statistics(self, conversation_id: str) -> FlowStatistics | None:
        state = self._states.get(conversation_id)
        if state is None:
            return None

        recent_mentions: dict[str, MentionRecord] = {}
        for participant_id, record in state.last_mentions.items():
            participant = state.participant_by_id(participant_id)
            name = participant.display_name if participant else participant_id
            recent_mentions[name] = MentionRecord(record.mentioned_by, record.timestamp)

        last = state.last_speaker
        return FlowStatistics(
            participant_count=len(state.participants),
            last_speaker=last.display_name if last else None,
            consecutive_turns={
                p.display_name: state.consecutive_turn_counts.get(p.id, 0)
                for p in state.participants
            },
            recent_mentions=recent_mentions,
            mention_chains=dict(state.mention_chain_counts),
            max_mention_chain=state.max_mention_chain,
            mention_cooldown_ms=state.mention_cooldown_ms,
            speaking_order=[p.display_name for p in state.speaking_order],
            last_selection_reason=state.last_selection_reason,
        )
