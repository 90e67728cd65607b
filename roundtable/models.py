"""Pure dataclasses for the AI Roundtable conversation pipeline. No logic, no deps."""

from dataclasses import dataclass, field


@dataclass
class Participant:
    id: str
    display_name: str            # used for @mention matching and turn tracking
    model_identifier: str = ""   # opaque to the flow controller
    provider_name: str = ""      # key into the configured models
    system_instruction: str = ""


@dataclass
class Message:
    sender_name: str
    content: str
    model: str | None = None
    latency_sec: float = 0.0
    token_count: int | None = None


@dataclass
class ModelResponse:
    provider: str
    model: str
    turn_number: int
    content: str
    latency_sec: float
    token_count: int | None


@dataclass
class MentionRecord:
    mentioned_by: str
    timestamp: float             # epoch milliseconds


@dataclass
class FlowStatistics:
    participant_count: int
    last_speaker: str | None
    consecutive_turns: dict[str, int]
    recent_mentions: dict[str, MentionRecord]
    mention_chains: dict[tuple[str, str], int]
    max_mention_chain: int
    mention_cooldown_ms: int
    speaking_order: list[str] = field(default_factory=list)
    last_selection_reason: str | None = None

    def to_dict(self) -> dict:
        """Render the snapshot with the field names diagnostic consumers expect."""
        return {
            "participantCount": self.participant_count,
            "lastSpeaker": self.last_speaker,
            "consecutiveTurns": dict(self.consecutive_turns),
            "recentMentions": {
                name: {"mentionedBy": rec.mentioned_by, "timestamp": rec.timestamp}
                for name, rec in self.recent_mentions.items()
            },
            "mentionChains": {
                f"{mentioner}-{mentioned}": count
                for (mentioner, mentioned), count in self.mention_chains.items()
            },
            "maxMentionChain": self.max_mention_chain,
            "mentionCooldown": self.mention_cooldown_ms,
            "speakingOrder": list(self.speaking_order),
            "lastSelectionReason": self.last_selection_reason,
        }


@dataclass
class ConversationResult:
    topic: str
    participants: list[Participant]
    messages: list[Message]
    statistics: FlowStatistics | None
    total_duration_sec: float
