"""Conversation orchestration: the turn loop around the flow controller."""

import logging
import random
import time
import uuid
from collections.abc import Callable, Mapping, Sequence

from config.config_loader import PromptsConfig
from roundtable.flow import FlowController
from roundtable.models import ConversationResult, Message, ModelResponse, Participant
from roundtable.prompting import build_opening_prompt, build_turn_prompt, clean_response
from roundtable.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGES = 12


async def _call_provider(
    provider: AIProvider,
    prompt: str,
    turn_number: int,
    system: str | None,
) -> ModelResponse | ProviderError:
    """Call a single provider, retrying once on timeout with 1.5x the timeout.

    Never raises — returns ProviderError on permanent failure.
    """
    try:
        return await provider.generate(prompt, turn_number, system=system)
    except ProviderError as exc:
        if "timed out" not in str(exc).lower():
            logger.warning("Provider %s failed on turn %d: %s", provider.name(), turn_number, exc)
            return exc

        cfg = getattr(provider, "_config", None)
        original_timeout: int | None = None
        if cfg is not None and hasattr(cfg, "timeout_sec"):
            original_timeout = cfg.timeout_sec
            cfg.timeout_sec = int(original_timeout * 1.5)
            logger.warning(
                "Provider %s timed out on turn %d, retrying with %ds (1.5x)",
                provider.name(), turn_number, cfg.timeout_sec,
            )
        else:
            logger.warning("Provider %s timed out on turn %d, retrying", provider.name(), turn_number)
        try:
            return await provider.generate(prompt, turn_number, system=system)
        except ProviderError as retry_exc:
            logger.warning(
                "Provider %s failed after retry on turn %d: %s",
                provider.name(), turn_number, retry_exc,
            )
            return retry_exc
        except Exception as retry_exc:
            logger.warning(
                "Provider %s unexpected failure after retry on turn %d: %s",
                provider.name(), turn_number, retry_exc,
            )
            return ProviderError(provider.name(), f"Unexpected error on retry: {retry_exc}")
        finally:
            if cfg is not None and original_timeout is not None:
                cfg.timeout_sec = original_timeout
    except Exception as exc:
        logger.warning("Provider %s unexpected failure on turn %d: %s", provider.name(), turn_number, exc)
        return ProviderError(provider.name(), f"Unexpected error: {exc}")


async def run_conversation(
    topic: str,
    participants: Sequence[Participant],
    providers: Mapping[str, AIProvider],
    controller: FlowController,
    prompts: PromptsConfig,
    max_messages: int,
    conversation_id: str | None = None,
    on_message: Callable[[Message], None] | None = None,
    rng: random.Random | None = None,
) -> ConversationResult:
    """Run a conversation until max_messages agent messages have been produced.

    Args:
        topic: What the participants discuss.
        participants: Speakers, in registration order. Each participant's
            provider_name must be a key of providers.
        providers: Model key -> AIProvider.
        controller: Flow controller deciding who speaks next.
        prompts: Opening and turn templates.
        max_messages: Number of messages to produce. 0 means
            DEFAULT_MAX_MESSAGES.
        conversation_id: Flow state key; generated when omitted.
        on_message: Optional callback invoked after each message.
        rng: Random source for the opening speaker and prompt variety.

    Returns:
        ConversationResult with the transcript and final flow statistics.

    Raises:
        ValueError: If a participant has no provider.
        RuntimeError: If no speaker can be chosen, or if more consecutive
            turns fail than there are participants.
    """
    if not participants:
        raise ValueError("A conversation needs at least one participant")
    missing = [p.display_name for p in participants if p.provider_name not in providers]
    if missing:
        raise ValueError(f"No provider for participant(s): {', '.join(missing)}")

    max_messages = max_messages or DEFAULT_MAX_MESSAGES
    rng = rng or random.Random()
    conversation_id = conversation_id or uuid.uuid4().hex
    if controller.get_conversation_state(conversation_id) is None:
        controller.initialize_conversation(conversation_id, participants)

    messages: list[Message] = []
    last_message: Message | None = None
    consecutive_failures = 0
    start = time.monotonic()

    logger.info(
        "Starting conversation %s with %d participants, %d messages",
        conversation_id, len(participants), max_messages,
    )

    try:
        while len(messages) < max_messages:
            turn_number = len(messages) + 1
            async with controller.lock(conversation_id):
                if not messages:
                    # The opening speaker is picked outside the flow policy
                    speaker = rng.choice(list(participants))
                    prompt = build_opening_prompt(prompts, speaker, topic)
                else:
                    speaker = controller.get_next_speaker(conversation_id, last_message)
                    if speaker is None:
                        raise RuntimeError(f"No speaker available for conversation {conversation_id}")
                    mention_context = controller.generate_mention_context(
                        conversation_id, speaker, messages,
                    )
                    prompt = build_turn_prompt(prompts, speaker, topic, messages, mention_context, rng)

                provider = providers[speaker.provider_name]
                result = await _call_provider(
                    provider, prompt, turn_number, speaker.system_instruction or None,
                )

            if isinstance(result, ProviderError):
                consecutive_failures += 1
                if consecutive_failures > len(participants):
                    raise RuntimeError(
                        f"{consecutive_failures} consecutive turns failed in conversation {conversation_id}"
                    )
                # Next turn falls back to random selection
                last_message = None
                continue

            consecutive_failures = 0
            message = Message(
                sender_name=speaker.display_name,
                content=clean_response(result.content, speaker.display_name),
                model=result.model,
                latency_sec=result.latency_sec,
                token_count=result.token_count,
            )
            messages.append(message)
            last_message = message
            if logger.isEnabledFor(logging.DEBUG):
                stats = controller.get_flow_statistics(conversation_id)
                logger.debug("Flow statistics after turn %d: %s", turn_number, stats and stats.to_dict())
            if on_message:
                on_message(message)

        statistics = controller.get_flow_statistics(conversation_id)
    finally:
        controller.cleanup_conversation(conversation_id)

    return ConversationResult(
        topic=topic,
        participants=list(participants),
        messages=messages,
        statistics=statistics,
        total_duration_sec=time.monotonic() - start,
    )
