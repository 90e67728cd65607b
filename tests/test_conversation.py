"""Tests for roundtable/conversation.py."""

import logging
import random
from unittest.mock import AsyncMock

import pytest

from config.config_loader import ModelConfig
from roundtable.conversation import DEFAULT_MAX_MESSAGES, run_conversation
from roundtable.flow import FlowController
from roundtable.models import Message, ModelResponse
from roundtable.providers.base import ProviderError
from tests.conftest import MockProvider


async def test_run_conversation_produces_messages(controller, trio, trio_providers, sample_prompts_config):
    seen: list[Message] = []
    result = await run_conversation(
        topic="Tabs or spaces?",
        participants=trio,
        providers=trio_providers,
        controller=controller,
        prompts=sample_prompts_config,
        max_messages=5,
        conversation_id="conv-x",
        on_message=seen.append,
        rng=random.Random(3),
    )
    assert len(result.messages) == 5
    assert seen == result.messages
    assert result.topic == "Tabs or spaces?"
    assert result.statistics is not None
    assert result.statistics.participant_count == 3
    assert {m.sender_name for m in result.messages} <= {"Alice", "Bob", "Carol"}
    assert all(m.model == "mock-model" for m in result.messages)


async def test_zero_max_messages_means_default(controller, trio, trio_providers, sample_prompts_config):
    result = await run_conversation(
        topic="t",
        participants=trio,
        providers=trio_providers,
        controller=controller,
        prompts=sample_prompts_config,
        max_messages=0,
        rng=random.Random(5),
    )
    assert len(result.messages) == DEFAULT_MAX_MESSAGES


async def test_replies_are_cleaned_before_recording(controller, alice, bob, sample_prompts_config):
    providers = {
        "mock_a": MockProvider("mock_a", "Alice: **Tabs** win, @Bob."),
        "mock_b": MockProvider("mock_b", "Bob: I think: spaces."),
    }
    result = await run_conversation(
        topic="t",
        participants=[alice, bob],
        providers=providers,
        controller=controller,
        prompts=sample_prompts_config,
        max_messages=2,
    )
    expected = {"Alice": "Tabs win, @Bob.", "Bob": "spaces."}
    for m in result.messages:
        assert m.content == expected[m.sender_name]


async def test_run_conversation_cleans_up_flow_state(controller, trio, trio_providers, sample_prompts_config):
    await run_conversation(
        topic="t",
        participants=trio,
        providers=trio_providers,
        controller=controller,
        prompts=sample_prompts_config,
        max_messages=2,
        conversation_id="conv-x",
    )
    assert controller.get_conversation_state("conv-x") is None


async def test_run_conversation_follows_mentions(controller, trio, sample_prompts_config):
    providers = {
        "mock_a": MockProvider("mock_a", "Over to @Carol"),
        "mock_b": MockProvider("mock_b", "Over to @Carol"),
        "mock_c": MockProvider("mock_c", "Carol here."),
    }
    result = await run_conversation(
        topic="t",
        participants=trio,
        providers=providers,
        controller=controller,
        prompts=sample_prompts_config,
        max_messages=6,
        rng=random.Random(11),
    )
    senders = [m.sender_name for m in result.messages]
    first = next(i for i, s in enumerate(senders) if s in {"Alice", "Bob"})
    if first + 1 < len(senders):
        assert senders[first + 1] == "Carol"


async def test_run_conversation_passes_persona_as_system(controller, alice, bob, sample_prompts_config):
    alice.system_instruction = "Be terse."
    bob.system_instruction = "Be verbose."
    providers = {"mock_a": MockProvider("mock_a"), "mock_b": MockProvider("mock_b")}
    await run_conversation(
        topic="t",
        participants=[alice, bob],
        providers=providers,
        controller=controller,
        prompts=sample_prompts_config,
        max_messages=3,
    )
    for key, persona in (("mock_a", "Be terse."), ("mock_b", "Be verbose.")):
        for call in providers[key].generate.call_args_list:
            assert call.kwargs["system"] == persona


async def test_turn_prompt_includes_transcript(controller, alice, bob, sample_prompts_config):
    prompts: list[str] = []

    def provider(name: str, text: str) -> MockProvider:
        p = MockProvider(name, text)

        async def capture(prompt, turn_number, system=None):
            prompts.append(prompt)
            return ModelResponse(name, "mock-model", turn_number, text, 0.1, 5)

        p.generate = AsyncMock(side_effect=capture)
        return p

    providers = {"mock_a": provider("mock_a", "Alice opens."), "mock_b": provider("mock_b", "Bob replies.")}
    result = await run_conversation(
        topic="Cats or dogs?",
        participants=[alice, bob],
        providers=providers,
        controller=controller,
        prompts=sample_prompts_config,
        max_messages=2,
    )
    assert "Open the discussion on: Cats or dogs?" in prompts[0]
    first = result.messages[0]
    assert f"{first.sender_name}: {first.content}" in prompts[1]


async def test_failed_turn_is_skipped(controller, trio, trio_providers, sample_prompts_config):
    bob_provider = trio_providers["mock_b"]
    ok = ModelResponse("mock_b", "mock-model", 1, "Bob is back.", 0.1, 5)
    bob_provider.generate = AsyncMock(side_effect=[ProviderError("mock_b", "API error")] + [ok] * 10)

    result = await run_conversation(
        topic="t",
        participants=trio,
        providers=trio_providers,
        controller=controller,
        prompts=sample_prompts_config,
        max_messages=4,
        rng=random.Random(2),
    )
    assert len(result.messages) == 4


async def test_all_failing_raises(controller, trio, sample_prompts_config):
    providers = {k: MockProvider(k) for k in ("mock_a", "mock_b", "mock_c")}
    for p in providers.values():
        p.generate = AsyncMock(side_effect=ProviderError(p.name(), "fail"))

    with pytest.raises(RuntimeError, match="consecutive turns failed"):
        await run_conversation(
            topic="t",
            participants=trio,
            providers=providers,
            controller=controller,
            prompts=sample_prompts_config,
            max_messages=3,
            conversation_id="doomed",
        )
    assert controller.get_conversation_state("doomed") is None


async def test_missing_provider_raises(controller, trio, sample_prompts_config):
    with pytest.raises(ValueError, match="No provider"):
        await run_conversation(
            topic="t",
            participants=trio,
            providers={"mock_a": MockProvider("mock_a")},
            controller=controller,
            prompts=sample_prompts_config,
            max_messages=1,
        )


async def test_no_speaker_is_fatal(controller, trio, trio_providers, sample_prompts_config):
    # pre-initialized state without participants: the controller cannot choose
    controller.initialize_conversation("broken", [])
    with pytest.raises(RuntimeError, match="No speaker"):
        await run_conversation(
            topic="t",
            participants=trio,
            providers=trio_providers,
            controller=controller,
            prompts=sample_prompts_config,
            max_messages=3,
            conversation_id="broken",
        )


# --- retry logic ---

def _make_mock_config(timeout_sec: int = 10) -> ModelConfig:
    return ModelConfig(
        name="slow", sdk="test", model="m", api_key_env="K",
        timeout_sec=timeout_sec, max_tokens=100,
    )


async def test_timeout_retried_with_longer_timeout(clock, alice, sample_prompts_config):
    slow = MockProvider("mock_a")
    slow._config = _make_mock_config(100)
    observed: list[int] = []

    async def timeout_then_succeed(prompt, turn_number, system=None):
        observed.append(slow._config.timeout_sec)
        if len(observed) == 1:
            raise ProviderError("slow", "Request timed out after 100s")
        return ModelResponse("slow", "m", turn_number, "Eventually.", 0.1, 5)

    slow.generate = AsyncMock(side_effect=timeout_then_succeed)

    result = await run_conversation(
        topic="t",
        participants=[alice],
        providers={"mock_a": slow},
        controller=FlowController(clock=clock),
        prompts=sample_prompts_config,
        max_messages=1,
    )
    assert [m.content for m in result.messages] == ["Eventually."]
    assert observed == [100, 150]
    assert slow._config.timeout_sec == 100


async def test_failures_logged(controller, alice, bob, sample_prompts_config, caplog):
    bad = MockProvider("mock_b")
    bad.generate = AsyncMock(side_effect=ProviderError("mock_b", "boom"))
    good = MockProvider("mock_a", "fine")
    with caplog.at_level(logging.WARNING):
        with pytest.raises(RuntimeError):
            await run_conversation(
                topic="t",
                participants=[bob],
                providers={"mock_b": bad, "mock_a": good},
                controller=controller,
                prompts=sample_prompts_config,
                max_messages=2,
            )
    assert any("mock_b failed on turn 1" in m for m in caplog.messages)
