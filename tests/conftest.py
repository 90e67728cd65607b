"""Shared pytest fixtures."""

import random
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import (
    AppConfig,
    DefaultsConfig,
    FlowConfig,
    ModelConfig,
    ParticipantConfig,
    PromptsConfig,
)
from roundtable.flow import FlowController
from roundtable.models import Message, ModelResponse, Participant
from roundtable.providers.base import AIProvider

# Far enough past epoch that a never-used chain key (timestamp 0) is out of cooldown
START_MS = 1_000_000_000.0


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = START_MS) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def alice() -> Participant:
    return Participant(id="p-alice", display_name="Alice", model_identifier="model-a", provider_name="mock_a")


@pytest.fixture
def bob() -> Participant:
    return Participant(id="p-bob", display_name="Bob", model_identifier="model-b", provider_name="mock_b")


@pytest.fixture
def carol() -> Participant:
    return Participant(id="p-carol", display_name="Carol", model_identifier="model-c", provider_name="mock_c")


@pytest.fixture
def trio(alice, bob, carol) -> list[Participant]:
    return [alice, bob, carol]


@pytest.fixture
def controller(clock: FakeClock) -> FlowController:
    return FlowController(clock=clock, rng=random.Random(1234))


@pytest.fixture
def conversation(controller: FlowController, trio: list[Participant]) -> str:
    """An initialized three-party conversation id."""
    controller.initialize_conversation("conv-1", trio)
    return "conv-1"


def msg(sender: str, content: str) -> Message:
    return Message(sender_name=sender, content=content)


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        opening="You are {name}. Open the discussion on: {topic}",
        turn=(
            "You are {name}. Topic: {topic}\n\n{transcript}\n\n"
            "- {variety}\n- {mention_guidance}{mention_context}\n\n{name}:"
        ),
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        max_messages=4,
        output_dir=tmp_path / "output",
        participants=["Ada", "Linus"],
    )


@pytest.fixture
def sample_app_config(
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
) -> AppConfig:
    claude = ModelConfig(
        name="claude",
        sdk="anthropic",
        model="claude-sonnet-4-5",
        api_key_env="ANTHROPIC_API_KEY",
        timeout_sec=60,
        max_tokens=1000,
    )
    openai = ModelConfig(
        name="openai",
        sdk="openai",
        model="gpt-4.1",
        api_key_env="OPENAI_API_KEY",
        timeout_sec=60,
        max_tokens=1000,
    )
    return AppConfig(
        defaults=sample_defaults_config,
        models={"claude": claude, "openai": openai},
        participants={
            "Ada": ParticipantConfig(name="Ada", model="claude", system_instruction="Be careful."),
            "Linus": ParticipantConfig(name="Linus", model="openai", system_instruction="Be blunt."),
        },
        prompts=sample_prompts_config,
        flow=FlowConfig(),
        available_models={"claude", "openai"},
    )


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate is defined in the class body below.
        self.generate = AsyncMock(  # type: ignore[assignment]
            return_value=ModelResponse(
                provider=provider_name,
                model="mock-model",
                turn_number=1,
                content=response_content,
                latency_sec=0.1,
                token_count=10,
            )
        )

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def generate(  # type: ignore[override]
        self,
        prompt: str,
        turn_number: int,
        system: str | None = None,
    ) -> ModelResponse:
        """Default implementation; replaced by AsyncMock in __init__."""
        return ModelResponse(
            provider=self._name,
            model="mock-model",
            turn_number=turn_number,
            content=self._response_content,
            latency_sec=0.1,
            token_count=10,
        )


@pytest.fixture
def trio_providers() -> dict[str, MockProvider]:
    return {
        "mock_a": MockProvider("mock_a", "Alice thinks so."),
        "mock_b": MockProvider("mock_b", "Bob disagrees."),
        "mock_c": MockProvider("mock_c", "Carol wonders."),
    }
