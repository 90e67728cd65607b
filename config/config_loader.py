"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class FlowConfig:
    max_mention_chain: int = 2
    mention_cooldown_ms: int = 30_000
    chain_expiry_ms: int = 300_000
    max_consecutive_turns: int = 2
    mention_context_window: int = 15
    recent_mention_window_ms: int = 300_000


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    temperature: float | None = None
    base_url: str | None = None


@dataclass
class ParticipantConfig:
    name: str
    model: str                   # key into AppConfig.models
    system_instruction: str = ""


@dataclass
class PromptsConfig:
    opening: str
    turn: str


@dataclass
class DefaultsConfig:
    max_messages: int
    output_dir: Path
    participants: list[str] = field(default_factory=list)


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    participants: dict[str, ParticipantConfig]
    prompts: PromptsConfig
    flow: FlowConfig = field(default_factory=FlowConfig)
    available_models: set[str] = field(default_factory=set)


def _load_flow(raw: dict | None) -> FlowConfig:
    defaults = FlowConfig()
    raw = raw or {}
    return FlowConfig(
        max_mention_chain=int(raw.get("max_mention_chain", defaults.max_mention_chain)),
        mention_cooldown_ms=int(raw.get("mention_cooldown_ms", defaults.mention_cooldown_ms)),
        chain_expiry_ms=int(raw.get("chain_expiry_ms", defaults.chain_expiry_ms)),
        max_consecutive_turns=int(raw.get("max_consecutive_turns", defaults.max_consecutive_turns)),
        mention_context_window=int(raw.get("mention_context_window", defaults.mention_context_window)),
        recent_mention_window_ms=int(
            raw.get("recent_mention_window_ms", defaults.recent_mention_window_ms)
        ),
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError if a
    participant references a model that is not configured.
    Logs warnings for missing API keys but does not raise — callers check
    available_models.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        max_messages=int(defaults_raw["max_messages"]),
        output_dir=Path(defaults_raw["output_dir"]),
        participants=list(defaults_raw.get("participants", [])),
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        opening=prompts_raw["opening"],
        turn=prompts_raw["turn"],
    )

    models: dict[str, ModelConfig] = {}
    available_models: set[str] = set()

    for model_name, model_raw in raw["models"].items():
        temperature = model_raw.get("temperature")
        models[model_name] = ModelConfig(
            name=model_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            temperature=float(temperature) if temperature is not None else None,
            base_url=model_raw.get("base_url"),
        )

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_models.add(model_name)
            logger.info("Model available: %s", model_name)
        else:
            logger.info(
                "Model skipped (no API key): %s — set %s in .env",
                model_name,
                model_raw["api_key_env"],
            )

    participants: dict[str, ParticipantConfig] = {}
    for participant_name, participant_raw in raw.get("participants", {}).items():
        model_name = participant_raw["model"]
        if model_name not in models:
            raise ValueError(
                f"Participant '{participant_name}' uses unknown model '{model_name}'"
            )
        participants[participant_name] = ParticipantConfig(
            name=participant_name,
            model=model_name,
            system_instruction=str(participant_raw.get("system_instruction", "")).strip(),
        )

    return AppConfig(
        defaults=defaults,
        models=models,
        participants=participants,
        prompts=prompts,
        flow=_load_flow(raw.get("flow")),
        available_models=available_models,
    )
