"""Load settings.yaml into typed dataclasses. Validates weights and API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    display_name: str = ""
    temperature: float = 0.7
    base_url: str | None = None
    weight: float = 1.0
    is_active: bool = True
    streaming: bool = False


@dataclass
class PromptsConfig:
    system: str
    collaboration: str
    debate: str
    synthesis: str


@dataclass
class MessagesConfig:
    mix_header: str = "## Mix of Agents\n\n---\n\n"
    no_response: str = "No response received."
    turn_failed: str = "[{provider_name}: failed to generate a response]"
    synthesis_fallback: str = "{provider_name} synthesis failed, synthesizing with {fallback_name} instead...\n\n"
    synthesis_failed: str = "An error occurred during the final synthesis."
    circuit_open: str = "{provider_name} is temporarily unavailable (circuit open)"
    all_failed: str = "All providers failed"
    phase_labels: dict[str, str] = field(default_factory=dict)


@dataclass
class DefaultsConfig:
    fallback_provider: str
    output_dir: Path
    mode: str = "normal"
    timezone: str = "UTC"


@dataclass
class DebateConfig:
    providers: list[str]
    synthesizer: str
    fallback_synthesizer: str


@dataclass
class TypingConfig:
    delay_sec: float = 0.005
    every: int = 5


@dataclass
class IntentTable:
    keywords: dict[str, list[str]] = field(default_factory=dict)
    providers: dict[str, str] = field(default_factory=dict)


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    debate: DebateConfig
    mix_providers: list[str] = field(default_factory=list)
    typing: TypingConfig = field(default_factory=TypingConfig)
    intents: IntentTable = field(default_factory=IntentTable)
    messages: MessagesConfig = field(default_factory=MessagesConfig)
    available_providers: set[str] = field(default_factory=set)

    def display_name(self, provider: str) -> str:
        """Human-readable provider name, falling back to the id."""
        model = self.models.get(provider)
        if model and model.display_name:
            return model.display_name
        return provider


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing and ValueError when a
    provider weight is not positive. Logs missing API keys but does not raise;
    callers check available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        fallback_provider=str(defaults_raw["fallback_provider"]),
        output_dir=Path(defaults_raw.get("output_dir", "./output")),
        mode=str(defaults_raw.get("mode", "normal")),
        timezone=str(defaults_raw.get("timezone", "UTC")),
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        system=prompts_raw["system"],
        collaboration=prompts_raw["collaboration"],
        debate=prompts_raw["debate"],
        synthesis=prompts_raw["synthesis"],
    )

    debate_raw = raw["debate"]
    debate = DebateConfig(
        providers=list(debate_raw["providers"]),
        synthesizer=str(debate_raw["synthesizer"]),
        fallback_synthesizer=str(debate_raw["fallback_synthesizer"]),
    )

    typing_raw = raw.get("typing", {})
    typing_cfg = TypingConfig(
        delay_sec=float(typing_raw.get("delay_sec", 0.005)),
        every=int(typing_raw.get("every", 5)),
    )

    intents_raw = raw.get("intents", {})
    intents = IntentTable(
        keywords={k: [str(w) for w in v] for k, v in intents_raw.get("keywords", {}).items()},
        providers={k: str(v) for k, v in intents_raw.get("providers", {}).items()},
    )

    messages = MessagesConfig(**raw.get("messages", {}))

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        weight = float(model_raw.get("weight", 1.0))
        if weight <= 0:
            raise ValueError(f"Provider '{provider_name}' weight must be positive, got {weight}")
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            display_name=str(model_raw.get("display_name", provider_name)),
            temperature=float(model_raw.get("temperature", 0.7)),
            base_url=model_raw.get("base_url"),
            weight=weight,
            is_active=bool(model_raw.get("is_active", True)),
            streaming=bool(model_raw.get("streaming", False)),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        debate=debate,
        mix_providers=list(raw.get("mix", {}).get("providers", [])),
        typing=typing_cfg,
        intents=intents,
        messages=messages,
        available_providers=available_providers,
    )
