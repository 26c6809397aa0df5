"""Pure dataclasses for the orchestration pipeline. No logic, no deps."""

from dataclasses import dataclass, field


@dataclass
class ChatMessage:
    role: str              # "system", "user" or "assistant"
    content: str


@dataclass
class ProviderSettings:
    provider_id: str
    display_name: str
    weight: float = 1.0
    is_active: bool = True


@dataclass
class Intent:
    category: str          # "table", "research", "code", ... or "general"
    confidence: float
    preferred_provider: str | None


@dataclass
class ChatRequest:
    messages: list[ChatMessage]
    user_prompt: str
    mode: str = "normal"   # "normal", "mix" or "a2a"
    preferred_provider: str | None = None
    conversation_id: str | int | None = None
    new_conversation: bool = False
    session_id: str | None = None


@dataclass
class TranscriptEntry:
    provider: str
    content: str
    phase: str             # "collaboration", "debate" or "synthesis"
    round: int
    failed: bool = False


@dataclass
class DebateSession:
    session_id: str
    phase: str = "init"
    round: int = 0
    transcript: list[TranscriptEntry] = field(default_factory=list)
