"""
Optima AI - Providers
=====================
Model registry, provider table, entitlements and completion-token limits.

Every provider is reached through its OpenAI-compatible chat completions
endpoint, so a public model id only has to resolve to a base URL, an API key
and the upstream model name.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import httpx

from config import Settings, get_settings
from exceptions import UnknownModelError
from logging_config import get_logger
from services.image_models import FallbackImageGenerator
from services.llm_factory import LanguageModelClient

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProviderConfig:
    """Connection details for one upstream provider."""

    name: str
    base_url: str
    api_key_setting: str
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ModelSpec:
    """A public model id resolved to ``provider`` and ``upstream`` model name."""

    provider: str
    upstream: str
    reasoning: bool = False


@dataclass(frozen=True)
class ChatModel:
    id: str
    name: str
    description: str


@dataclass(frozen=True)
class Entitlements:
    max_messages_per_day: int
    available_chat_model_ids: List[str]


_ROUTER_HEADERS = {"User-Agent": "ChatOptima/1.0"}

PROVIDERS: Dict[str, ProviderConfig] = {
    "groq": ProviderConfig("groq", "https://api.groq.com/openai/v1", "groq_api_key"),
    "google": ProviderConfig(
        "google",
        "https://generativelanguage.googleapis.com/v1beta/openai",
        "google_generative_ai_api_key",
        _ROUTER_HEADERS,
    ),
    "mistral": ProviderConfig("mistral", "https://api.mistral.ai/v1", "mistral_api_key"),
    "cohere": ProviderConfig("cohere", "https://api.cohere.ai/compatibility/v1", "cohere_api_key"),
    "openai": ProviderConfig("openai", "https://api.openai.com/v1", "openai_api_key"),
    "together": ProviderConfig("together", "https://api.together.xyz/v1", "together_ai_api_key"),
    "requesty": ProviderConfig(
        "requesty", "https://router.requesty.ai/v1", "requesty_ai_api_key", _ROUTER_HEADERS
    ),
    "chutes": ProviderConfig(
        "chutes", "https://llm.chutes.ai/v1", "chutes_ai_api_key", _ROUTER_HEADERS
    ),
    "xai": ProviderConfig("xai", "https://api.x.ai/v1", "xai_api_key"),
    "cerebras": ProviderConfig("cerebras", "https://api.cerebras.ai/v1", "cerebras_api_key"),
}

# Public id -> upstream model
MODEL_REGISTRY: Dict[str, ModelSpec] = {
    # Roles
    "chat-model": ModelSpec("groq", "meta-llama/llama-4-scout-17b-16e-instruct"),
    "chat-model-reasoning": ModelSpec("groq", "deepseek-r1-distill-llama-70b", reasoning=True),
    "title-model": ModelSpec("groq", "llama-3.1-8b-instant"),
    "artifact-model": ModelSpec("groq", "meta-llama/llama-4-scout-17b-16e-instruct"),

    # Google Gemini
    "gemini-2.5-flash-preview-04-17": ModelSpec("google", "gemini-2.5-flash-preview-04-17"),
    "gemini-2.5-pro-preview-05-06": ModelSpec("google", "gemini-2.5-pro-preview-05-06"),
    "gemini-2.0-flash": ModelSpec("google", "gemini-2.0-flash"),
    "gemini-2.0-flash-lite": ModelSpec("google", "gemini-2.0-flash-lite"),
    "gemini-2.0-flash-lite-preview-02-05": ModelSpec("google", "gemini-2.0-flash-lite-preview-02-05"),
    "gemini-2.0-flash-exp": ModelSpec("google", "gemini-2.0-flash-exp"),
    "gemini-2.0-flash-thinking-exp-01-21": ModelSpec("google", "gemini-2.0-flash-thinking-exp-01-21"),
    "gemini-2.0-flash-thinking-exp-1219": ModelSpec("google", "gemini-2.0-flash-thinking-exp-1219"),
    "gemini-1.5-pro-001": ModelSpec("google", "gemini-1.5-pro-001"),
    "gemini-1.5-pro-002": ModelSpec("google", "gemini-1.5-pro-002"),
    "gemini-1.5-flash-001": ModelSpec("google", "gemini-1.5-flash-001"),
    "gemini-1.5-flash-002": ModelSpec("google", "gemini-1.5-flash-002"),
    "gemini-1.5-flash-8b-001": ModelSpec("google", "gemini-1.5-flash-8b-001"),
    "gemini-1.5-flash-8b-exp-0924": ModelSpec("google", "gemini-1.5-flash-8b-exp-0924"),
    "gemma-3-27b-it": ModelSpec("google", "gemma-3-27b-it"),

    # Groq
    "llama-4-scout-17b-16e-instruct": ModelSpec("groq", "meta-llama/llama-4-scout-17b-16e-instruct"),
    "meta-llama/llama-4-scout-17b-16e-instruct": ModelSpec("groq", "meta-llama/llama-4-scout-17b-16e-instruct"),
    "meta-llama/llama-4-maverick-17b-128e-instruct": ModelSpec("groq", "meta-llama/llama-4-maverick-17b-128e-instruct"),
    "compound-beta": ModelSpec("groq", "compound-beta"),
    "compound-beta-mini": ModelSpec("groq", "compound-beta-mini"),
    "deepseek-r1-distill-llama-70b": ModelSpec("groq", "deepseek-r1-distill-llama-70b", reasoning=True),
    "llama-3.3-70b-versatile": ModelSpec("groq", "llama-3.3-70b-versatile"),
    "qwen-qwq-32b": ModelSpec("groq", "qwen-qwq-32b", reasoning=True),
    "llama-3.1-8b-instant": ModelSpec("groq", "llama-3.1-8b-instant"),
    "gemma2-9b-it": ModelSpec("groq", "gemma2-9b-it"),
    "llama3-70b-8192": ModelSpec("groq", "llama3-70b-8192"),
    "llama3-8b-8192": ModelSpec("groq", "llama3-8b-8192"),

    # Mistral
    "pixtral-12b-2409": ModelSpec("mistral", "pixtral-12b-2409"),
    "mistral-small-2503": ModelSpec("mistral", "mistral-small-2503"),
    "devstral-small-2505": ModelSpec("mistral", "devstral-small-2505"),
    "open-codestral-mamba": ModelSpec("mistral", "open-codestral-mamba"),
    "open-mistral-nemo": ModelSpec("mistral", "open-mistral-nemo"),

    # Cohere
    "command-a-03-2025": ModelSpec("cohere", "command-a-03-2025"),
    "command-nightly": ModelSpec("cohere", "command-nightly"),
    "command-r-plus-04-2024": ModelSpec("cohere", "command-r-plus-04-2024"),
    "command-r-08-2024": ModelSpec("cohere", "command-r-08-2024"),

    # Together.ai
    "meta-llama/Llama-Vision-Free": ModelSpec("together", "meta-llama/Llama-Vision-Free"),
    "deepseek-ai/DeepSeek-R1-Distill-Llama-70B-free": ModelSpec(
        "together", "deepseek-ai/DeepSeek-R1-Distill-Llama-70B-free", reasoning=True
    ),
    "meta-llama/Llama-3.3-70B-Instruct-Turbo-Free": ModelSpec(
        "together", "meta-llama/Llama-3.3-70B-Instruct-Turbo-Free"
    ),

    # Requesty router
    "google/gemini-2.0-flash-exp": ModelSpec("requesty", "google/gemini-2.0-flash-exp"),
    "gemma-3-27b-it-requesty": ModelSpec("requesty", "gemma-3-27b-it"),

    # Chutes
    "deepseek-ai/DeepSeek-V3-0324": ModelSpec("chutes", "deepseek-ai/DeepSeek-V3-0324"),
    "deepseek-ai/DeepSeek-R1": ModelSpec("chutes", "deepseek-ai/DeepSeek-R1", reasoning=True),
    "Qwen/Qwen3-235B-A22B": ModelSpec("chutes", "Qwen/Qwen3-235B-A22B", reasoning=True),
    "chutesai/Llama-4-Maverick-17B-128E-Instruct-FP8": ModelSpec(
        "chutes", "chutesai/Llama-4-Maverick-17B-128E-Instruct-FP8"
    ),

    # x.ai
    "grok-3-mini-beta": ModelSpec("xai", "grok-3-mini-beta"),

    # Cerebras
    "llama-4-scout-17b-16e-instruct-cerebras": ModelSpec("cerebras", "llama-4-scout-17b-16e-instruct"),
    "llama3.1-8b-cerebras": ModelSpec("cerebras", "llama3.1-8b"),
    "llama-3.3-70b-cerebras": ModelSpec("cerebras", "llama-3.3-70b"),
    "qwen-3-32b-cerebras": ModelSpec("cerebras", "qwen-3-32b"),
}

DEFAULT_CHAT_MODEL = "chat-model"

CHAT_MODELS: List[ChatModel] = [
    ChatModel("chat-model", "Chat model", "Primary model for all-purpose chat"),
    ChatModel("chat-model-reasoning", "Reasoning model", "Uses advanced reasoning"),
    ChatModel("gemini-2.5-flash-preview-04-17", "Gemini 2.5 Flash Preview (04/17)", "Google Gemini 2.5 Flash Preview model"),
    ChatModel("gemini-2.5-pro-preview-05-06", "Gemini 2.5 Pro Preview (05/06)", "Google Gemini 2.5 Pro Preview model"),
    ChatModel("gemini-2.0-flash", "Gemini 2.0 Flash", "Google Gemini 2.0 Flash model"),
    ChatModel("gemini-2.0-flash-lite-preview-02-05", "Gemini 2.0 Flash Lite Preview (02/05)", "Google Gemini 2.0 Flash Lite Preview model"),
    ChatModel("gemini-2.0-flash-thinking-exp-01-21", "Gemini 2.0 Flash Thinking Exp (01/21)", "Google Gemini 2.0 Flash Thinking Experimental model"),
    ChatModel("gemini-2.0-flash-thinking-exp-1219", "Gemini 2.0 Flash Thinking Exp (12/19)", "Google Gemini 2.0 Flash Thinking Experimental model"),
    ChatModel("gemini-1.5-pro-001", "Gemini 1.5 Pro (001)", "Google Gemini 1.5 Pro model"),
    ChatModel("gemini-1.5-pro-002", "Gemini 1.5 Pro (002)", "Google Gemini 1.5 Pro model"),
    ChatModel("gemini-1.5-flash-001", "Gemini 1.5 Flash (001)", "Google Gemini 1.5 Flash model"),
    ChatModel("gemini-1.5-flash-002", "Gemini 1.5 Flash (002)", "Google Gemini 1.5 Flash model"),
    ChatModel("gemini-1.5-flash-8b-001", "Gemini 1.5 Flash 8B (001)", "Google Gemini 1.5 Flash 8B model"),
    ChatModel("gemini-1.5-flash-8b-exp-0924", "Gemini 1.5 Flash 8B Exp (09/24)", "Google Gemini 1.5 Flash 8B Experimental model"),
    ChatModel("gemma-3-27b-it", "Gemma 3 27B IT", "Google Gemma 3 27B Instruct model"),
    ChatModel("llama-4-scout-17b-16e-instruct", "Llama 4 Scout 17B Instruct", "Groq Llama 4 Scout 17B Instruct model"),
    ChatModel("qwen-qwq-32b", "Qwen QWQ 32B", "Groq Qwen QWQ 32B model"),
    ChatModel("deepseek-r1-distill-llama-70b", "Deepseek R1 Distill Llama 70B", "Groq Deepseek R1 Distill Llama 70B model"),
    ChatModel("pixtral-12b-2409", "Pixtral 12B", "Mistral Pixtral 12B model"),
]

_GUEST_MODELS = [
    "chat-model",
    "chat-model-reasoning",
    "gemini-2.5-flash-preview-04-17",
    "gemini-2.5-pro-preview-05-06",
    "gemini-2.0-flash",
    "gemini-2.0-flash-lite-preview-02-05",
    "gemini-1.5-pro-001",
    "gemini-1.5-pro-002",
    "gemini-1.5-flash-001",
    "gemini-1.5-flash-002",
    "llama-4-scout-17b-16e-instruct",
    "qwen-qwq-32b",
    "deepseek-r1-distill-llama-70b",
]

ENTITLEMENTS_BY_USER_TYPE: Dict[str, Entitlements] = {
    # Users without an account
    "guest": Entitlements(max_messages_per_day=20, available_chat_model_ids=_GUEST_MODELS),
    # Users with an account
    "regular": Entitlements(
        max_messages_per_day=100,
        available_chat_model_ids=_GUEST_MODELS + [
            "gemini-2.0-flash-thinking-exp-01-21",
            "gemini-2.0-flash-thinking-exp-1219",
            "gemini-1.5-flash-8b-001",
            "gemini-1.5-flash-8b-exp-0924",
            "gemma-3-27b-it",
        ],
    ),
}


def get_entitlements(user_type: str) -> Entitlements:
    """Entitlements for ``user_type``; unknown types get guest limits."""
    return ENTITLEMENTS_BY_USER_TYPE.get(user_type, ENTITLEMENTS_BY_USER_TYPE["guest"])


def get_max_tokens_for_model(model_id: str) -> int:
    """Completion-token budget for a public model id (first matching rule wins)."""
    if "deepseek" in model_id or "DeepSeek" in model_id:
        return 32768
    if model_id == "llama-3.3-70b-versatile":
        return 32768
    if model_id in (
        "meta-llama/llama-4-scout-17b-16e-instruct",
        "meta-llama/llama-4-maverick-17b-128e-instruct",
        "llama-3.1-8b-instant",
        "compound-beta",
        "compound-beta-mini",
    ):
        return 8192
    if model_id in ("qwen-qwq-32b", "qwen/qwen3-32b"):
        return 16384
    if "qwen" in model_id or "Qwen" in model_id:
        return 16384
    if "llama-4" in model_id or "Llama-4" in model_id:
        return 8192
    if "groq" in model_id or "llama3" in model_id:
        return 8192
    if "command" in model_id:
        return 16384

    eight_k_markers = (
        "Free", "grok", "mistral", "pixtral", "devstral", "requesty", "google/",
        "claude", "gpt-4", "gpt-3.5", "gemini", "gemma", "cerebras",
    )
    if any(marker in model_id for marker in eight_k_markers):
        return 8192
    return 4096


def supports_tools(model_id: str) -> bool:
    """Cerebras-hosted models run without tool definitions."""
    return "cerebras" not in model_id


class ProviderRegistry:
    """
    Resolves public model ids to ready-to-use language-model clients.

    Example:
        ```python
        registry = ProviderRegistry()
        async with registry.language_model("artifact-model") as llm:
            text, usage = await llm.generate("Hello")
        ```
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    @property
    def transport(self) -> Optional[httpx.AsyncBaseTransport]:
        return self._transport

    def resolve(self, model_id: str) -> ModelSpec:
        spec = MODEL_REGISTRY.get(model_id)
        if spec is None:
            logger.warning("Unknown model requested", model_id=model_id)
            raise UnknownModelError(model_id)
        return spec

    def api_key_for(self, provider: str) -> Optional[str]:
        return getattr(self.settings, PROVIDERS[provider].api_key_setting, None)

    def language_model(self, model_id: str) -> LanguageModelClient:
        """
        Build a client for ``model_id``.

        Raises:
            UnknownModelError: ``model_id`` is not registered
        """
        spec = self.resolve(model_id)
        provider = PROVIDERS[spec.provider]
        return LanguageModelClient(
            base_url=provider.base_url,
            model=spec.upstream,
            api_key=self.api_key_for(spec.provider),
            provider=provider.name,
            reasoning=spec.reasoning,
            extra_headers=provider.headers,
            timeout=self.settings.llm_timeout_seconds,
            transport=self._transport,
        )

    def image_generator(self) -> FallbackImageGenerator:
        return FallbackImageGenerator(settings=self.settings, transport=self._transport)

    def key_status(self) -> Dict[str, bool]:
        """Whether an API key is configured for each provider (values never exposed)."""
        status = {name: bool(self.api_key_for(name)) for name in PROVIDERS}
        status["chutes-image"] = bool(self.settings.chutes_image_api_token)
        return status
