"""
LLM Access Layer

Vendor clients with key rotation, and the router that falls back
between them.
"""

from counsellor.llm.keys import ProviderKeyPool, mask_key
from counsellor.llm.providers import (
    LLMError,
    CredentialExhausted,
    ProviderExhausted,
    ProviderNotConfigured,
    ProviderResult,
    ProviderClient,
    GeminiClient,
    GroqClient,
    PROVIDER_CLASSES,
)
from counsellor.llm.router import (
    LLMRouter,
    LLMResponse,
    RoutingPolicy,
    SOURCE_TAGS,
    UNAVAILABLE_TEXT,
    ALL_PROVIDERS_UNAVAILABLE,
)

__all__ = [
    "ProviderKeyPool",
    "mask_key",
    "LLMError",
    "CredentialExhausted",
    "ProviderExhausted",
    "ProviderNotConfigured",
    "ProviderResult",
    "ProviderClient",
    "GeminiClient",
    "GroqClient",
    "PROVIDER_CLASSES",
    "LLMRouter",
    "LLMResponse",
    "RoutingPolicy",
    "SOURCE_TAGS",
    "UNAVAILABLE_TEXT",
    "ALL_PROVIDERS_UNAVAILABLE",
]
