"""
LLM Router

Single entry point for every AI-backed feature. Picks the provider
order for a call from a small declarative RoutingPolicy, tries the
preferred vendor, falls back to the other one exactly once, and
normalises the outcome into an LLMResponse.

generate() never raises for upstream failures. When both vendors are
exhausted the caller gets an apology text with error=True.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from counsellor.llm.providers import ProviderClient, ProviderExhausted, Message

logger = logging.getLogger(__name__)


UNAVAILABLE_TEXT = (
    "I'm having trouble connecting to my AI services. Please check your connection."
)
ALL_PROVIDERS_UNAVAILABLE = "all_providers_unavailable"

# Provenance tags written to cache rows (drive confidence scoring)
SOURCE_TAGS = {
    "GEMINI": "GEMINI",
    "GROQ": "LLAMA",
}


@dataclass
class LLMResponse:
    """Normalised router output."""
    text: str
    data: Any = None
    provider: Optional[str] = None
    model: Optional[str] = None
    source_tag: Optional[str] = None
    error: bool = False
    error_type: Optional[str] = None

    @property
    def success(self) -> bool:
        return not self.error


@dataclass
class RoutingPolicy:
    """
    Declarative provider order.

    `providers` lists vendor names in fallback order. Only the first two
    are ever attempted for one request.
    """
    providers: List[str] = field(default_factory=lambda: ["GEMINI", "GROQ"])
    max_attempts: int = 2

    def order(self, preferred: Optional[str] = None) -> List[str]:
        """Provider names to try, preferred first, capped at max_attempts."""
        if preferred is not None and preferred not in self.providers:
            raise ValueError(f"Unknown provider: {preferred}")
        ordered = list(self.providers)
        if preferred:
            ordered.remove(preferred)
            ordered.insert(0, preferred)
        return ordered[:self.max_attempts]


class LLMRouter:
    """
    Cross-provider fallback around ProviderClient instances.

    Usage:
        router = LLMRouter({"GEMINI": gemini, "GROQ": groq})
        response = await router.generate(messages, system_prompt, provider="GROQ")
        if not response.error:
            print(response.text, response.source_tag)
    """

    def __init__(
        self,
        clients: Dict[str, ProviderClient],
        policy: Optional[RoutingPolicy] = None,
        default_provider: str = "GEMINI",
    ):
        self.clients = clients
        self.policy = policy or RoutingPolicy(providers=list(clients.keys()))
        if default_provider not in self.policy.providers:
            raise ValueError(f"Unknown default provider: {default_provider}")
        self.default_provider = default_provider

    async def generate(
        self,
        messages: List[Message],
        system_prompt: str = "",
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ) -> LLMResponse:
        """
        Generate a response, falling back across vendors.

        Args:
            messages: Conversation turns ({"role", "content"})
            system_prompt: System instruction
            provider: Preferred vendor (defaults to default_provider)
            model: Preferred model for the preferred vendor only; the
                fallback vendor always uses its own default

        Returns:
            LLMResponse (error=True when every vendor failed)
        """
        order = self.policy.order(provider or self.default_provider)

        for attempt, name in enumerate(order):
            client = self.clients.get(name)
            if client is None:
                logger.warning(f"Provider {name} has no client, skipping")
                continue

            requested_model = model if attempt == 0 else None
            try:
                result = await client.generate(messages, system_prompt, model=requested_model)
            except ProviderExhausted as e:
                cause = e.last_error or e
                logger.warning(f"{name} failed ({cause}), trying fallback")
                continue

            if attempt > 0:
                logger.info(f"Fallback provider {name} answered")
            return LLMResponse(
                text=result.text,
                data=result.data,
                provider=result.provider,
                model=result.model,
                source_tag=SOURCE_TAGS.get(result.provider, result.provider),
            )

        logger.error(f"All AI providers failed ({', '.join(order)})")
        return LLMResponse(
            text=UNAVAILABLE_TEXT,
            error=True,
            error_type=ALL_PROVIDERS_UNAVAILABLE,
        )

    async def close(self):
        """Close every provider client."""
        for client in self.clients.values():
            await client.close()
