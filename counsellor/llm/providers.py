"""
LLM Provider Clients

One async client per text-generation vendor. Every vendor shares the
same retry driver:

    for model in candidate models (primary, then same-vendor fallback):
        for key in the credential pool, shuffled per call:
            one request with a bounded timeout

A failed credential falls through to the next one. When every key for
every candidate model has failed the client raises ProviderExhausted,
carrying the last underlying error, and the router takes over.

Vendors only differ in request shaping and response-text extraction.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import httpx

from counsellor.llm.keys import ProviderKeyPool, mask_key
from counsellor.output.parser import ResponseParser, EXPECT_ANY

logger = logging.getLogger(__name__)


# =============================================================================
# ERRORS
# =============================================================================

class LLMError(Exception):
    """Base exception for provider failures."""

    def __init__(self, message: str, provider: str = None, model: str = None):
        super().__init__(message)
        self.provider = provider
        self.model = model


class CredentialExhausted(LLMError):
    """One credential failed for one model; the next key is tried."""


class ProviderExhausted(LLMError):
    """Every credential for every candidate model failed."""

    def __init__(
        self,
        message: str,
        provider: str = None,
        model: str = None,
        last_error: Optional[Exception] = None,
    ):
        super().__init__(message, provider=provider, model=model)
        self.last_error = last_error


class ProviderNotConfigured(ProviderExhausted):
    """The vendor has no credentials, so it cannot be attempted."""


# =============================================================================
# RESULT
# =============================================================================

@dataclass
class ProviderResult:
    """Vendor-tagged output of one successful generation."""
    text: str
    provider: str
    model: str
    data: Any = None  # Parsed JSON when the output looked structured


Message = Dict[str, str]


# =============================================================================
# BASE CLIENT
# =============================================================================

class ProviderClient:
    """
    Generic retry driver for one vendor.

    Subclasses define BASE_URL, DEFAULT_MODEL and the two vendor hooks
    `_build_request` and `_extract_text`.
    """

    name: str = ""
    BASE_URL: str = ""
    DEFAULT_MODEL: str = ""

    def __init__(
        self,
        key_pool: ProviderKeyPool,
        default_model: Optional[str] = None,
        fallback_model: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize provider client.

        Args:
            key_pool: Read-only credentials for this vendor
            default_model: Primary model (defaults to DEFAULT_MODEL)
            fallback_model: Same-vendor model tried after the primary
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use MockTransport)
            rng: Random source for key shuffling
        """
        self.key_pool = key_pool
        self.default_model = default_model or self.DEFAULT_MODEL
        self.fallback_model = fallback_model
        self.timeout = timeout
        self._rng = rng
        self._parser = ResponseParser(log_failures=False)

        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._closed = False

    def candidate_models(self, preferred: Optional[str] = None) -> List[str]:
        """Primary model first, then at most one same-vendor fallback."""
        primary = preferred or self.default_model
        models = [primary]
        for alternative in (self.default_model, self.fallback_model):
            if alternative and alternative not in models:
                models.append(alternative)
                break
        return models

    async def generate(
        self,
        messages: List[Message],
        system_prompt: str,
        model: Optional[str] = None,
    ) -> ProviderResult:
        """
        Run one generation with key rotation and model fallback.

        Raises:
            ProviderExhausted: every key for every candidate model failed
        """
        if self._closed:
            raise ProviderExhausted("Client has been closed", provider=self.name)
        if not self.key_pool.is_configured:
            raise ProviderNotConfigured(
                f"No API keys configured for {self.name}", provider=self.name
            )

        last_error: Optional[Exception] = None
        models = self.candidate_models(model)

        for model_name in models:
            logger.info(f"Trying {self.name} model: {model_name}")

            for api_key in self.key_pool.shuffled(self._rng):
                try:
                    text = await self._attempt(api_key, model_name, messages, system_prompt)
                except CredentialExhausted as e:
                    logger.warning(
                        f"{self.name} ({model_name}) key {mask_key(api_key)} failed: {e}"
                    )
                    last_error = e
                    continue

                return self._build_result(text, model_name)

        logger.error(f"All {self.name} keys and models failed")
        raise ProviderExhausted(
            f"{self.name} exhausted {len(self.key_pool)} keys across {len(models)} models",
            provider=self.name,
            model=models[-1],
            last_error=last_error,
        )

    async def _attempt(
        self,
        api_key: str,
        model: str,
        messages: List[Message],
        system_prompt: str,
    ) -> str:
        """One request with one credential; any failure is a CredentialExhausted."""
        url, request_kwargs = self._build_request(api_key, model, messages, system_prompt)
        try:
            response = await asyncio.wait_for(
                self._client.post(url, **request_kwargs),
                timeout=self.timeout,
            )
            response.raise_for_status()
            text = self._extract_text(response.json())
            if not isinstance(text, str):
                raise TypeError(f"expected text, got {type(text).__name__}")
        except asyncio.TimeoutError as e:
            raise CredentialExhausted(
                f"Timed out after {self.timeout}s", provider=self.name, model=model
            ) from e
        except httpx.HTTPStatusError as e:
            raise CredentialExhausted(
                f"HTTP {e.response.status_code}", provider=self.name, model=model
            ) from e
        except Exception as e:
            # Transport errors and malformed bodies cost only this credential
            raise CredentialExhausted(
                f"{type(e).__name__}: {e}", provider=self.name, model=model
            ) from e

        if not text or not text.strip():
            raise CredentialExhausted(
                f"Empty response from {self.name}", provider=self.name, model=model
            )
        return text

    def _build_result(self, text: str, model: str) -> ProviderResult:
        parsed = self._parser.parse(text, expect=EXPECT_ANY)
        return ProviderResult(
            text=text,
            provider=self.name,
            model=model,
            data=parsed.value if parsed.success else None,
        )

    def _build_request(
        self,
        api_key: str,
        model: str,
        messages: List[Message],
        system_prompt: str,
    ) -> Tuple[str, Dict[str, Any]]:
        raise NotImplementedError

    def _extract_text(self, payload: Dict[str, Any]) -> str:
        raise NotImplementedError

    async def close(self):
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


# =============================================================================
# VENDORS
# =============================================================================

class GeminiClient(ProviderClient):
    """
    Google Gemini via the generateContent REST endpoint.

    Requests JSON output (responseMimeType) since every caller in this
    package expects structured data. Flash and flash-lite back each
    other up within the vendor.
    """

    name = "GEMINI"
    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_MODEL = "gemini-2.5-flash"
    LITE_MODEL = "gemini-2.5-flash-lite"

    def __init__(self, key_pool: ProviderKeyPool, **kwargs):
        kwargs.setdefault("fallback_model", self.LITE_MODEL)
        super().__init__(key_pool, **kwargs)

    def _build_request(self, api_key, model, messages, system_prompt):
        contents = [
            {
                "role": "model" if m.get("role") == "assistant" else "user",
                "parts": [{"text": m.get("content", "")}],
            }
            for m in messages
        ]
        payload = {
            "contents": contents,
            "generationConfig": {"responseMimeType": "application/json"},
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        return (
            f"/models/{model}:generateContent",
            {"json": payload, "headers": {"x-goog-api-key": api_key}},
        )

    def _extract_text(self, payload):
        parts = payload["candidates"][0]["content"]["parts"]
        return "".join(
            part["text"] for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        )


class GroqClient(ProviderClient):
    """Groq (Llama 3.3) via its OpenAI-compatible chat completions endpoint."""

    name = "GROQ"
    BASE_URL = "https://api.groq.com/openai/v1"
    DEFAULT_MODEL = "llama-3.3-70b-versatile"

    def __init__(
        self,
        key_pool: ProviderKeyPool,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        **kwargs,
    ):
        super().__init__(key_pool, **kwargs)
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _build_request(self, api_key, model, messages, system_prompt):
        payload = {
            "model": model,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        return (
            "/chat/completions",
            {"json": payload, "headers": {"Authorization": f"Bearer {api_key}"}},
        )

    def _extract_text(self, payload):
        return payload["choices"][0]["message"]["content"]


PROVIDER_CLASSES = {
    GeminiClient.name: GeminiClient,
    GroqClient.name: GroqClient,
}
