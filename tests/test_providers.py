"""
Tests for LLM Provider Clients

Uses httpx.MockTransport so no request leaves the process.
"""

import asyncio
import json
import random

import httpx
import pytest

from counsellor.llm.keys import ProviderKeyPool, mask_key
from counsellor.llm.providers import (
    CredentialExhausted,
    GeminiClient,
    GroqClient,
    ProviderExhausted,
    ProviderNotConfigured,
)
from counsellor.utils.config import Settings, load_key_pools, parse_keys


def gemini_body(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def groq_body(text: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


def model_from_path(request: httpx.Request) -> str:
    # /v1beta/models/<model>:generateContent
    return request.url.path.rsplit("/", 1)[-1].split(":", 1)[0]


MESSAGES = [{"role": "user", "content": "Enrich data for KTH in Sweden"}]


# ============================================================================
# Credential Pools
# ============================================================================

class TestProviderKeyPool:

    def test_keys_stored_as_tuple(self):
        pool = ProviderKeyPool("GEMINI", ["a", "b"])

        assert pool.keys == ("a", "b")
        assert len(pool) == 2
        assert pool.is_configured

    def test_empty_pool(self):
        assert not ProviderKeyPool("GROQ").is_configured

    def test_shuffle_does_not_mutate_pool(self):
        pool = ProviderKeyPool("GEMINI", [f"key-{i}" for i in range(10)])
        rng = random.Random(7)

        for _ in range(5):
            order = pool.shuffled(rng)
            assert sorted(order) == sorted(pool.keys)

        assert pool.keys == tuple(f"key-{i}" for i in range(10))

    def test_mask_key(self):
        assert mask_key("AIzaSyExampleSecret") == "AIzaSyEx..."


class TestKeyLoading:

    def test_parse_keys(self):
        assert parse_keys(" k1, k2 ,,k3 ") == ("k1", "k2", "k3")
        assert parse_keys("") == ()
        assert parse_keys(None) == ()

    def test_load_key_pools(self):
        settings = Settings(GEMINI_API_KEYS="g1,g2", GROQ_API_KEYS="")
        pools = load_key_pools(settings)

        assert pools["GEMINI"].keys == ("g1", "g2")
        assert not pools["GROQ"].is_configured


# ============================================================================
# Gemini
# ============================================================================

class TestGeminiClient:

    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=gemini_body('{"name": "KTH"}'))

        client = GeminiClient(
            ProviderKeyPool("GEMINI", ["secret-key"]),
            transport=httpx.MockTransport(handler),
        )
        result = await client.generate(MESSAGES, "Return JSON")
        await client.close()

        request = seen[0]
        body = json.loads(request.content)
        assert request.url.path.endswith("/models/gemini-2.5-flash:generateContent")
        assert request.headers["x-goog-api-key"] == "secret-key"
        assert body["generationConfig"]["responseMimeType"] == "application/json"
        assert body["systemInstruction"]["parts"][0]["text"] == "Return JSON"
        assert body["contents"][0]["role"] == "user"

        assert result.provider == "GEMINI"
        assert result.model == "gemini-2.5-flash"
        assert result.data == {"name": "KTH"}

    @pytest.mark.asyncio
    async def test_assistant_role_mapped_to_model(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=gemini_body("plain text"))

        client = GeminiClient(ProviderKeyPool("GEMINI", ["k"]), transport=httpx.MockTransport(handler))
        result = await client.generate(
            [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
            "",
        )
        await client.close()

        assert [c["role"] for c in seen[0]["contents"]] == ["user", "model"]
        assert "systemInstruction" not in seen[0]
        assert result.text == "plain text"
        assert result.data is None

    @pytest.mark.asyncio
    async def test_rotates_past_rate_limited_key(self):
        """A 429 on one key falls through to the next key."""
        used = []

        def handler(request):
            key = request.headers["x-goog-api-key"]
            used.append(key)
            if key == "limited":
                return httpx.Response(429, json={"error": "quota"})
            return httpx.Response(200, json=gemini_body("{}"))

        client = GeminiClient(
            ProviderKeyPool("GEMINI", ["limited", "good"]),
            transport=httpx.MockTransport(handler),
        )
        result = await client.generate(MESSAGES, "")
        await client.close()

        assert result.model == "gemini-2.5-flash"
        assert used[-1] == "good"
        assert set(used) <= {"limited", "good"}

    @pytest.mark.asyncio
    async def test_falls_back_to_lite_model(self):
        models = []

        def handler(request):
            model = model_from_path(request)
            models.append(model)
            if model == "gemini-2.5-flash":
                return httpx.Response(503)
            return httpx.Response(200, json=gemini_body('{"ok": true}'))

        client = GeminiClient(
            ProviderKeyPool("GEMINI", ["k1", "k2"]),
            transport=httpx.MockTransport(handler),
        )
        result = await client.generate(MESSAGES, "")
        await client.close()

        assert result.model == "gemini-2.5-flash-lite"
        # Both keys tried on the primary before falling back
        assert models == ["gemini-2.5-flash", "gemini-2.5-flash", "gemini-2.5-flash-lite"]

    @pytest.mark.asyncio
    async def test_preferred_model_tried_first(self):
        models = []

        def handler(request):
            models.append(model_from_path(request))
            return httpx.Response(200, json=gemini_body("{}"))

        client = GeminiClient(ProviderKeyPool("GEMINI", ["k"]), transport=httpx.MockTransport(handler))
        await client.generate(MESSAGES, "", model="gemini-2.5-flash-lite")
        await client.close()

        assert models == ["gemini-2.5-flash-lite"]
        assert client.candidate_models("gemini-2.5-flash-lite") == [
            "gemini-2.5-flash-lite",
            "gemini-2.5-flash",
        ]

    @pytest.mark.asyncio
    async def test_exhausted_carries_last_error(self):
        def handler(request):
            return httpx.Response(500)

        client = GeminiClient(ProviderKeyPool("GEMINI", ["k1"]), transport=httpx.MockTransport(handler))
        with pytest.raises(ProviderExhausted) as exc_info:
            await client.generate(MESSAGES, "")
        await client.close()

        assert exc_info.value.provider == "GEMINI"
        assert isinstance(exc_info.value.last_error, CredentialExhausted)
        assert "HTTP 500" in str(exc_info.value.last_error)

    @pytest.mark.asyncio
    async def test_not_configured(self):
        def handler(request):
            raise AssertionError("no request expected")

        client = GeminiClient(ProviderKeyPool("GEMINI"), transport=httpx.MockTransport(handler))
        with pytest.raises(ProviderNotConfigured):
            await client.generate(MESSAGES, "")
        await client.close()

    @pytest.mark.asyncio
    async def test_empty_text_is_a_failure(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=gemini_body("   "))

        client = GeminiClient(ProviderKeyPool("GEMINI", ["k"]), transport=httpx.MockTransport(handler))
        with pytest.raises(ProviderExhausted) as exc_info:
            await client.generate(MESSAGES, "")
        await client.close()

        assert len(calls) == 2  # primary + lite
        assert "Empty response" in str(exc_info.value.last_error)

    @pytest.mark.asyncio
    async def test_malformed_body_is_a_failure(self):
        def handler(request):
            return httpx.Response(200, json={"candidates": []})

        client = GeminiClient(ProviderKeyPool("GEMINI", ["k"]), transport=httpx.MockTransport(handler))
        with pytest.raises(ProviderExhausted) as exc_info:
            await client.generate(MESSAGES, "")
        await client.close()

        assert "IndexError" in str(exc_info.value.last_error)

    @pytest.mark.asyncio
    async def test_non_object_parts_are_a_failure(self):
        def handler(request):
            return httpx.Response(200, json={"candidates": [{"content": {"parts": ["oops"]}}]})

        client = GeminiClient(ProviderKeyPool("GEMINI", ["k"]), transport=httpx.MockTransport(handler))
        with pytest.raises(ProviderExhausted) as exc_info:
            await client.generate(MESSAGES, "")
        await client.close()

        assert isinstance(exc_info.value.last_error, CredentialExhausted)
        assert "Empty response" in str(exc_info.value.last_error)

    @pytest.mark.asyncio
    async def test_unexpected_body_error_is_a_failure(self):
        def handler(request):
            return httpx.Response(200, json={"candidates": "nope"})

        client = GeminiClient(
            ProviderKeyPool("GEMINI", ["k"]),
            fallback_model=None,
            transport=httpx.MockTransport(handler),
        )
        with pytest.raises(ProviderExhausted) as exc_info:
            await client.generate(MESSAGES, "")
        await client.close()

        assert isinstance(exc_info.value.last_error, CredentialExhausted)

    @pytest.mark.asyncio
    async def test_timeout_is_a_failure(self):
        async def handler(request):
            await asyncio.sleep(1)
            return httpx.Response(200, json=gemini_body("{}"))

        client = GeminiClient(
            ProviderKeyPool("GEMINI", ["k"]),
            fallback_model=None,
            timeout=0.05,
            transport=httpx.MockTransport(handler),
        )
        with pytest.raises(ProviderExhausted) as exc_info:
            await client.generate(MESSAGES, "")
        await client.close()

        assert "Timed out" in str(exc_info.value.last_error)

    @pytest.mark.asyncio
    async def test_closed_client_refuses(self):
        client = GeminiClient(ProviderKeyPool("GEMINI", ["k"]))
        await client.close()

        with pytest.raises(ProviderExhausted):
            await client.generate(MESSAGES, "")


# ============================================================================
# Groq
# ============================================================================

class TestGroqClient:

    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=groq_body('[{"index": 1}]'))

        async with GroqClient(
            ProviderKeyPool("GROQ", ["gsk_test"]),
            transport=httpx.MockTransport(handler),
        ) as client:
            result = await client.generate(MESSAGES, "Be brief")

        request = seen[0]
        body = json.loads(request.content)
        assert request.url.path.endswith("/chat/completions")
        assert request.headers["authorization"] == "Bearer gsk_test"
        assert body["model"] == "llama-3.3-70b-versatile"
        assert body["messages"][0] == {"role": "system", "content": "Be brief"}
        assert body["messages"][1] == MESSAGES[0]
        assert body["temperature"] == 0.7
        assert body["max_tokens"] == 2000

        assert result.provider == "GROQ"
        assert result.data == [{"index": 1}]

    @pytest.mark.asyncio
    async def test_non_string_content_is_a_failure(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"choices": [{"message": {"content": ["x"]}}]})

        client = GroqClient(ProviderKeyPool("GROQ", ["k1", "k2"]), transport=httpx.MockTransport(handler))
        with pytest.raises(ProviderExhausted) as exc_info:
            await client.generate(MESSAGES, "")
        await client.close()

        assert len(calls) == 2  # every credential tried
        assert "TypeError" in str(exc_info.value.last_error)

    def test_no_same_vendor_fallback_by_default(self):
        client = GroqClient(ProviderKeyPool("GROQ", ["k"]))
        assert client.candidate_models() == ["llama-3.3-70b-versatile"]
