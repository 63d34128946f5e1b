"""Tests for the vendor adapter base class and provider helpers (no network)."""

import pytest

from crossrank.errors import TransportFailure
from crossrank.providers import (
    ADAPTER_CLASSES, AnthropicAdapter, OpenAIAdapter, ProviderAdapter,
    as_data_url, build_adapters, health_check, sanitize_prompt, split_image,
)
from crossrank.records import ModelDescriptor, Prompt, Vendor

from .conftest import FakeAdapter, adapters_for

MODEL = ModelDescriptor(id="model-x", display_name="Model X", vendor=Vendor.OPENAI)


class ScriptedAdapter(ProviderAdapter):
    vendor = Vendor.OPENAI

    def __init__(self, reply=None, error=None):
        super().__init__(api_key="test-key")
        self.reply = reply
        self.error = error
        self.seen = []

    def _create_client(self):
        return object()

    async def _call(self, model, prompt, max_tokens, temperature):
        self.seen.append(prompt)
        if self.error:
            raise self.error
        return self.reply


class TestHelpers:
    def test_sanitize_prompt(self):
        text = "\u201cQuote\u201d \u2018it\u2019s\u2019 \u2013 dash\u2014 wait\u2026 end"

        assert sanitize_prompt(text) == "\"Quote\" 'it's' - dash- wait... end"

    def test_split_image_data_url(self):
        assert split_image("data:image/png;base64,AAAA") == ("image/png", "AAAA")

    def test_split_image_bare_payload_defaults_to_jpeg(self):
        assert split_image("QUJD") == ("image/jpeg", "QUJD")

    def test_as_data_url(self):
        assert as_data_url("QUJD") == "data:image/jpeg;base64,QUJD"
        assert as_data_url("data:image/gif;base64,R0lG") == "data:image/gif;base64,R0lG"
        assert as_data_url("https://example.com/cat.png") == "https://example.com/cat.png"


class TestProviderAdapter:
    @pytest.mark.asyncio
    async def test_reply_is_stripped_and_prompt_sanitized(self):
        adapter = ScriptedAdapter(reply="  Paris.\n")

        text = await adapter.generate(MODEL, Prompt("\u201cCapital?\u201d"))

        assert text == "Paris."
        assert adapter.seen[0].text == '"Capital?"'

    @pytest.mark.asyncio
    async def test_missing_content_becomes_empty_string(self):
        assert await ScriptedAdapter(reply=None).generate(MODEL, Prompt("q")) == ""

    @pytest.mark.asyncio
    async def test_sdk_errors_wrapped_as_transport_failure(self):
        adapter = ScriptedAdapter(error=ConnectionError("connection reset"))

        with pytest.raises(TransportFailure) as exc:
            await adapter.generate(MODEL, Prompt("q"))

        assert exc.value.model_id == "model-x"
        assert "ConnectionError" in exc.value.message

    @pytest.mark.asyncio
    async def test_missing_api_key_is_transport_failure(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(TransportFailure) as exc:
            await OpenAIAdapter().generate(MODEL, Prompt("q"))

        assert "OPENAI_API_KEY" in exc.value.message

    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "from-env")

        assert AnthropicAdapter(api_key="explicit").api_key == "explicit"
        assert AnthropicAdapter().api_key == "from-env"

    def test_client_built_once(self):
        adapter = ScriptedAdapter()

        assert adapter.client is adapter.client


class TestBuildAdapters:
    def test_one_adapter_per_vendor(self):
        adapters = build_adapters(timeout=12)

        assert set(adapters) == set(Vendor)
        assert all(isinstance(a, ADAPTER_CLASSES[v]) for v, a in adapters.items())
        assert all(a.timeout == 12 for a in adapters.values())

    def test_subset_by_name(self):
        adapters = build_adapters(["openai", Vendor.MISTRAL])

        assert set(adapters) == {Vendor.OPENAI, Vendor.MISTRAL}


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_reports_per_model(self, catalog):
        fake = FakeAdapter(generate={"model-b": TransportFailure("401 invalid key")})
        models = [catalog.get("model-a"), catalog.get("model-b")]

        results = await health_check(adapters_for(fake), models)

        assert results["model-a"]["success"] is True
        assert results["model-b"] == {"success": False, "message": "401 invalid key"}

    @pytest.mark.asyncio
    async def test_missing_adapter(self, catalog):
        results = await health_check({}, [catalog.get("model-d")])

        assert results["model-d"]["success"] is False
        assert "mistral" in results["model-d"]["message"]
