"""
providers.py - LLM provider adapters for CrossRank

One adapter per vendor. Each builds its SDK client lazily on first use and
keeps it for its own lifetime; callers construct adapters explicitly with
`build_adapters()` and pass them to the coordinators. Every failure leaves an
adapter as `TransportFailure`, whatever the vendor-specific cause.
"""

import asyncio
import base64
import logging
import time

from openai import AsyncOpenAI
from anthropic import AsyncAnthropic
from google import genai
from google.genai import types as genai_types
from mistralai import Mistral

from .config import DEFAULT_TIMEOUT, MAX_TOKENS_GENERATE, get_api_key, format_duration
from .errors import TransportFailure
from .records import ModelDescriptor, Prompt, Vendor

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "image/jpeg"
_KNOWN_MEDIA_TYPES = ("image/png", "image/webp", "image/gif")


def sanitize_prompt(text: str) -> str:
    """Replace known problematic characters for API compatibility.

    Applied equally to all models for fair comparison.
    """
    replacements = {
        '\u2018': "'", '\u2019': "'",  # Smart single quotes
        '\u201c': '"', '\u201d': '"',  # Smart double quotes
        '\u2013': '-', '\u2014': '-',  # En/em dashes
        '\u2026': '...',               # Ellipsis
        '\u00a0': ' ',                 # Non-breaking space
    }
    for old, new in replacements.items():
        text = text.replace(old, new)
    return text


def split_image(image: str) -> tuple[str, str]:
    """Split a data URL (or bare base64 payload) into (media_type, base64_data)."""
    if image.startswith("data:") and "," in image:
        header, data = image.split(",", 1)
    else:
        header, data = "", image
    media_type = next((t for t in _KNOWN_MEDIA_TYPES if t in header), DEFAULT_MEDIA_TYPE)
    return media_type, data


def as_data_url(image: str) -> str:
    if image.startswith(("data:", "http://", "https://")):
        return image
    return f"data:{DEFAULT_MEDIA_TYPE};base64,{image}"


class ProviderAdapter:
    """Turns a prompt into generated text for one vendor."""

    vendor: Vendor

    def __init__(self, api_key: str | None = None, timeout: float = DEFAULT_TIMEOUT):
        self._api_key = api_key
        self.timeout = timeout
        self._client = None

    @property
    def api_key(self) -> str:
        return self._api_key or get_api_key(self.vendor.value)

    @property
    def client(self):
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _create_client(self):
        raise NotImplementedError

    async def _call(self, model: ModelDescriptor, prompt: Prompt, max_tokens: int,
                    temperature: float | None) -> str:
        raise NotImplementedError

    async def generate(self, model: ModelDescriptor, prompt: Prompt, *,
                       max_tokens: int = MAX_TOKENS_GENERATE, temperature: float | None = None) -> str:
        """Return the model's reply text (stripped, possibly empty)."""
        prompt = Prompt(sanitize_prompt(prompt.text), prompt.images)
        start = time.time()
        try:
            content = await self._call(model, prompt, max_tokens, temperature)
        except TransportFailure:
            raise
        except Exception as e:
            raise TransportFailure(f"{type(e).__name__}: {str(e)[:200]}", model_id=model.id) from e
        logger.debug("%s replied in %s", model.id, format_duration(time.time() - start))
        return content.strip() if content else ""


class OpenAIAdapter(ProviderAdapter):
    vendor = Vendor.OPENAI

    def _create_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)

    async def _call(self, model, prompt, max_tokens, temperature):
        if prompt.has_images:
            content = [{"type": "text", "text": prompt.text}]
            content += [{"type": "image_url", "image_url": {"url": as_data_url(img)}} for img in prompt.images]
        else:
            content = prompt.text

        kwargs = {"model": model.id, "messages": [{"role": "user", "content": content}],
                  "max_completion_tokens": max_tokens}
        if temperature is not None:
            kwargs["temperature"] = temperature
        response = await self.client.chat.completions.create(**kwargs)
        return response.choices[0].message.content if response.choices else ""


class AnthropicAdapter(ProviderAdapter):
    vendor = Vendor.ANTHROPIC

    def _create_client(self) -> AsyncAnthropic:
        return AsyncAnthropic(api_key=self.api_key, timeout=self.timeout, max_retries=0)

    async def _call(self, model, prompt, max_tokens, temperature):
        content = [{"type": "text", "text": prompt.text}]
        for img in prompt.images:
            media_type, data = split_image(img)
            content.append({"type": "image", "source": {"type": "base64", "media_type": media_type, "data": data}})

        kwargs = {"model": model.id, "messages": [{"role": "user", "content": content}], "max_tokens": max_tokens}
        if temperature is not None:
            kwargs["temperature"] = temperature
        response = await self.client.messages.create(**kwargs)
        return "".join(block.text for block in response.content if block.type == "text")


class GoogleAdapter(ProviderAdapter):
    vendor = Vendor.GOOGLE

    def _create_client(self) -> genai.Client:
        return genai.Client(api_key=self.api_key)

    async def _call(self, model, prompt, max_tokens, temperature):
        if prompt.has_images:
            contents = [genai_types.Part.from_text(text=prompt.text)]
            for img in prompt.images:
                media_type, data = split_image(img)
                contents.append(genai_types.Part.from_bytes(data=base64.b64decode(data), mime_type=media_type))
        else:
            contents = prompt.text

        config = {"max_output_tokens": max_tokens}
        if temperature is not None:
            config["temperature"] = temperature
        response = await self.client.aio.models.generate_content(model=model.id, contents=contents, config=config)

        content = ""
        try:
            content = response.text or ""
        except ValueError:
            pass

        # Fallback: extract from candidates
        if not content:
            for candidate in getattr(response, 'candidates', None) or []:
                parts = getattr(getattr(candidate, 'content', None), 'parts', None) or []
                content += "".join(part.text for part in parts if getattr(part, 'text', None))
        return content


class MistralAdapter(ProviderAdapter):
    vendor = Vendor.MISTRAL

    def _create_client(self) -> Mistral:
        return Mistral(api_key=self.api_key, timeout_ms=int(self.timeout * 1000))

    async def _call(self, model, prompt, max_tokens, temperature):
        if prompt.has_images:
            content = [{"type": "text", "text": prompt.text}]
            content += [{"type": "image_url", "image_url": as_data_url(img)} for img in prompt.images]
        else:
            content = prompt.text

        kwargs = {"model": model.id, "messages": [{"role": "user", "content": content}], "max_tokens": max_tokens}
        if temperature is not None:
            kwargs["temperature"] = temperature
        response = await self.client.chat.complete_async(**kwargs)
        if not response or not response.choices:
            return ""
        message_content = response.choices[0].message.content
        if isinstance(message_content, list):
            return "".join(getattr(chunk, "text", "") or "" for chunk in message_content)
        return message_content or ""


ADAPTER_CLASSES = {
    Vendor.OPENAI: OpenAIAdapter,
    Vendor.ANTHROPIC: AnthropicAdapter,
    Vendor.GOOGLE: GoogleAdapter,
    Vendor.MISTRAL: MistralAdapter,
}


def build_adapters(vendors=None, timeout: float = DEFAULT_TIMEOUT) -> dict[Vendor, ProviderAdapter]:
    """Construct one adapter per vendor. API keys are read at call time."""
    vendors = ADAPTER_CLASSES.keys() if vendors is None else vendors
    return {Vendor(v): ADAPTER_CLASSES[Vendor(v)](timeout=timeout) for v in vendors}


async def health_check(adapters: dict, models: list[ModelDescriptor], timeout: float = 30) -> dict:
    """Ping every model with a trivial prompt concurrently.

    Returns {model_id: {"success": bool, "message": str}}.
    """
    async def check(model: ModelDescriptor):
        adapter = adapters.get(model.vendor)
        if adapter is None:
            return model.id, False, f"No adapter for {model.vendor.value}"
        start = time.time()
        try:
            await asyncio.wait_for(adapter.generate(model, Prompt("Say 'OK'."), max_tokens=16), timeout)
        except asyncio.TimeoutError:
            return model.id, False, f"Timed out after {timeout}s"
        except TransportFailure as e:
            msg = e.message
            if "<html>" in msg.lower():
                msg = "401 Auth error"
            return model.id, False, msg[:100]
        return model.id, True, f"OK ({format_duration(time.time() - start)})"

    results = await asyncio.gather(*[check(m) for m in models])
    return {model_id: {"success": ok, "message": message} for model_id, ok, message in results}
