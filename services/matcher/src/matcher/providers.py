from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import httpx
from openai import AsyncOpenAI, OpenAIError

from matcher.errors import UpstreamError

LOGGER = logging.getLogger("jobmatch.matcher.providers")

PROVIDER_OPENAI = "openai"
PROVIDER_HUGGINGFACE = "huggingface"
PROVIDER_NONE = "none"
PROVIDER_NAMES = (PROVIDER_OPENAI, PROVIDER_HUGGINGFACE, PROVIDER_NONE)

DEFAULT_OPENAI_MODEL = "gpt-3.5-turbo"
DEFAULT_HUGGINGFACE_MODEL = "mistralai/Mistral-7B-Instruct-v0.2"
HUGGINGFACE_INFERENCE_URL = "https://api-inference.huggingface.co/models"

SYSTEM_PROMPT = (
    "You are a job matching assistant that helps candidates find the best job matches "
    "based on their profile and available job listings."
)
TEMPERATURE = 0.5
MAX_TOKENS = 1024


class CompletionProvider(Protocol):
    name: str

    async def complete(self, prompt: str) -> str: ...

    async def aclose(self) -> None: ...


class OpenAIChatProvider:
    name = PROVIDER_OPENAI

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = DEFAULT_OPENAI_MODEL,
        client: AsyncOpenAI | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.model = model
        # single attempt per request
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            max_retries=0,
            http_client=http_client,
        )

    async def complete(self, prompt: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=TEMPERATURE,
                max_tokens=MAX_TOKENS,
            )
        except OpenAIError as exc:
            raise UpstreamError(f"OpenAI request failed: {exc}") from exc

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message or not choice.message.content:
            raise UpstreamError("OpenAI returned an empty completion")
        return choice.message.content

    async def aclose(self) -> None:
        await self._client.close()


class HuggingFaceProvider:
    name = PROVIDER_HUGGINGFACE

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = DEFAULT_HUGGINGFACE_MODEL,
        base_url: str = HUGGINGFACE_INFERENCE_URL,
        timeout_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.model = model
        self.url = f"{base_url.rstrip('/')}/{model}"
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        # no httpx default timeout; complete_with_deadline bounds the call
        self._client = client or httpx.AsyncClient(headers=headers, timeout=timeout_seconds)

    async def complete(self, prompt: str) -> str:
        try:
            response = await self._client.post(
                self.url,
                json={
                    "inputs": f"{SYSTEM_PROMPT}\n\n{prompt}",
                    "parameters": {
                        "max_new_tokens": MAX_TOKENS,
                        "temperature": TEMPERATURE,
                        "return_full_text": False,
                    },
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Hugging Face request failed: {exc}") from exc

        try:
            payload: Any = response.json()
        except ValueError as exc:
            raise UpstreamError("Hugging Face returned a non-JSON body") from exc
        return extract_generated_text(payload)

    async def aclose(self) -> None:
        await self._client.aclose()


class DisabledProvider:
    name = PROVIDER_NONE

    async def complete(self, prompt: str) -> str:
        raise UpstreamError("No completion provider is configured")

    async def aclose(self) -> None:
        return None


def extract_generated_text(payload: Any) -> str:
    if isinstance(payload, list) and payload:
        payload = payload[0]
    if isinstance(payload, dict):
        if payload.get("error"):
            raise UpstreamError(f"Hugging Face error: {payload['error']}")
        text = payload.get("generated_text")
        if isinstance(text, str) and text.strip():
            return text
    raise UpstreamError("Hugging Face returned no generated_text")


async def complete_with_deadline(
    provider: CompletionProvider,
    prompt: str,
    timeout_seconds: float | None,
) -> str:
    try:
        return await asyncio.wait_for(provider.complete(prompt), timeout=timeout_seconds)
    except TimeoutError as exc:
        raise UpstreamError(
            f"{provider.name} completion timed out after {timeout_seconds}s"
        ) from exc


def build_provider(
    name: str,
    *,
    openai_api_key: str | None = None,
    openai_model: str = DEFAULT_OPENAI_MODEL,
    huggingface_api_key: str | None = None,
    huggingface_model: str = DEFAULT_HUGGINGFACE_MODEL,
    timeout_seconds: float | None = None,
) -> CompletionProvider:
    normalized = name.strip().lower()
    if normalized == PROVIDER_OPENAI:
        if not openai_api_key:
            LOGGER.warning("OPENAI_API_KEY is not set; recommendations will use local scoring")
            return DisabledProvider()
        return OpenAIChatProvider(api_key=openai_api_key, model=openai_model)
    if normalized == PROVIDER_HUGGINGFACE:
        if not huggingface_api_key:
            LOGGER.warning("HUGGINGFACE_API_KEY is not set; recommendations will use local scoring")
            return DisabledProvider()
        return HuggingFaceProvider(
            api_key=huggingface_api_key,
            model=huggingface_model,
            timeout_seconds=timeout_seconds,
        )
    if normalized == PROVIDER_NONE:
        return DisabledProvider()
    raise ValueError(f"Unknown completion provider: {name!r}. Expected one of {PROVIDER_NAMES}.")
