"""OpenAI-backed completion client."""

from __future__ import annotations

from typing import Optional

from openai import AsyncOpenAI

from .base import CompletionClient
from ..core.config import settings


class OpenAICompletionClient(CompletionClient):
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model or settings.OPENAI_MODEL
        self.temperature = settings.OPENAI_TEMPERATURE if temperature is None else temperature
        api_key = api_key or settings.OPENAI_API_KEY
        if client is None and api_key:
            client = AsyncOpenAI(api_key=api_key, timeout=settings.PROVIDER_TIMEOUT_SECONDS)
        self.client = client

    async def complete(self, prompt: str, json_mode: bool = False) -> str:
        """Call OpenAI's chat completion API and return the message text.

        Parameters
        ----------
        prompt: str
            User prompt describing the location and the answer format.
        json_mode: bool
            Ask the API to constrain the answer to a JSON object.

        Returns
        -------
        str
            Stripped message content; empty when the model said nothing.
        """
        if self.client is None:
            raise RuntimeError("OPENAI_API_KEY missing from settings")

        messages = [{"role": "user", "content": prompt}]
        kwargs = {}
        if json_mode:
            messages.insert(0, {"role": "system", "content": "Return only valid JSON."})
            kwargs["response_format"] = {"type": "json_object"}

        completion = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            **kwargs,
        )
        if not completion.choices:
            return ""
        return (completion.choices[0].message.content or "").strip()
