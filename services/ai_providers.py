"""Text-completion adapters for the AI judge."""

from abc import ABC, abstractmethod
from typing import List, Optional

from google import genai
from openai import AsyncOpenAI

from config.settings import Settings


class AIProviderError(Exception):
    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message


class BaseAIProvider(ABC):
    name: str = "base"

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        raise NotImplementedError


class GeminiProvider(BaseAIProvider):
    name = "Gemini"

    def __init__(self, api_key: str, model_name: str = "gemini-2.0-flash", temperature: float = 0.2):
        self.client = genai.Client(api_key=api_key)
        self.model_name = model_name
        self.temperature = temperature

    async def complete(self, prompt: str) -> str:
        response = await self.client.aio.models.generate_content(
            model=self.model_name,
            contents=prompt,
            config={
                'temperature': self.temperature,
                'max_output_tokens': 1024,
            }
        )
        if not response.text:
            raise AIProviderError(self.name, "empty response")
        return response.text


class OpenAIProvider(BaseAIProvider):
    """Any OpenAI-compatible chat endpoint (OpenAI, Perplexity, OpenRouter...)."""

    name = "OpenAI"

    def __init__(self, api_key: str, model_name: str = "gpt-4o-mini", base_url: Optional[str] = None, temperature: float = 0.3):
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.model_name = model_name
        self.temperature = temperature

    async def complete(self, prompt: str) -> str:
        response = await self.client.chat.completions.create(
            model=self.model_name,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise AIProviderError(self.name, "empty response")
        return content


def build_providers(settings: Settings) -> List[BaseAIProvider]:
    """Providers in fallback order: Gemini first, then the OpenAI-compatible one."""
    providers: List[BaseAIProvider] = []
    if settings.gemini_api_key:
        providers.append(GeminiProvider(settings.gemini_api_key, settings.gemini_model))
    if settings.openai_api_key:
        providers.append(OpenAIProvider(settings.openai_api_key, settings.openai_model, settings.openai_base_url))
    return providers
