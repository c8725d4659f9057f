"""
AI Service - LLM fallback for translation and word extras.

Provides abstraction over several chat-completion providers (DeepSeek and
other OpenAI-compatible APIs, Google Gemini, Anthropic, local Ollama) for:
- Direct translation when the bilingual translation API has nothing
- Structured extras: verb conjugations, synonyms, antonyms
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

import aiohttp

from ..config import Config
from ..exceptions import AuthError, LLMError
from ..models import ExtrasKind
from ..utils.parsing import TextParser

logger = logging.getLogger(__name__)


class AIProvider(Enum):
    """Supported AI providers."""
    DEEPSEEK = "deepseek"
    OPENAI = "openai"
    GROQ = "groq"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"  # Local models


DEFAULT_MODELS = {
    AIProvider.DEEPSEEK: "deepseek-chat",
    AIProvider.OPENAI: "gpt-4o-mini",
    AIProvider.GROQ: "llama-3.1-8b-instant",
    AIProvider.GEMINI: "gemini-2.0-flash",
    AIProvider.ANTHROPIC: "claude-3-haiku-20240307",
    AIProvider.OLLAMA: "llama3.2",
}


@dataclass
class AIConfig:
    """Configuration for AI service."""
    provider: AIProvider = AIProvider.DEEPSEEK
    model: str = "deepseek-chat"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.3
    max_tokens: int = 400
    timeout: int = Config.TIMEOUT


class BaseAIProvider(ABC):
    """Abstract base class for AI providers."""

    def __init__(self, config: AIConfig):
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _post_json(self, url: str, payload: dict, headers: Optional[dict] = None) -> dict:
        """POST a JSON payload, mapping failures onto the LLM error types."""
        session = await self._get_session()
        name = self.config.provider.value
        try:
            async with session.post(url, headers=headers, json=payload) as response:
                if response.status in (401, 403):
                    raise AuthError(f"{name} rejected the API key ({response.status})")
                if response.status != 200:
                    error = await response.text()
                    raise LLMError(f"{name} API error {response.status}: {error[:200]}")
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise LLMError(f"{name} returned a non-JSON reply") from e
        except asyncio.TimeoutError as e:
            raise LLMError(f"{name} API timeout") from e
        except aiohttp.ClientError as e:
            raise LLMError(f"{name} request failed: {e}") from e

    @abstractmethod
    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Generate completion for the given prompt."""
        pass


class OpenAICompatibleProvider(BaseAIProvider):
    """Chat-completions API shared by DeepSeek, OpenAI and Groq."""

    DEFAULT_BASE_URLS = {
        AIProvider.DEEPSEEK: "https://api.deepseek.com",
        AIProvider.OPENAI: "https://api.openai.com/v1",
        AIProvider.GROQ: "https://api.groq.com/openai/v1",
    }

    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        base_url = self.config.base_url or self.DEFAULT_BASE_URLS.get(
            self.config.provider, self.DEFAULT_BASE_URLS[AIProvider.OPENAI]
        )
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        data = await self._post_json(
            f"{base_url.rstrip('/')}/chat/completions",
            {
                "model": self.config.model,
                "messages": messages,
                "temperature": self.config.temperature,
                "max_tokens": self.config.max_tokens,
            },
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
            },
        )
        try:
            return data["choices"][0]["message"]["content"].strip()
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise LLMError(f"Unexpected chat-completions reply: {str(data)[:200]}") from e


class GeminiProvider(BaseAIProvider):
    """Google Gemini generateContent API."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        base_url = self.config.base_url or self.BASE_URL
        url = f"{base_url}/{self.config.model}:generateContent?key={self.config.api_key}"

        payload: dict = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.config.temperature,
                "maxOutputTokens": self.config.max_tokens,
            },
        }
        if system_prompt:
            payload["system_instruction"] = {"parts": [{"text": system_prompt}]}

        data = await self._post_json(url, payload, headers={"Content-Type": "application/json"})
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"].strip()
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise LLMError(f"Unexpected Gemini reply: {str(data)[:200]}") from e


class AnthropicProvider(BaseAIProvider):
    """Anthropic Claude API provider."""

    BASE_URL = "https://api.anthropic.com/v1"

    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        payload: dict = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            payload["system"] = system_prompt

        data = await self._post_json(
            f"{self.config.base_url or self.BASE_URL}/messages",
            payload,
            headers={
                "x-api-key": self.config.api_key or "",
                "anthropic-version": "2023-06-01",
                "Content-Type": "application/json",
            },
        )
        try:
            return data["content"][0]["text"].strip()
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise LLMError(f"Unexpected Anthropic reply: {str(data)[:200]}") from e


class OllamaProvider(BaseAIProvider):
    """Ollama local model provider."""

    DEFAULT_BASE_URL = "http://localhost:11434"

    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        base_url = self.config.base_url or self.DEFAULT_BASE_URL
        full_prompt = f"{system_prompt}\n\n{prompt}" if system_prompt else prompt

        data = await self._post_json(
            f"{base_url}/api/generate",
            {
                "model": self.config.model,
                "prompt": full_prompt,
                "stream": False,
                "options": {"temperature": self.config.temperature},
            },
        )
        if not isinstance(data, dict):
            raise LLMError(f"Unexpected Ollama reply: {str(data)[:200]}")
        return str(data.get("response", "")).strip()


PROVIDER_CLASSES = {
    AIProvider.DEEPSEEK: OpenAICompatibleProvider,
    AIProvider.OPENAI: OpenAICompatibleProvider,
    AIProvider.GROQ: OpenAICompatibleProvider,
    AIProvider.GEMINI: GeminiProvider,
    AIProvider.ANTHROPIC: AnthropicProvider,
    AIProvider.OLLAMA: OllamaProvider,
}


class AIService:
    """
    High-level LLM service used as the last lookup tier and for extras.

    Provides:
    - Auto-detecting translation (Chinese to English, anything else to Chinese)
    - Structured extras parsed from JSON replies
    - A connectivity check for the settings screen
    """

    # System prompts for different tasks
    SYSTEM_PROMPTS = {
        "translation": """You are a professional translation assistant.
Detect the language of the user's input: if it is Chinese, translate it into English;
if it is English or any other language, translate it into Chinese.
Return ONLY the translation, with no explanation, punctuation changes or extra content.""",

        ExtrasKind.CONJUGATIONS.value: """You are an English grammar expert.
Analyse the English word or phrase in the input, find its core verb and give all of that verb's forms.
Return ONLY this JSON (no other content, no code fences):
{"coreVerb":"<base form of the core verb>","forms":{"base":"<base>","pastTense":"<past tense>","pastParticiple":"<past participle>","presentParticiple":"<present participle>","thirdPerson":"<third person singular>"}}
If the input contains no verb (a pure noun or adjective), return: {"coreVerb":null,"forms":null}""",

        ExtrasKind.SYNONYMS.value: """You are an English vocabulary expert.
Give 3-5 synonyms for the English word or phrase in the input, each with a short explanation in Chinese.
Return ONLY this JSON array (no other content, no code fences):
[{"word":"<synonym>","explanation":"<short Chinese explanation>"}]""",

        ExtrasKind.ANTONYMS.value: """You are an English vocabulary expert.
Give 3-5 antonyms for the English word or phrase in the input, each with a short explanation in Chinese.
Return ONLY this JSON array (no other content, no code fences):
[{"word":"<antonym>","explanation":"<short Chinese explanation>"}]
If there is no clear antonym, return an empty array [].""",
    }

    def __init__(self, config: Optional[AIConfig] = None):
        """
        Initialize AI service.

        Args:
            config: AI configuration. If None, uses Config / environment.
        """
        self.config = config or self._config_from_env()
        self._provider: Optional[BaseAIProvider] = None

    @staticmethod
    def _config_from_env() -> AIConfig:
        """Create config from Config (environment variables)."""
        return build_ai_config(
            Config.LLM_PROVIDER, Config.LLM_MODEL or None, Config.LLM_API_KEY or None,
            Config.LLM_BASE_URL or None,
        )

    def _get_provider(self) -> BaseAIProvider:
        """Get or create the appropriate provider."""
        if self._provider is None:
            provider_class = PROVIDER_CLASSES.get(self.config.provider, OpenAICompatibleProvider)
            self._provider = provider_class(self.config)
        return self._provider

    @property
    def is_configured(self) -> bool:
        """Check if AI service is properly configured."""
        if self.config.provider == AIProvider.OLLAMA:
            return True  # Ollama doesn't need API key
        return bool(self.config.api_key)

    async def close(self) -> None:
        """Close the AI service and release resources."""
        if self._provider:
            await self._provider.close()
            self._provider = None

    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Run one completion.

        Raises:
            AuthError: No API key configured, or the key was rejected
            LLMError: Any other provider failure
        """
        if not self.is_configured:
            raise AuthError(f"No API key configured for {self.config.provider.value}")
        return await self._get_provider().complete(prompt, system_prompt)

    async def translate(self, text: str) -> Optional[str]:
        """
        Translate with the auto-detecting translation prompt.

        Returns:
            Translation text, or None when the provider failed or replied empty

        Raises:
            AuthError: Credentials missing or rejected
        """
        try:
            result = await self.complete(text, self.SYSTEM_PROMPTS["translation"])
        except AuthError:
            raise
        except LLMError as e:
            logger.warning("LLM translation failed: %s", e)
            return None
        return result or None

    async def fetch_extras(self, text: str, kind: ExtrasKind) -> Optional[Any]:
        """
        Fetch structured extras (conjugations / synonyms / antonyms).

        The reply is parsed as JSON after stripping optional code fences.
        A parse failure yields None; there is no retry.

        Raises:
            AuthError: Credentials missing or rejected
        """
        try:
            raw = await self.complete(text, self.SYSTEM_PROMPTS[kind.value])
        except AuthError:
            raise
        except LLMError as e:
            logger.warning("LLM extras (%s) failed for %r: %s", kind.value, text, e)
            return None
        return parse_json_reply(raw)

    async def check_connection(self) -> Tuple[bool, str]:
        """
        Test LLM API connectivity.

        Returns:
            (success, human-readable message)
        """
        name = self.config.provider.value
        try:
            result = await self.complete("Hello", "Reply with OK")
        except AuthError:
            return False, "API key is invalid or missing, please check it and retry."
        except LLMError as e:
            return False, f"{name} connection failed: {e}"
        if result:
            return True, f"Connected. {name} API is available."
        return False, f"{name} API returned an empty reply."


def parse_json_reply(raw: Optional[str]) -> Optional[Any]:
    """Parse an LLM reply as JSON, tolerating a surrounding code fence."""
    if not raw:
        return None
    try:
        return json.loads(TextParser.strip_code_fence(raw))
    except (json.JSONDecodeError, ValueError):
        logger.debug("LLM reply is not valid JSON: %r", raw[:200])
        return None


def build_ai_config(
    provider: str = "deepseek",
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: int = Config.TIMEOUT,
) -> AIConfig:
    """Build an AIConfig from plain setting values."""
    try:
        provider_enum = AIProvider((provider or "deepseek").lower())
    except ValueError:
        logger.warning("Unknown LLM provider %r, using deepseek", provider)
        provider_enum = AIProvider.DEEPSEEK

    return AIConfig(
        provider=provider_enum,
        model=model or DEFAULT_MODELS[provider_enum],
        api_key=api_key,
        base_url=base_url,
        timeout=timeout,
    )


# Convenience factory function
def create_ai_service(
    provider: str = "deepseek",
    model: Optional[str] = None,
    api_key: Optional[str] = None,
) -> AIService:
    """
    Create an AI service with specified configuration.

    Args:
        provider: Provider name (deepseek, openai, groq, gemini, anthropic, ollama)
        model: Model name (uses default if None)
        api_key: API key (uses Config.LLM_API_KEY if None)

    Returns:
        Configured AIService instance
    """
    return AIService(build_ai_config(provider, model, api_key or Config.LLM_API_KEY or None))
