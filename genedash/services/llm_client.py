"""
LLM client - local (Ollama) and hosted (OpenAI-compatible) text generation
"""

import asyncio
import functools
import logging
import time
from dataclasses import dataclass
from typing import List, Optional

import aiohttp

from genedash.core.config import Settings, settings as default_settings
from genedash.core.errors import LLMError

logger = logging.getLogger(__name__)


@dataclass
class ModelConfig:
    """Configuration for different model types"""
    model_name: str
    model_type: str  # 'ollama' or 'openai'
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    temperature: float = 0.1
    top_p: float = 0.9
    top_k: int = 40
    max_tokens: int = 1500
    timeout: float = 120.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "ModelConfig":
        provider = settings.LLM_PROVIDER.lower()
        if provider == "openai":
            return cls(
                model_name=settings.OPENAI_MODEL,
                model_type="openai",
                base_url=settings.OPENAI_BASE_URL or None,
                api_key=settings.OPENAI_API_KEY or None,
                temperature=settings.LLM_TEMPERATURE,
                top_p=settings.LLM_TOP_P,
                top_k=settings.LLM_TOP_K,
                max_tokens=settings.LLM_MAX_TOKENS,
                timeout=settings.LLM_TIMEOUT_SECONDS,
            )
        if provider != "ollama":
            raise ValueError(f"Unsupported LLM provider: {settings.LLM_PROVIDER}")
        return cls(
            model_name=settings.OLLAMA_MODEL,
            model_type="ollama",
            base_url=settings.OLLAMA_BASE_URL.rstrip("/"),
            temperature=settings.LLM_TEMPERATURE,
            top_p=settings.LLM_TOP_P,
            top_k=settings.LLM_TOP_K,
            max_tokens=settings.LLM_MAX_TOKENS,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )


class LLMClient:
    """Prompt-in, text-out wrapper around the configured model backend"""

    def __init__(self, model_config: ModelConfig, health_cache_seconds: float = 30.0):
        self.model_config = model_config
        self.health_cache_seconds = health_cache_seconds
        self._health: Optional[bool] = None
        self._health_checked_at = 0.0

    @classmethod
    def from_settings(cls, settings: Settings = default_settings) -> "LLMClient":
        return cls(ModelConfig.from_settings(settings), settings.HEALTH_CACHE_SECONDS)

    @property
    def model_name(self) -> str:
        return self.model_config.model_name

    @property
    def provider(self) -> str:
        return self.model_config.model_type

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Generate a completion for the prompt"""
        if self.model_config.model_type == "openai":
            return await self._generate_hosted(prompt, system_prompt)
        return await self._generate_ollama(prompt, system_prompt)

    async def _generate_ollama(self, prompt: str, system_prompt: Optional[str]) -> str:
        payload = {
            "model": self.model_config.model_name,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.model_config.temperature,
                "top_p": self.model_config.top_p,
                "top_k": self.model_config.top_k,
                "num_predict": self.model_config.max_tokens,
            },
        }
        if system_prompt:
            payload["system"] = system_prompt

        try:
            timeout = aiohttp.ClientTimeout(total=self.model_config.timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    f"{self.model_config.base_url}/api/generate",
                    json=payload
                ) as response:
                    if response.status != 200:
                        raise LLMError(f"Local LLM API error: {response.status} {response.reason}")
                    result = await response.json()
        except asyncio.TimeoutError as e:
            raise LLMError(f"Local model timed out after {self.model_config.timeout}s") from e
        except aiohttp.ClientError as e:
            raise LLMError(f"Failed to get response from local model: {e}") from e

        return result.get("response", "")

    async def _generate_hosted(self, prompt: str, system_prompt: Optional[str]) -> str:
        if not self.model_config.api_key:
            raise LLMError("Hosted model requested but OPENAI_API_KEY is not set")

        loop = asyncio.get_running_loop()
        call = functools.partial(self._run_openai_generator, prompt, system_prompt)
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, call),
                timeout=self.model_config.timeout,
            )
        except asyncio.TimeoutError as e:
            raise LLMError(f"Hosted model timed out after {self.model_config.timeout}s") from e

    def _run_openai_generator(self, prompt: str, system_prompt: Optional[str]) -> str:
        from haystack.components.generators import OpenAIGenerator
        from haystack.utils import Secret

        generator = OpenAIGenerator(
            api_key=Secret.from_token(self.model_config.api_key),
            model=self.model_config.model_name,
            api_base_url=self.model_config.base_url,
            system_prompt=system_prompt,
            generation_kwargs={
                "temperature": self.model_config.temperature,
                "top_p": self.model_config.top_p,
                "max_tokens": self.model_config.max_tokens,
            },
        )
        try:
            result = generator.run(prompt=prompt)
        except Exception as e:
            raise LLMError(f"Hosted model error: {e}") from e

        replies = result.get("replies") or []
        if not replies:
            raise LLMError("Hosted model returned no replies")
        return replies[0]

    async def check_health(self, use_cache: bool = True) -> bool:
        """Check whether the backend can serve requests. Never raises."""
        now = time.monotonic()
        if use_cache and self._health is not None and now - self._health_checked_at < self.health_cache_seconds:
            return self._health

        if self.model_config.model_type == "openai":
            healthy = bool(self.model_config.api_key)
        else:
            healthy = await self._ollama_tags() is not None

        if healthy != self._health:
            if healthy:
                logger.info(f"✅ LLM backend available ({self.provider}: {self.model_name})")
            else:
                logger.warning(f"⚠️ LLM backend not available ({self.provider}: {self.model_name})")
        self._health = healthy
        self._health_checked_at = now
        return healthy

    async def list_models(self) -> List[str]:
        """Names of the models the backend offers. Never raises."""
        if self.model_config.model_type == "openai":
            return [self.model_config.model_name]
        tags = await self._ollama_tags()
        if not tags:
            return []
        return [model.get("name", "") for model in tags.get("models", []) if model.get("name")]

    async def _ollama_tags(self) -> Optional[dict]:
        try:
            timeout = aiohttp.ClientTimeout(total=5)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(f"{self.model_config.base_url}/api/tags") as response:
                    if response.status == 200:
                        return await response.json()
                    logger.debug(f"Ollama tags returned {response.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"Ollama not reachable: {e}")
        return None
