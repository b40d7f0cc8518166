"""
LLM Service
Thin client for an OpenAI-compatible chat completion endpoint
"""

import logging
from typing import Dict, List, Optional, Any
import asyncio

import requests

from config import settings


logger = logging.getLogger(__name__)


class LLMService:
    """
    Service for interacting with the chat completion API

    Requests are blocking (requests library) and run in the default executor
    so callers can await them from the event loop.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model_name: Optional[str] = None,
        timeout: Optional[int] = None
    ):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.model_name = model_name or settings.LLM_MODEL
        self.temperature = settings.LLM_TEMPERATURE
        self.max_tokens = settings.LLM_MAX_TOKENS
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS

        # Usage tracking
        self._total_tokens_used = 0
        self._request_count = 0

        if not self.api_key:
            logger.warning("OPENAI_API_KEY not configured; AI analysis will be skipped")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> str:
        """
        Generate a response from the LLM

        Args:
            prompt: User prompt/message
            system_prompt: System instructions
            temperature: Sampling temperature (0-1)
            max_tokens: Maximum response tokens

        Returns:
            Generated text response

        Raises:
            RuntimeError: when no API key is configured or the API answers non-200
        """
        if not self.is_configured:
            raise RuntimeError("LLM is not configured. Set OPENAI_API_KEY.")

        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.model_name,
            "messages": messages,
            "temperature": temperature if temperature is not None else self.temperature,
            "max_tokens": max_tokens if max_tokens is not None else self.max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        loop = asyncio.get_running_loop()
        resp = await loop.run_in_executor(
            None,
            lambda: requests.post(
                f"{self.base_url}/chat/completions",
                headers=headers,
                json=payload,
                timeout=self.timeout,
            ),
        )

        if resp.status_code != 200:
            logger.error("Chat completion API error %s", resp.status_code)
            raise RuntimeError(f"Chat completion API error: {resp.status_code}")

        data = resp.json()
        choices = data.get("choices") or []
        if not choices:
            return ""
        text = (choices[0].get("message") or {}).get("content") or ""

        usage = data.get("usage") or {}
        self._total_tokens_used += usage.get("total_tokens", 0)
        self._request_count += 1

        return text

    def get_usage_stats(self) -> Dict[str, Any]:
        """Get usage statistics"""
        return {
            "total_tokens": self._total_tokens_used,
            "request_count": self._request_count,
            "model": self.model_name,
        }

    def reset_usage_stats(self):
        """Reset usage tracking"""
        self._total_tokens_used = 0
        self._request_count = 0


# Singleton instance
llm_service = LLMService()
