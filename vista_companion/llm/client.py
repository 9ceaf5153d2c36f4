"""LLM client abstraction for short chat replies from Groq, Gemini or Claude."""

from __future__ import annotations

import logging
from typing import Optional

import requests

from vista_companion.api.config import DEFAULTS, get_api_key

logger = logging.getLogger(__name__)

GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"

# env var, keychain account
PROVIDER_KEYS = {
    "groq": ("GROQ_API_KEY", "groq"),
    "gemini": ("GEMINI_API_KEY", "gemini"),
    "claude": ("ANTHROPIC_API_KEY", "claude"),
}

MAX_TOKENS = 100
TEMPERATURE = 0.7
TOP_P = 0.9


class RateLimited(RuntimeError):
    """The provider answered 429; the caller should move on to the next one."""


class MissingAPIKey(ValueError):
    pass


class LLMClient:
    """Unified interface for calling Groq, Gemini or Claude."""

    def __init__(self, provider: str = "groq", model: Optional[str] = None,
                 api_key: Optional[str] = None, timeout: float = 30):
        self.provider = provider.lower()
        if self.provider not in PROVIDER_KEYS:
            raise ValueError(
                f"Unsupported provider: {provider}. Use one of: {', '.join(PROVIDER_KEYS)}."
            )
        self.model = model or DEFAULTS["models"][self.provider]
        self.timeout = timeout

        env_var, account = PROVIDER_KEYS[self.provider]
        self._api_key = api_key or get_api_key(env_var, account)
        if not self._api_key:
            raise MissingAPIKey(
                f"{env_var} not found. Either:\n"
                f"  • Run: vista set-key {self.provider}\n"
                f"  • Or:  export {env_var}='your-key'"
            )

        if self.provider == "gemini":
            self._init_gemini()
        elif self.provider == "claude":
            self._init_claude()

    def _init_gemini(self):
        try:
            from google import genai
        except ImportError:
            raise ImportError("Install google-genai: pip install google-genai")
        self._gemini_client = genai.Client(api_key=self._api_key)

    def _init_claude(self):
        try:
            import anthropic
        except ImportError:
            raise ImportError("Install anthropic: pip install anthropic")
        self._claude_client = anthropic.Anthropic(api_key=self._api_key)

    def run(self, system_prompt: str, user_message: str) -> str:
        """Send system + user message to the LLM and return the text response."""
        if self.provider == "groq":
            text = self._run_groq(system_prompt, user_message)
        elif self.provider == "gemini":
            text = self._run_gemini(system_prompt, user_message)
        else:
            text = self._run_claude(system_prompt, user_message)
        return text.strip()

    def _run_groq(self, system_prompt: str, user_message: str) -> str:
        resp = requests.post(
            GROQ_URL,
            headers={"Authorization": f"Bearer {self._api_key}"},
            json={
                "model": self.model,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
                "max_tokens": MAX_TOKENS,
                "temperature": TEMPERATURE,
                "top_p": TOP_P,
            },
            timeout=self.timeout,
        )
        if resp.status_code == 429:
            raise RateLimited("Groq rate limit reached")
        if resp.status_code != 200:
            logger.error("Groq API error %s: %s", resp.status_code, resp.text[:200])
            raise RuntimeError(f"Groq API error: {resp.status_code}")

        data = resp.json()
        return data["choices"][0]["message"]["content"]

    def _run_gemini(self, system_prompt: str, user_message: str) -> str:
        from google.genai import types

        config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            max_output_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
            top_p=TOP_P,
        )
        response = self._gemini_client.models.generate_content(
            model=self.model,
            contents=user_message,
            config=config,
        )

        text_parts = []
        if response.candidates and response.candidates[0].content:
            for part in response.candidates[0].content.parts:
                if part.text and not getattr(part, "thought", False):
                    text_parts.append(part.text)
        if not text_parts:
            raise RuntimeError("Invalid Gemini response format")
        return "".join(text_parts)

    def _run_claude(self, system_prompt: str, user_message: str) -> str:
        response = self._claude_client.messages.create(
            model=self.model,
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
            system=system_prompt,
            messages=[{"role": "user", "content": user_message}],
        )
        return response.content[0].text
