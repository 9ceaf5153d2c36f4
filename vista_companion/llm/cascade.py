"""Ordered provider fallback for conversational replies.

Tries each configured provider in turn and ends with canned responses, so
``generate_reply`` always has something to say.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, List, Optional, Sequence

from vista_companion.llm.client import LLMClient, MissingAPIKey

logger = logging.getLogger(__name__)

PERSONA_PROMPT = (
    "You are {name} AI, a friendly AI companion robot. You have emotions and personality. "
    "Keep responses short (1-2 sentences), natural, and conversational. Express emotions in "
    "your responses. Be helpful, engaging, and remember your name is {name} AI."
)


def canned_response(message: str, name: str = "Vista") -> str:
    """Pattern-based reply used when every provider failed."""
    lower = message.lower()

    if "how are you" in lower:
        return f"I'm doing great! Thanks for asking. I'm {name} AI, always here to help. How about you?"
    if "what" in lower and "your name" in lower:
        return f"I'm {name} AI! I'm an AI companion robot. Nice to meet you!"
    if "who made you" in lower or "who created you" in lower:
        return f"I'm {name} AI, and I was built by my developer to keep you company!"
    if "goodbye" in lower or "bye" in lower:
        return f"Goodbye! It was nice talking to you. I'm {name} AI, and I'll be here whenever you need me!"
    if "thank" in lower:
        return f"You're welcome! I'm {name} AI, always here to help."
    if {"hello", "hi", "hey"} & set(re.findall(r"[a-z]+", lower)):
        return f"Hello! I'm {name} AI, your AI companion robot. How can I help you today?"
    if name.lower() in lower:
        return f"Yes, that's me! I'm {name} AI, your friendly AI companion. How can I help you?"

    return f'I heard you say: "{message}". That\'s interesting! I\'m {name} AI, tell me more about it.'


class ReplyCascade:
    """generate_reply(text) -> str across providers, failing over silently."""

    def __init__(
        self,
        providers: Sequence[str] = ("groq", "gemini", "claude"),
        models: Optional[Dict[str, str]] = None,
        assistant_name: str = "Vista",
        client_factory: Callable[..., LLMClient] = LLMClient,
    ):
        self.providers = list(providers)
        self.models = models or {}
        self.assistant_name = assistant_name
        self._client_factory = client_factory
        self._clients: Dict[str, Optional[LLMClient]] = {}

    @classmethod
    def from_config(cls, config: Dict) -> "ReplyCascade":
        return cls(
            providers=config["providers"],
            models=config["models"],
            assistant_name=config["assistant_name"],
        )

    def _client(self, provider: str) -> Optional[LLMClient]:
        if provider not in self._clients:
            try:
                self._clients[provider] = self._client_factory(
                    provider=provider, model=self.models.get(provider)
                )
            except (MissingAPIKey, ImportError, ValueError) as exc:
                logger.debug("Skipping %s: %s", provider, exc)
                self._clients[provider] = None
        return self._clients[provider]

    def generate_reply(self, text: str) -> str:
        system_prompt = PERSONA_PROMPT.format(name=self.assistant_name)
        errors: List[str] = []

        for provider in self.providers:
            client = self._client(provider)
            if client is None:
                continue
            try:
                logger.info("Trying %s API...", provider)
                reply = client.run(system_prompt, text)
            except Exception as exc:
                errors.append(f"{provider}: {exc}")
                logger.warning("%s API failed: %s", provider, exc)
                continue
            if reply:
                logger.info("%s API success", provider)
                return reply
            errors.append(f"{provider}: empty reply")

        if errors:
            logger.info("All API attempts failed: %s", errors)
        logger.info("Using simple fallback response")
        return canned_response(text, self.assistant_name)
