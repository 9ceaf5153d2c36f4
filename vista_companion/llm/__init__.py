from vista_companion.llm.cascade import ReplyCascade, canned_response
from vista_companion.llm.client import LLMClient, MissingAPIKey, RateLimited

__all__ = [
    "LLMClient",
    "MissingAPIKey",
    "RateLimited",
    "ReplyCascade",
    "canned_response",
]
