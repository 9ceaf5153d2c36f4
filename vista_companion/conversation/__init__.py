from vista_companion.conversation.emotion import detect_emotion
from vista_companion.conversation.orchestrator import Conversation, Reply

__all__ = ["Conversation", "Reply", "detect_emotion"]
