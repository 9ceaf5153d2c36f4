"""Routes each utterance to WhatsApp commands or to the chat LLMs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from vista_companion.commands.executor import CommandExecutor
from vista_companion.commands.parser import Domain, ParsedCommand, parse_command
from vista_companion.conversation.emotion import LISTENING, detect_emotion

logger = logging.getLogger(__name__)


class ReplySource(Protocol):
    def generate_reply(self, text: str) -> str: ...


@dataclass
class Reply:
    response: str
    emotion: str
    command: Optional[ParsedCommand] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response": self.response,
            "emotion": self.emotion,
            "command": self.command.to_dict() if self.command else None,
        }


class Conversation:
    """One turn in, one spoken reply plus an emotion tag out.

    Email and calendar commands are recognized by the parser but not wired
    to anything yet, so they go to the LLM like ordinary chat.
    """

    def __init__(self, executor: CommandExecutor, replies: ReplySource):
        self.executor = executor
        self.replies = replies

    def respond(self, text: str) -> Reply:
        command = parse_command(text)

        if command is not None and command.domain is Domain.MESSAGING:
            logger.info("WhatsApp command: %s", command.action.value)
            return Reply(self.executor.execute(command), LISTENING, command)

        return Reply(self.replies.generate_reply(text), detect_emotion(text), command)
