from vista_companion.commands.executor import CommandExecutor, format_time_ago
from vista_companion.commands.parser import (
    Action,
    Domain,
    MessageFilters,
    ParsedCommand,
    extract_contact_name,
    extract_message_to_send,
    extract_reply_message,
    is_filler_phrase,
    parse_command,
)

__all__ = [
    "CommandExecutor",
    "format_time_ago",
    "Action",
    "Domain",
    "MessageFilters",
    "ParsedCommand",
    "extract_contact_name",
    "extract_message_to_send",
    "extract_reply_message",
    "is_filler_phrase",
    "parse_command",
]
