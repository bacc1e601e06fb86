"""
WhatsApp slash commands.

Commands never touch correlation state. Parsing follows the chat syntax
``/command arg1 arg2 key:value``.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

from importflow.db.unit_of_work import UnitOfWork
from importflow.intake import replies
from importflow.models.order import OrderStatus
from importflow.models.user import RegisteredUser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParsedCommand:
    name: str
    args: list[str] = field(default_factory=list)
    options: dict[str, str] = field(default_factory=dict)


def parse_command(text: str | None) -> ParsedCommand | None:
    """
    Parse a slash command.

    Examples:
        "/help" -> ParsedCommand("help")
        "/status all" -> ParsedCommand("status", ["all"])
        "/status limit:5" -> ParsedCommand("status", [], {"limit": "5"})

    Returns:
        ParsedCommand, or None if the text is not a command
    """
    if not text or not text.strip().startswith("/"):
        return None

    parts = text.strip().split()
    name = parts[0][1:].lower()
    if not name:
        return None

    args: list[str] = []
    options: dict[str, str] = {}
    for part in parts[1:]:
        if ":" in part:
            key, value = part.split(":", 1)
            options[key.lower()] = value
        else:
            args.append(part)

    return ParsedCommand(name=name, args=args, options=options)


class CommandHandler:
    """Answers /help and /status for a registered user."""

    def __init__(self, uow_factory: Callable[[], UnitOfWork] = UnitOfWork):
        self._uow_factory = uow_factory

    def handle(self, text: str, user: RegisteredUser) -> str:
        """Return the reply text for a command message."""
        command = parse_command(text)
        if command is None:
            return replies.unknown_command(text)

        if command.name == "help":
            return replies.help_text()
        if command.name == "status":
            return self._status(user)

        logger.info(f"Unknown command /{command.name}")
        return replies.unknown_command(f"/{command.name}")

    def _status(self, user: RegisteredUser) -> str:
        with self._uow_factory() as uow:
            pending = uow.orders.get_by_organization(
                user.organization_id,
                status=OrderStatus.PENDING_REVIEW,
                limit=500,
            )
        return replies.pending_status(pending)
