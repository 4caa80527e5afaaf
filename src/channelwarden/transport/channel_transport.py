"""Collaborator contracts for the chat network and the subject notifications."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from channelwarden.datatypes.moderation_datatypes import BanKind


class ChannelTransport(ABC):
    """Remote operations the moderation core needs from the chat network.

    A call fails by raising or by returning ``False``. Implementations
    carry their own network timeouts; the fan-out executor adds an outer one.
    """

    @abstractmethod
    async def apply_ban(self, channel_id: str, subject_id: int) -> Any:
        """Remove the subject from one channel and block re-joining."""

    @abstractmethod
    async def apply_unban(self, channel_id: str, subject_id: int) -> Any:
        """Lift a channel ban previously applied with ``apply_ban``."""

    @abstractmethod
    async def send_direct_message(self, subject_id: int, text: str) -> Any:
        """Send a private message; best-effort."""


class MessageRenderer(ABC):
    """Turns a notification kind plus its context into user-facing text."""

    @abstractmethod
    def render(self, kind: str, context: Dict[str, Any]) -> str:
        """Return the text for ``kind`` (``ban_notice``, ``warning_notice``, ``unban_notice``)."""


class PlainMessageRenderer(MessageRenderer):
    """Minimal renderer used when no templating collaborator is wired in."""

    def render(self, kind: str, context: Dict[str, Any]) -> str:
        reason = context.get("reason") or ""
        if kind == "warning_notice":
            return f"Warning: {reason}"
        if kind == "ban_notice":
            ban_kind: Optional[BanKind] = context.get("kind")
            text = f"You have been banned ({ban_kind or 'ban'}): {reason}"
            if context.get("expires_at"):
                text += f" until {context['expires_at']}"
            return text
        if kind == "unban_notice":
            return "Your ban has been lifted."
        return reason


class CatalogGateway(ABC):
    """Content catalog operations owned by an external service."""

    @abstractmethod
    async def add_content(self, operator_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def edit_content(self, operator_id: int, content_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def delete_content(self, operator_id: int, content_id: int) -> Dict[str, Any]:
        ...
