"""Collaborators that only log, used when no chat network is wired in."""

from __future__ import annotations

import itertools
from typing import Any, Dict

from channelwarden.transport.channel_transport import CatalogGateway, ChannelTransport
from channelwarden.util.logger import get_logger

logger = get_logger("dry_run_transport")


class DryRunTransport(ChannelTransport):
    """Accepts every call and logs it."""

    async def apply_ban(self, channel_id: str, subject_id: int) -> bool:
        logger.info("[DRY RUN] ban subject %s on channel %s", subject_id, channel_id)
        return True

    async def apply_unban(self, channel_id: str, subject_id: int) -> bool:
        logger.info("[DRY RUN] unban subject %s on channel %s", subject_id, channel_id)
        return True

    async def send_direct_message(self, subject_id: int, text: str) -> bool:
        logger.info("[DRY RUN] message to %s: %s", subject_id, text)
        return True


class DryRunCatalog(CatalogGateway):
    """Hands out sequential content ids and logs every change."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)

    async def add_content(self, operator_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        content_id = next(self._ids)
        logger.info("[DRY RUN] %s added content %s: %s", operator_id, content_id, fields)
        return {"content_id": content_id, **fields}

    async def edit_content(self, operator_id: int, content_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        logger.info("[DRY RUN] %s edited content %s: %s", operator_id, content_id, fields)
        return {"content_id": content_id, **fields}

    async def delete_content(self, operator_id: int, content_id: int) -> Dict[str, Any]:
        logger.info("[DRY RUN] %s deleted content %s", operator_id, content_id)
        return {"content_id": content_id}
