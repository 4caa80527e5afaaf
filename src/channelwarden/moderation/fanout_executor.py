"""
Channel fan-out: apply one ban or unban to many channels.

Channels are independent. A failing channel never aborts or rolls back the
others, and the executor never raises for a channel failure; each channel
yields a ``ChannelOutcome`` and the caller decides what partial success means.

Throttling: at most ``max_concurrency`` remote calls are in flight, and every
slot pauses ``delay_seconds`` after its call before admitting the next one.
The pause is an ``asyncio.sleep`` so it only delays this fan-out.
"""

from __future__ import annotations

import asyncio
from typing import Sequence

from channelwarden.configuration.section_settings import FanoutSettings
from channelwarden.datatypes.moderation_datatypes import ChannelOutcome, FanoutAction, FanoutResult
from channelwarden.transport.channel_transport import ChannelTransport
from channelwarden.util.logger import get_logger

logger = get_logger("fanout_executor")


class ChannelFanoutExecutor:
    """
    Applies a ``FanoutAction`` to an ordered list of channel ids.

    Attributes:
        transport: Chat network collaborator performing the remote calls.
        delay_seconds: Pause after each remote call, per concurrency slot.
        max_concurrency: Upper bound of simultaneous remote calls.
        call_timeout: Outer timeout of a single remote call, in seconds.
    """

    def __init__(
        self,
        transport: ChannelTransport,
        *,
        delay_seconds: float = 0.1,
        max_concurrency: int = 3,
        call_timeout: float = 10.0,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.transport = transport
        self.delay_seconds = max(0.0, delay_seconds)
        self.max_concurrency = max_concurrency
        self.call_timeout = call_timeout

    @classmethod
    def from_settings(cls, transport: ChannelTransport, settings: FanoutSettings) -> "ChannelFanoutExecutor":
        return cls(
            transport,
            delay_seconds=settings.delay_seconds,
            max_concurrency=settings.max_concurrency,
            call_timeout=settings.call_timeout_seconds,
        )

    async def execute(
        self,
        action: FanoutAction,
        subject_id: int,
        channel_ids: Sequence[str],
    ) -> FanoutResult:
        """
        Apply ``action`` for ``subject_id`` on every channel.

        Args:
            action: BAN or UNBAN.
            subject_id: Platform id of the subject.
            channel_ids: Channels in the order outcomes should be reported.

        Returns:
            FanoutResult with one outcome per channel, in input order.
        """
        channels = [str(c) for c in channel_ids]
        if not channels:
            return FanoutResult(action=action, subject_id=subject_id)

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_one(channel_id: str) -> ChannelOutcome:
            async with semaphore:
                try:
                    return await self._call(action, channel_id, subject_id)
                finally:
                    if self.delay_seconds:
                        await asyncio.sleep(self.delay_seconds)

        outcomes = await asyncio.gather(*(run_one(c) for c in channels))
        result = FanoutResult(action=action, subject_id=subject_id, outcomes=list(outcomes))

        log = logger.info if result.complete else logger.warning
        log(
            "[FANOUT] %s for subject %s: %d/%d channels succeeded",
            action.value,
            subject_id,
            result.affected_count,
            result.total_count,
        )
        return result

    async def _call(self, action: FanoutAction, channel_id: str, subject_id: int) -> ChannelOutcome:
        operation = self.transport.apply_ban if action is FanoutAction.BAN else self.transport.apply_unban
        try:
            response = await asyncio.wait_for(operation(channel_id, subject_id), timeout=self.call_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "[FANOUT] %s timed out on channel %s for subject %s after %.1fs",
                action.value,
                channel_id,
                subject_id,
                self.call_timeout,
            )
            return ChannelOutcome(channel_id=channel_id, ok=False, error="timeout")
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning(
                "[FANOUT] %s failed on channel %s for subject %s: %s",
                action.value,
                channel_id,
                subject_id,
                exc,
            )
            return ChannelOutcome(channel_id=channel_id, ok=False, error=f"{type(exc).__name__}: {exc}")

        if response is False:
            logger.warning(
                "[FANOUT] %s rejected on channel %s for subject %s",
                action.value,
                channel_id,
                subject_id,
            )
            return ChannelOutcome(channel_id=channel_id, ok=False, error="rejected")

        logger.debug("[FANOUT] %s applied on channel %s for subject %s", action.value, channel_id, subject_id)
        return ChannelOutcome(channel_id=channel_id, ok=True)
