"""
Composition root: builds every moderation component around one connection.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from channelwarden.admin.admin_operations import AdminOperations
from channelwarden.anomaly.anomaly_detector import AnomalyDetector
from channelwarden.configuration.app_configuration import AppConfig
from channelwarden.database.db_connection import ConnectionManager
from channelwarden.dispatch.callback_router import CallbackRouter, build_moderation_router
from channelwarden.moderation.fanout_executor import ChannelFanoutExecutor
from channelwarden.moderation.moderation_engine import ModerationEngine
from channelwarden.moderation.subject_directory import SubjectDirectory
from channelwarden.scheduler.expired_ban_sweeper import ExpiredBanSweeper
from channelwarden.sessions.command_session_controller import CommandSessionController
from channelwarden.sessions.session_store import InMemorySessionStore, SessionStore
from channelwarden.transport.channel_transport import CatalogGateway, ChannelTransport, MessageRenderer


@dataclass(slots=True)
class ModerationCore:
    db: ConnectionManager
    directory: SubjectDirectory
    engine: ModerationEngine
    detector: AnomalyDetector
    admin: AdminOperations
    sessions: CommandSessionController
    router: CallbackRouter
    sweeper: ExpiredBanSweeper


def build_core(
    db: ConnectionManager,
    transport: ChannelTransport,
    catalog: CatalogGateway,
    config: AppConfig,
    *,
    renderer: Optional[MessageRenderer] = None,
    store: Optional[SessionStore] = None,
) -> ModerationCore:
    """Wire the components from ``config``; the connection must already be open."""
    directory = SubjectDirectory(db)
    engine = ModerationEngine(
        db,
        ChannelFanoutExecutor.from_settings(transport, config.fanout),
        transport,
        renderer=renderer,
        system_actor_id=config.moderation.system_actor_id,
    )
    detector = AnomalyDetector.from_settings(db, engine, config.anomaly)
    admin = AdminOperations(db, directory)
    sessions = CommandSessionController.from_settings(
        db,
        store or InMemorySessionStore(config.sessions.ttl_seconds),
        engine,
        admin,
        catalog,
        config.sessions,
    )
    router = build_moderation_router(directory, engine, sessions)
    sweeper = ExpiredBanSweeper(engine, lambda: config.sweeper.interval_seconds)
    return ModerationCore(db, directory, engine, detector, admin, sessions, router, sweeper)
