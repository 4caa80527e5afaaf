"""
Database schema initialization.

Handles creation of tables, indexes, and schema version tracking.
"""

import aiosqlite
from channelwarden.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates the tables and indexes the moderation core relies on."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create or update all database tables and indexes.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized (version %d)", SCHEMA_VERSION)

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        """Create all required database tables."""
        await db.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                external_id INTEGER NOT NULL UNIQUE,
                username TEXT,
                role TEXT NOT NULL DEFAULT 'user'
                    CHECK (role IN ('user', 'premium', 'admin', 'owner')),
                ban_status TEXT NOT NULL DEFAULT 'active'
                    CHECK (ban_status IN ('active', 'warned', 'temp-banned', 'permanently-banned')),
                ban_reason TEXT,
                banned_at INTEGER,
                ban_expires_at INTEGER,
                banned_by INTEGER,
                created_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
            )
        """)

        # Append-only; only the active flag is ever updated
        await db.execute("""
            CREATE TABLE IF NOT EXISTS ban_records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id),
                external_id INTEGER NOT NULL,
                reason TEXT NOT NULL,
                kind TEXT NOT NULL CHECK (kind IN ('warning', 'temporary', 'permanent')),
                expires_at INTEGER,
                channels TEXT NOT NULL DEFAULT '[]',
                created_by INTEGER NOT NULL,
                active INTEGER NOT NULL DEFAULT 1,
                created_at INTEGER NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS behavior_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id),
                action_type TEXT NOT NULL,
                created_at INTEGER NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS security_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id),
                event_type TEXT NOT NULL,
                severity TEXT NOT NULL CHECK (severity IN ('low', 'medium', 'high', 'critical')),
                details TEXT NOT NULL DEFAULT '{}',
                automatic_action TEXT,
                created_at INTEGER NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS admin_actions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                admin_id INTEGER NOT NULL,
                action_type TEXT NOT NULL,
                target_type TEXT NOT NULL,
                target_id INTEGER,
                details TEXT NOT NULL DEFAULT '{}',
                created_at INTEGER NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS distribution_channels (
                channel_id TEXT PRIMARY KEY,
                title TEXT,
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS admin_permissions (
                user_id INTEGER NOT NULL REFERENCES users(id),
                permission TEXT NOT NULL,
                granted_by INTEGER NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                granted_at INTEGER NOT NULL,
                PRIMARY KEY (user_id, permission)
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS bot_settings (
                setting_key TEXT PRIMARY KEY,
                setting_value TEXT NOT NULL,
                updated_by INTEGER,
                updated_at INTEGER NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        """Create indexes, including the one-active-ban-per-user guard."""
        await db.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_ban_records_one_active "
            "ON ban_records(user_id) WHERE active = 1"
        )
        await db.execute("CREATE INDEX IF NOT EXISTS idx_ban_records_user ON ban_records(user_id, created_at DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_ban_records_expiry ON ban_records(kind, active, expires_at)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_behavior_events_window ON behavior_events(user_id, created_at)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_security_events_time ON security_events(created_at DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_admin_actions_admin ON admin_actions(admin_id, created_at DESC)")

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
