"""
Channelwarden: moderation core for a multi-channel distribution bot.

Subpackages:

- **moderation**: Moderation engine, channel fan-out, per-subject locks and
  the subject directory.
- **anomaly**: Behavior-frequency anomaly detection with automatic bans.
- **sessions**: Multi-step operator command sessions and their store.
- **admin**: Admin team management and command toggles.
- **dispatch**: Inline-button callback routing.
- **scheduler**: Expired temporary ban sweeper.
- **database** / **repositories**: aiosqlite connection, schema and tables.
- **configuration**: YAML application configuration.
- **transport**: Collaborator contracts (chat network, renderer, catalog).
- **util**: Logging.
"""
