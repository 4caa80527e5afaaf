"""
Database package for channelwarden.

- **db_connection.py**: One long-lived aiosqlite connection with WAL pragmas,
  a write semaphore and a commit/rollback transaction context.

- **db_schema.py**: Table and index creation, including the partial unique
  index that allows at most one active ban record per user.
"""
