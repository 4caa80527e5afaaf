"""
Table-level repositories. Every method takes an open aiosqlite connection so
callers decide the transaction boundary.

- **user_repo.py**: users, roles and ban fields.
- **ban_record_repo.py**: append-only ban records with their channel sets.
- **event_repo.py**: behavior events, security events and admin actions.
- **channel_repo.py**: registered distribution channels.
- **admin_repo.py**: admin permissions and bot settings.
"""
