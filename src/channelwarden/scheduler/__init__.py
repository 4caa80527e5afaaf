"""
Periodic background work.

- **expired_ban_sweeper.py**: ``ExpiredBanSweeper`` lifting expired temporary
  bans on a fixed interval through the moderation engine, so the channel
  unbans and the ban state stay consistent with manual unbans.
"""
