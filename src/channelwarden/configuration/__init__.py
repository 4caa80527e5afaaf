"""
Configuration management for channelwarden.

- **app_configuration.py**: YAML configuration loader guarded by fcntl locks.
  Falls back gracefully on missing or malformed config files and resolves the
  database path (``CHANNELWARDEN_DB`` wins over the file).

- **section_settings.py**: Typed accessors for each config section: fan-out
  throttling, the anomaly rule table, the system actor id, session lifetime
  and keywords, and the expired-ban sweep interval.
"""
