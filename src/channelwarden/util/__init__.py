"""
Utility helpers for channelwarden.

- **logger.py**: Centralized logging configuration with colored console output
  through prompt_toolkit, a rotating per-process log file, and a global
  exception hook for uncaught errors.
"""
