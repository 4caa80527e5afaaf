"""
Inbound callback routing.

- **callback_router.py**: ``parse_callback`` turning inline-button payloads
  into tagged ``CallbackCommand`` values, the ``CallbackRouter`` handler table
  with per-kind role checks, and ``build_moderation_router`` wiring the
  session and security panel callbacks.
"""
