"""
Multi-step operator command sessions.

- **session_store.py**: ``SessionStore`` interface and the TTL-aware
  ``InMemorySessionStore``; at most one session per operator.

- **tool_steps.py**: Step tables of every tool (keys, parsers, optional and
  conditional steps, required role).

- **command_session_controller.py**: ``CommandSessionController`` driving
  start / submit / cancel and dispatching the assembled input to the
  moderation engine, the admin operations or the content catalog.
"""
