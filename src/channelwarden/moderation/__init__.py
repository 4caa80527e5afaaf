"""
Moderation core: ban decisions and their application to the channels.

- **moderation_engine.py**: ``ModerationEngine`` owning ban, warning and unban
  transitions, the single-active-record rule, the atomic persistence of a
  decision and the background subject notifications.

- **fanout_executor.py**: ``ChannelFanoutExecutor`` applying one ban or unban
  to many channels with bounded concurrency, a per-call timeout and an
  inter-call delay. Reports one outcome per channel and never raises for a
  channel failure.

- **subject_locks.py**: Keyed asyncio locks that serialise every call for the
  same subject.

- **subject_directory.py**: ``SubjectDirectory`` creating users on first
  contact, resolving operator-typed identifiers and maintaining the
  distribution channel registry.
"""
