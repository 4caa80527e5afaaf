"""
Data types shared across channelwarden.

- **moderation_datatypes.py**: Roles, ban kinds and statuses, severities,
  users, ban records, security and behavior events, fan-out outcomes and the
  ``ModerationResult`` verdict returned to operators.

- **anomaly_datatypes.py**: Anomaly rules, the default rule table and the
  ``SuspicionVerdict`` produced by the detector.

- **session_datatypes.py**: Tool names, ``CommandSession`` state and the
  replies/results of the command session controller.
"""
