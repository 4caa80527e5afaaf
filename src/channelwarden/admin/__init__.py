"""
Owner and admin operations reached through command sessions.

- **admin_operations.py**: ``AdminOperations`` creating and removing admins,
  granting and revoking permissions, toggling bot commands and listing the
  admin team. Every change is written together with its admin action entry.
"""
