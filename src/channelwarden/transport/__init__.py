"""
Contracts for the collaborators the core talks to: the chat network
(``ChannelTransport``), the templating service (``MessageRenderer``) and the
content catalog (``CatalogGateway``).

- **channel_transport.py**: The abstract contracts and ``PlainMessageRenderer``.
- **dry_run.py**: Logging-only implementations used by the standalone runner.
"""
