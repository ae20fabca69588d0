"""
Storage Package.

Persistence for the transfer sync pipeline.

Modules:
- models/: ORM models (transfer_events, sync_cursors)
- repositories/: Data access layer
"""
