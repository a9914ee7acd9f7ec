"""Domain layer: listing reconciliation, sync jobs and review lifecycle."""
