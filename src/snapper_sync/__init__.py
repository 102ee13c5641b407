"""snapper-sync: snapper_sync/__init__.py."""

__version__ = "0.3.0"

# Description placed on a snapshot between its creation and a completed transfer.
IN_PROGRESS_MARKER = "snapper-sync backup in progress"

DEFAULT_DESCRIPTION = "latest incremental backup"
