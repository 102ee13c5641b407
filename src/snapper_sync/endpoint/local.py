# pyright: standard

"""snapper-sync: snapper_sync/endpoint/local.py
Run commands on the local machine.
"""

import shutil
from pathlib import Path

from snapper_sync import __util__
from snapper_sync.__logger__ import logger

from .common import Endpoint


class LocalEndpoint(Endpoint):
    """Create a local command endpoint."""

    def get_id(self):
        """Return an id string to identify this endpoint over multiple runs."""
        return "local://"

    def is_dir(self, path) -> bool:
        return Path(path).is_dir()

    def mkdir(self, path) -> None:
        path = Path(path)
        if path.is_dir():
            return
        logger.info("Creating directory: %s", path)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Error creating new location %s: %s", path, e)
            raise __util__.DestinationNotWritable(f"Cannot create {path}: {e}") from e

    def copy_file(self, source, destination_dir) -> None:
        """Copy ``source`` into ``destination_dir``, keeping its metadata."""
        try:
            shutil.copy2(source, Path(destination_dir) / Path(source).name)
        except OSError as e:
            logger.error("Error copying %s to %s: %s", source, destination_dir, e)
            raise __util__.TransferFailed(
                f"Cannot copy {source} to {destination_dir}: {e}"
            ) from e
        logger.debug("Copied %s to %s", source, destination_dir)
