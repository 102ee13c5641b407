# pyright: standard

"""snapper-sync: snapper_sync/endpoint/__init__.py."""

import urllib.parse

from ..__logger__ import logger

from .common import Endpoint
from .local import LocalEndpoint
from .ssh import SSHEndpoint

__all__ = ["Endpoint", "LocalEndpoint", "SSHEndpoint", "choose_endpoint", "parse_remote"]


def parse_remote(remote):
    """
    Split a remote destination into its parts.

    Accepts ``host``, ``user@host``, ``user@host:port`` and
    ``ssh://user@host:port``.

    Returns:
        tuple: (hostname, username or None, port or None)

    Raises:
        ValueError: If no hostname can be found or the port is not a number.
    """
    if "://" not in remote:
        remote = "ssh://" + remote
    parsed = urllib.parse.urlparse(remote)
    if parsed.scheme != "ssh":
        raise ValueError(f"Unsupported remote scheme: {parsed.scheme}")
    try:
        port = parsed.port
    except ValueError as e:
        raise ValueError(f"Invalid port in remote destination: {remote}") from e
    if not parsed.hostname:
        raise ValueError("No hostname for SSH specified.")
    return parsed.hostname, parsed.username, port


def choose_endpoint(remote=None, common_config=None):
    """
    Chooses a suitable endpoint for the destination.

    Args:
        remote (str): Remote host as [user@]host[:port], or None for the local machine.
        common_config (dict): Settings shared by all endpoints (port, identity, ...).

    Returns:
        Endpoint: An instance of the appropriate `Endpoint` subclass.

    Raises:
        ValueError: If the remote destination cannot be parsed.
    """
    config = dict(common_config or {})

    if not remote:
        logger.debug("Creating local endpoint")
        return LocalEndpoint(config=config)

    hostname, username, port = parse_remote(remote)
    if username:
        config["username"] = username
    if port:
        config["port"] = port

    logger.debug("Creating SSH endpoint for %s", hostname)
    return SSHEndpoint(hostname, config=config)
