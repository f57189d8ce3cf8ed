"""Persistence and resolution of the last-used connection options."""

import getpass
import logging
import os
from typing import Dict, Optional

from .errors import MissingIdentityError
from .models import ConnectionOptions

DEFAULT_PORT = 22


class FileKeyValueStore:
    """A flat ``key=value`` file; the whole record is replaced on write."""

    def __init__(self, path: str):
        """Initialize the store for the given file path."""
        self.path = path
        self.logger = logging.getLogger(__name__)

    def read(self) -> Dict[str, str]:
        """Read the record, returning an empty dict if the file is missing."""
        values = {}
        try:
            with open(self.path) as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    values[key.strip()] = value.strip()
        except FileNotFoundError:
            self.logger.debug(f"No stored record at {self.path}")
        return values

    def write(self, values: Dict[str, str]):
        """Overwrite the record."""
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w") as f:
            for key, value in values.items():
                f.write(f"{key}={value}\n")


class MemoryKeyValueStore:
    """In-memory stand-in for FileKeyValueStore."""

    def __init__(self, values: Optional[Dict[str, str]] = None):
        self.values = dict(values or {})

    def read(self) -> Dict[str, str]:
        return dict(self.values)

    def write(self, values: Dict[str, str]):
        self.values = dict(values)


class OptionStore:
    """Last-used connection options, stored as a single key-value record."""

    def __init__(self, store):
        """Initialize option store on top of a key-value store."""
        self.store = store
        self.logger = logging.getLogger(__name__)

    def load(self) -> ConnectionOptions:
        """Load the persisted options; missing keys come back unset."""
        values = self.store.read()
        port = None
        if values.get("port"):
            try:
                port = int(values["port"])
                if port < 1 or port > 65535:
                    raise ValueError("out of range")
            except ValueError as e:
                self.logger.warning(f"Ignoring invalid stored port {values['port']!r}: {e}")
                port = None

        return ConnectionOptions(
            ssh_user=values.get("sshuser") or None,
            identity=values.get("identity") or None,
            pubkey=values.get("pubkey") or None,
            port=port,
        )

    def save(self, options: ConnectionOptions):
        """Persist the options, replacing whatever was stored before."""
        self.store.write({
            "sshuser": options.ssh_user or "",
            "identity": options.identity or "",
            "pubkey": options.pubkey or "",
            "port": "" if options.port is None else str(options.port),
        })


def resolve_options(overrides: ConnectionOptions, persisted: ConnectionOptions,
                    default_user: Optional[str] = None) -> ConnectionOptions:
    """
    Resolve the effective options for a session.

    Each field takes the explicit override first, then the persisted value,
    then the hard default (current OS user, port 22). The identity is
    mandatory and must reference an existing file; the public key is optional
    and is dropped if it does not exist.

    Raises:
        MissingIdentityError: if no existing identity file can be resolved
    """
    logger = logging.getLogger(__name__)
    merged = overrides.merged_over(persisted)
    defaults = ConnectionOptions(
        ssh_user=default_user or getpass.getuser(),
        port=DEFAULT_PORT,
    )
    resolved = merged.merged_over(defaults)

    if not resolved.identity:
        raise MissingIdentityError(
            "An identity file is required: pass -i/--identity at least once"
        )
    identity = os.path.expanduser(resolved.identity)
    if not os.path.isfile(identity):
        raise MissingIdentityError(f"Identity file not found: {identity}")

    pubkey = None
    if resolved.pubkey:
        pubkey = os.path.expanduser(resolved.pubkey)
        if not os.path.isfile(pubkey):
            logger.warning(f"Public key file not found, ignoring: {pubkey}")
            pubkey = None

    return ConnectionOptions(
        ssh_user=resolved.ssh_user,
        identity=identity,
        pubkey=pubkey,
        port=resolved.port,
    )
