"""SSH session tunnelled through the jump pod."""

import logging
import os
import re
import shlex
import subprocess
from typing import List, Optional, Sequence, Tuple

from .errors import ClusterError, KeyInjectionError, MissingIdentityError, MissingToolError
from .keys import resolve_jump_keypair
from .logging import log_session_end, log_session_start
from .models import ConnectionOptions, KeyPair

JUMP_USER = "root"
JUMP_HOST = "127.0.0.1"

# Only for the jump hop: the pod is recreated at will, its host key is never stable
HOST_KEY_OPTIONS = [
    "-o", "StrictHostKeyChecking=no",
    "-o", "UserKnownHostsFile=/dev/null",
]

# OpenSSH 8.5 stopped offering ssh-rsa (RSA/SHA-1) by default
RSA_COMPAT_VERSION = (8, 5)
RSA_COMPAT_OPTIONS = [
    "-o", "HostKeyAlgorithms=+ssh-rsa",
    "-o", "PubkeyAcceptedAlgorithms=+ssh-rsa",
]

AUTHORIZED_KEYS_COMMAND = [
    "/bin/sh", "-c",
    "mkdir -p /root/.ssh && chmod 700 /root/.ssh"
    " && cat > /root/.ssh/authorized_keys"
    " && chmod 600 /root/.ssh/authorized_keys",
]

_OPENSSH_VERSION = re.compile(r"OpenSSH_(?:for_Windows_)?(\d+)\.(\d+)")


def parse_ssh_version(text: str) -> Optional[Tuple[int, int]]:
    """Extract (major, minor) from ``ssh -V`` output."""
    match = _OPENSSH_VERSION.search(text or "")
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def compatibility_flags(version: Optional[Tuple[int, int]]) -> List[str]:
    """Extra ssh options needed to talk to old RSA-only SSH servers."""
    if version is not None and tuple(version) >= RSA_COMPAT_VERSION:
        return list(RSA_COMPAT_OPTIONS)
    return []


def ssh_client_version(ssh: str = "ssh") -> Optional[Tuple[int, int]]:
    """Ask the local ssh client for its version."""
    try:
        result = subprocess.run([ssh, "-V"], capture_output=True, text=True)
    except FileNotFoundError:
        raise MissingToolError(ssh)
    # OpenSSH prints its version on stderr
    return parse_ssh_version(result.stderr + result.stdout)


def build_ssh_command(ssh: str, destination: str, options: ConnectionOptions,
                      jump_keys: KeyPair, jump_alias: str, local_port: int,
                      compat: Sequence[str] = (),
                      extra_args: Sequence[str] = ()) -> List[str]:
    """
    Build the ssh command line for a session.

    If ``destination`` is the jump alias, connect straight to the forwarded
    port as root with the jump key. Otherwise connect to the destination with
    the caller's identity, relaying through the jump pod with ``-W``.
    """
    jump_hop = [
        "-i", jump_keys.identity,
        "-p", str(local_port),
        f"{JUMP_USER}@{JUMP_HOST}",
    ] + HOST_KEY_OPTIONS + list(compat)

    if destination == jump_alias:
        return [ssh] + jump_hop + list(extra_args)

    proxy = " ".join(shlex.quote(arg) for arg in [ssh] + jump_hop + ["-W", "%h:%p"])
    return [
        ssh,
        "-i", options.identity,
        "-p", str(options.port),
        f"{options.ssh_user}@{destination}",
    ] + list(compat) + [
        "-o", f"ProxyCommand={proxy}",
    ] + list(extra_args)


def run_interactive(cmdline: Sequence[str]) -> int:
    """Run a command attached to our terminal and return its exit code."""
    return subprocess.run(list(cmdline)).returncode


class TunnelSession:
    """One ssh session through a port-forward to the jump pod."""

    def __init__(self, kube, pod_name: str = "sshjump", local_port: int = 2222,
                 remote_port: int = 22, jump_key_file: str = "id_rsa_sshjump",
                 ssh: str = "ssh", runner=run_interactive, version_probe=None):
        """Initialize the tunnel session."""
        self.kube = kube
        self.pod_name = pod_name
        self.local_port = local_port
        self.remote_port = remote_port
        self.jump_key_file = jump_key_file
        self.ssh = ssh
        self.runner = runner
        self.version_probe = version_probe or (lambda: ssh_client_version(self.ssh))
        self.logger = logging.getLogger(__name__)

    def inject_key(self, pubkey_file: str):
        """Replace the jump pod's authorized_keys with the given public key."""
        with open(pubkey_file) as f:
            pubkey = f.read()

        try:
            self.kube.exec_in_pod(self.pod_name, AUTHORIZED_KEYS_COMMAND, stdin=pubkey)
        except ClusterError as e:
            raise KeyInjectionError(
                f"Could not install public key in pod {self.pod_name}: {e}"
            ) from e
        self.logger.debug(f"Installed {pubkey_file} as authorized key in {self.pod_name}")

    def open(self, destination: str, options: ConnectionOptions,
             ssh_args: Sequence[str] = ()) -> int:
        """
        Run an ssh session to ``destination`` through the jump pod.

        Args:
            destination: Node name, or the jump pod alias to log into the pod
            options: Resolved connection options
            ssh_args: Extra arguments for the ssh client

        Returns:
            The ssh client's exit code, unchanged
        """
        if not options.identity or not os.path.isfile(options.identity):
            raise MissingIdentityError(f"Identity file not found: {options.identity}")

        jump_keys = resolve_jump_keypair(options, self.jump_key_file)
        compat = compatibility_flags(self.version_probe())
        proxied = destination != self.pod_name

        with self.kube.port_forward(self.pod_name, self.local_port, self.remote_port):
            self.inject_key(jump_keys.pubkey)

            cmdline = build_ssh_command(
                self.ssh, destination, options, jump_keys, self.pod_name,
                self.local_port, compat, ssh_args,
            )
            if proxied:
                log_session_start(self.logger, options.ssh_user, destination,
                                  options.port, proxied)
            else:
                log_session_start(self.logger, JUMP_USER, JUMP_HOST,
                                  self.local_port, proxied)
            self.logger.debug(f"Running: {shlex.join(cmdline)}")

            exit_code = self.runner(cmdline)

        log_session_end(self.logger, destination, exit_code)
        return exit_code
