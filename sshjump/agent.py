"""Lifecycle of the ssh-agent that sshjump manages."""

import logging
import os
import re
import signal
import subprocess
from typing import Dict, Optional, Tuple

from .errors import AgentError, MissingToolError
from .logging import log_cleanup
from .models import AgentHandle

_AGENT_VAR = re.compile(r"(SSH_AUTH_SOCK|SSH_AGENT_PID)=([^;\s]+)")


def parse_agent_env(text: str) -> Dict[str, str]:
    """Parse the Bourne-shell output of ``ssh-agent -s``."""
    return dict(_AGENT_VAR.findall(text))


class SshAgentControl:
    """Local agent control: start an agent, add a key, probe, kill."""

    def __init__(self, ssh_agent: str = "ssh-agent", ssh_add: str = "ssh-add"):
        self.ssh_agent = ssh_agent
        self.ssh_add = ssh_add

    def start(self) -> Tuple[int, Dict[str, str], str]:
        """Start a new agent, returning its pid, env and raw output."""
        try:
            result = subprocess.run(
                [self.ssh_agent, "-s"], capture_output=True, text=True
            )
        except FileNotFoundError:
            raise MissingToolError(self.ssh_agent)

        if result.returncode != 0:
            raise AgentError(f"ssh-agent failed: {result.stderr.strip()}")

        env = parse_agent_env(result.stdout)
        if "SSH_AUTH_SOCK" not in env or "SSH_AGENT_PID" not in env:
            raise AgentError(f"Unexpected ssh-agent output: {result.stdout.strip()}")
        return int(env["SSH_AGENT_PID"]), env, result.stdout

    def add_identity(self, path: str, env: Dict[str, str]):
        """Add a private key to the agent described by env."""
        try:
            # ssh-add may prompt for a passphrase, so keep the terminal attached
            result = subprocess.run(
                [self.ssh_add, path], env={**os.environ, **env}
            )
        except FileNotFoundError:
            raise MissingToolError(self.ssh_add)

        if result.returncode != 0:
            raise AgentError(f"ssh-add {path} failed with exit code {result.returncode}")

    def is_alive(self, pid: int) -> bool:
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            # Exists but belongs to someone else; not ours to reuse
            return False
        return True

    def kill(self, pid: int):
        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            pass


class AgentManager:
    """
    Keeps one ssh-agent per sshjump installation.

    The agent's pid is recorded in ``pid_file`` and its environment
    (``ssh-agent -s`` output) in ``env_file``; both survive across
    invocations so later sessions reuse the same agent. There is no locking:
    two sshjump invocations running at the same time can race on these files.
    """

    def __init__(self, control: SshAgentControl, pid_file: str, env_file: str):
        """Initialize the agent manager."""
        self.control = control
        self.pid_file = pid_file
        self.env_file = env_file
        self.logger = logging.getLogger(__name__)

    def load_handle(self) -> Optional[AgentHandle]:
        """Read the persisted agent handle, if any."""
        try:
            with open(self.pid_file) as f:
                pid = int(f.read().strip())
        except FileNotFoundError:
            return None
        except ValueError:
            self.logger.warning(f"Ignoring malformed agent pid file {self.pid_file}")
            return None

        socket_path = ""
        try:
            with open(self.env_file) as f:
                socket_path = parse_agent_env(f.read()).get("SSH_AUTH_SOCK", "")
        except FileNotFoundError:
            self.logger.debug(f"Agent env file {self.env_file} is missing")

        return AgentHandle(pid=pid, socket_path=socket_path)

    def _save_handle(self, pid: int, raw_env: str):
        directory = os.path.dirname(self.pid_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.env_file, "w") as f:
            f.write(raw_env)
        with open(self.pid_file, "w") as f:
            f.write(f"{pid}\n")

    def _remove_files(self):
        for path in (self.pid_file, self.env_file):
            try:
                os.remove(path)
            except FileNotFoundError:
                pass

    def ensure_running(self, identity: str) -> Tuple[AgentHandle, bool]:
        """
        Make sure an agent holding ``identity`` is running.

        Returns:
            Tuple of (agent_handle, reused). When ``reused`` is True the
            agent was already alive and the identity was not re-added.
        """
        recorded = self.load_handle()
        if recorded and self.control.is_alive(recorded.pid):
            if recorded.socket_path:
                self.logger.info(f"ssh-agent is already running (pid {recorded.pid})")
                os.environ.update(recorded.env())
                return recorded, True
            # Alive but its socket is unknown, so it cannot be reused
            self.logger.warning(
                f"ssh-agent pid {recorded.pid} has no recorded socket, replacing it"
            )
            self.control.kill(recorded.pid)

        pid, env, raw = self.control.start()
        handle = AgentHandle(pid=pid, socket_path=env["SSH_AUTH_SOCK"])
        self.logger.info(f"Started ssh-agent (pid {pid})")

        # Only an agent that holds the identity is recorded for reuse
        try:
            self.control.add_identity(identity, handle.env())
        except BaseException:
            self.control.kill(pid)
            self._remove_files()
            raise

        self._save_handle(pid, raw)
        os.environ.update(handle.env())
        self.logger.info(f"Added identity {identity} to ssh-agent")
        return handle, False

    def terminate(self, handle: Optional[AgentHandle] = None):
        """Kill the managed agent and remove its files."""
        handle = handle or self.load_handle()
        if handle:
            self.control.kill(handle.pid)
            log_cleanup(self.logger, "ssh-agent", f"Killed pid {handle.pid}")
        else:
            log_cleanup(self.logger, "ssh-agent", "No agent recorded")

        self._remove_files()

        for var in ("SSH_AUTH_SOCK", "SSH_AGENT_PID"):
            if handle and os.environ.get(var) == handle.env()[var]:
                del os.environ[var]
