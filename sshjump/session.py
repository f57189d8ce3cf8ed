"""Top-level coordination of a jump session."""

import logging

from .errors import SshJumpError
from .models import SessionRequest
from .options import resolve_options


class SessionOrchestrator:
    """Runs options -> agent -> jump pod -> tunnel -> cleanup, in order."""

    def __init__(self, option_store, agent_manager, provisioner, tunnel):
        """Initialize the orchestrator with its collaborators."""
        self.option_store = option_store
        self.agent_manager = agent_manager
        self.provisioner = provisioner
        self.tunnel = tunnel
        self.logger = logging.getLogger(__name__)

    def run(self, request: SessionRequest) -> int:
        """
        Run one jump session.

        Fatal errors (missing identity, unreachable cluster, failed key
        injection) propagate before any cleanup step runs. Once the ssh
        session has returned, cleanup runs whatever its exit code was.

        Returns:
            The exit code of the ssh session
        """
        persisted = self.option_store.load()
        options = resolve_options(request.overrides, persisted)
        self.option_store.save(options)
        self.logger.debug(
            f"Resolved options - User: {options.ssh_user}, Identity: {options.identity}, "
            f"Pubkey: {options.pubkey}, Port: {options.port}"
        )

        agent_handle = None
        if not request.skip_agent:
            agent_handle, _ = self.agent_manager.ensure_running(options.identity)

        self.provisioner.ensure(request.pod_template)

        exit_code = self.tunnel.open(request.destination, options, request.ssh_args)

        self.cleanup(
            cleanup_jump=request.cleanup_jump,
            cleanup_agent=request.cleanup_agent and not request.skip_agent,
            agent_handle=agent_handle,
        )
        return exit_code

    def cleanup(self, cleanup_jump: bool = False, cleanup_agent: bool = False,
                agent_handle=None):
        """Delete the jump pod and/or stop the agent; failures only warn."""
        if cleanup_jump:
            try:
                self.provisioner.delete()
            except SshJumpError as e:
                self.logger.warning(f"Could not delete jump pod: {e}")

        if cleanup_agent:
            try:
                self.agent_manager.terminate(agent_handle)
            except OSError as e:
                self.logger.warning(f"Could not stop ssh-agent: {e}")
