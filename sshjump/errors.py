"""Exceptions raised by the SSH jump helper.

Every exception here is fatal for the current invocation: the CLI reports it
and exits non-zero. Best-effort conditions (pod readiness timeout, an agent
that is already running, a missing optional public key) are logged instead.
"""


class SshJumpError(Exception):
    """Base class for sshjump errors."""


class MissingToolError(SshJumpError):
    """A required external binary (kubectl, ssh, ...) could not be found."""

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(f"Required tool not found: {tool}")


class MissingIdentityError(SshJumpError):
    """No usable identity (private key) file was given or persisted."""


class ClusterError(SshJumpError):
    """A kubectl call failed, usually because the cluster is unreachable."""

    def __init__(self, message: str, returncode: int = 1, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


class KeyInjectionError(SshJumpError):
    """The public key could not be written into the jump pod."""


class AgentError(SshJumpError):
    """The local ssh-agent could not be started or fed an identity."""
