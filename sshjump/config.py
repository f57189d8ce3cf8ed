"""Configuration module for the SSH jump helper."""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Malformed numeric settings, reported by Config.validate()
_invalid_env = {}


def _env_number(name, default, cast):
    """Read a numeric setting, falling back to the default if malformed."""
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError:
        _invalid_env[name] = raw
        return cast(default)


class Config:
    """Configuration class for the SSH jump helper."""

    VERSION = "0.6.0"

    # Plugin directory, holds options, agent files, the jump key and logs
    HOME = os.path.expanduser(os.getenv("SSHJUMP_HOME", "~/.kube/kubectlssh"))
    OPTIONS_FILE = os.path.join(HOME, "options")
    AGENT_PID_FILE = os.path.join(HOME, "sshagent.pid")
    AGENT_ENV_FILE = os.path.join(HOME, "sshagent.env")
    JUMP_KEY_FILE = os.path.join(HOME, "id_rsa_sshjump")

    # Jump pod configuration
    POD_NAME = os.getenv("SSHJUMP_POD_NAME", "sshjump")
    IMAGE = os.getenv("SSHJUMP_IMAGE", "corbinu/ssh-server")
    POD_TEMPLATE = os.getenv("SSHJUMP_POD_TEMPLATE") or None
    NAMESPACE = os.getenv("SSHJUMP_NAMESPACE") or None

    # Port-forward configuration
    LOCAL_PORT = _env_number("SSHJUMP_LOCAL_PORT", "2222", int)
    REMOTE_PORT = _env_number("SSHJUMP_REMOTE_PORT", "22", int)
    FORWARD_DELAY = _env_number("SSHJUMP_FORWARD_DELAY", "2", float)

    # Readiness polling
    WAIT_ATTEMPTS = _env_number("SSHJUMP_WAIT_ATTEMPTS", "10", int)
    WAIT_INTERVAL = _env_number("SSHJUMP_WAIT_INTERVAL", "1", float)

    # External tools
    KUBECTL_BIN = os.getenv("KUBECTL_BIN", "kubectl")
    SSH_BIN = os.getenv("SSH_BIN", "ssh")
    SSH_AGENT_BIN = os.getenv("SSH_AGENT_BIN", "ssh-agent")
    SSH_ADD_BIN = os.getenv("SSH_ADD_BIN", "ssh-add")

    # Logging configuration
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE", os.path.join(HOME, "sshjump.log"))

    INVALID_ENV = _invalid_env

    @classmethod
    def validate(cls):
        """Validate the configuration."""
        for name, raw in cls.INVALID_ENV.items():
            raise ValueError(f"Invalid {name}: {raw!r}")

        for port in (cls.LOCAL_PORT, cls.REMOTE_PORT):
            if port < 1 or port > 65535:
                raise ValueError(f"Invalid port number: {port}")

        if cls.WAIT_ATTEMPTS < 1:
            raise ValueError("Invalid wait attempts")

        if cls.WAIT_INTERVAL < 0:
            raise ValueError("Invalid wait interval")

        if cls.FORWARD_DELAY < 0:
            raise ValueError("Invalid port-forward delay")

        if not cls.POD_NAME:
            raise ValueError("Jump pod name is required")
