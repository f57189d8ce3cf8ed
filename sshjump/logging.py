"""Logging configuration for the SSH jump helper."""

import logging
import logging.handlers
import os
import sys
from typing import Optional

from .config import Config


class SshJumpLogger:
    """Custom logger for the SSH jump helper."""

    def __init__(self, name: str = "sshjump", log_file: Optional[str] = None,
                 verbose: bool = False):
        """Initialize the sshjump logger."""
        self.logger = logging.getLogger(name)
        self.log_file = log_file or Config.LOG_FILE
        if verbose:
            self.log_level = logging.DEBUG
        else:
            self.log_level = getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO)

        self._setup_logger()

    def _setup_logger(self):
        """Setup logger with console and file handlers."""
        # Clear existing handlers
        self.logger.handlers.clear()
        self.logger.setLevel(self.log_level)

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # stdout belongs to the interactive ssh session
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
        self.logger.addHandler(console_handler)

        # File handler with rotation
        try:
            log_dir = os.path.dirname(self.log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                self.log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5
            )
            file_handler.setLevel(self.log_level)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)
        except OSError as e:
            self.logger.warning(f"Could not setup file logging: {e}")

    def get_logger(self) -> logging.Logger:
        """Get the configured logger."""
        return self.logger


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> logging.Logger:
    """Setup logging for the sshjump application."""
    sshjump_logger = SshJumpLogger(log_file=log_file, verbose=verbose)
    return sshjump_logger.get_logger()


def log_pod_created(logger: logging.Logger, pod_name: str, source: str):
    """Log the creation of the jump pod."""
    logger.info(f"Jump pod CREATED - Name: {pod_name}, Manifest: {source}")


def log_pod_ready(logger: logging.Logger, pod_name: str, attempts: int):
    """Log a jump pod that reached the Running phase."""
    logger.info(f"Jump pod READY - Name: {pod_name}, Polls: {attempts}")


def log_pod_timeout(logger: logging.Logger, pod_name: str, attempts: int,
                    phase: str):
    """Log a jump pod that did not reach Running in time."""
    logger.warning(
        f"Jump pod NOT READY - Name: {pod_name}, Polls: {attempts}, "
        f"Last phase: {phase}; continuing anyway"
    )


def log_session_start(logger: logging.Logger, user: str, destination: str,
                      port: int, proxied: bool):
    """Log the start of an ssh session."""
    route = "via jump pod" if proxied else "direct"
    logger.info(
        f"Session START - Target: {user}@{destination}:{port}, Route: {route}"
    )


def log_session_end(logger: logging.Logger, destination: str, exit_code: int):
    """Log the end of an ssh session."""
    logger.info(f"Session END - Target: {destination}, Exit code: {exit_code}")


def log_cleanup(logger: logging.Logger, resource: str, detail: str):
    """Log a cleanup step."""
    logger.info(f"Cleanup - Resource: {resource}, {detail}")
