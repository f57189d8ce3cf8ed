"""Thin client over the kubectl binary."""

import json
import logging
import subprocess
import time
from typing import List, Optional, Sequence, Tuple

from .errors import ClusterError, MissingToolError


class PortForward:
    """
    A background ``kubectl port-forward`` process.

    The process is owned by this object: ``close()`` terminates it and is
    safe to call more than once. Used as a context manager, the forward is
    started on enter and closed on exit, whatever happened in between.
    """

    def __init__(self, cmdline: Sequence[str], local_port: int, delay: float = 0.0,
                 sleep=time.sleep):
        """Initialize the port-forward; nothing is started yet."""
        self.cmdline = list(cmdline)
        self.local_port = local_port
        self.delay = delay
        self.sleep = sleep
        self.process: Optional[subprocess.Popen] = None
        self.closed = False
        self.logger = logging.getLogger(__name__)

    def start(self) -> "PortForward":
        """Launch the forward and give it a moment to bind."""
        try:
            self.process = subprocess.Popen(
                self.cmdline,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except FileNotFoundError:
            raise MissingToolError(self.cmdline[0])

        self.logger.debug(
            f"Port-forward started (pid {self.process.pid}) on 127.0.0.1:{self.local_port}"
        )
        # No readiness probe; a fixed delay lets kubectl bind the port.
        # __exit__ never runs if this raises, so close here.
        try:
            if self.delay:
                self.sleep(self.delay)
        except BaseException:
            self.close()
            raise

        returncode = self.process.poll()
        if returncode is not None:
            self.logger.warning(
                f"Port-forward exited early with code {returncode};"
                f" is 127.0.0.1:{self.local_port} already in use?"
            )
        return self

    def close(self):
        """Terminate the forward process."""
        if self.closed:
            return
        self.closed = True

        if not self.process:
            return

        self.process.terminate()
        try:
            self.process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            self.logger.warning("Port-forward did not exit, killing it")
            self.process.kill()
            self.process.wait()
        self.logger.debug(f"Port-forward on 127.0.0.1:{self.local_port} stopped")

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class KubectlClient:
    """Cluster control-plane operations, delegated to kubectl."""

    def __init__(self, kubectl: str = "kubectl", namespace: Optional[str] = None,
                 forward_delay: float = 0.0):
        """Initialize the client."""
        self.kubectl = kubectl
        self.namespace = namespace
        self.forward_delay = forward_delay
        self.logger = logging.getLogger(__name__)

    def _base(self) -> List[str]:
        cmd = [self.kubectl]
        if self.namespace:
            cmd.extend(["-n", self.namespace])
        return cmd

    def _run(self, args: Sequence[str], input: Optional[str] = None,
             check: bool = True) -> subprocess.CompletedProcess:
        """Run kubectl and capture its output."""
        cmd = self._base() + list(args)
        self.logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                input=input,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            raise MissingToolError(self.kubectl)

        if check and result.returncode != 0:
            stderr = result.stderr.strip()
            raise ClusterError(
                f"kubectl {args[0]} failed: {stderr or 'exit code %d' % result.returncode}",
                returncode=result.returncode,
                stderr=stderr,
            )
        return result

    def get_pod_phase(self, name: str) -> Optional[str]:
        """
        Get the phase of a pod.

        Returns:
            The pod's status phase (may be empty while it is being
            scheduled), or None if the pod does not exist.
        """
        result = self._run(
            ["get", "pod", name, "-o", "jsonpath={.status.phase}"], check=False
        )
        if result.returncode != 0:
            if "NotFound" in result.stderr or "not found" in result.stderr:
                return None
            raise ClusterError(
                f"Could not query pod {name}: {result.stderr.strip()}",
                returncode=result.returncode,
                stderr=result.stderr.strip(),
            )
        return result.stdout.strip()

    def apply_manifest(self, manifest: str):
        """Apply a manifest given as text."""
        self._run(["apply", "-f", "-"], input=manifest)

    def delete_pod(self, name: str):
        """Delete a pod; a pod that is already gone is not an error."""
        self._run(["delete", "pod", name, "--ignore-not-found", "--wait=false"])

    def exec_in_pod(self, name: str, command: Sequence[str], stdin: Optional[str] = None):
        """Run a command inside a pod, feeding it stdin."""
        self._run(["exec", "-i", name, "--"] + list(command), input=stdin or "")

    def port_forward(self, name: str, local_port: int, remote_port: int) -> PortForward:
        """Create (but do not start) a port-forward to a pod."""
        cmd = self._base() + [
            "port-forward", f"pod/{name}", f"{local_port}:{remote_port}",
        ]
        return PortForward(cmd, local_port, delay=self.forward_delay)

    def list_nodes(self) -> List[Tuple[str, str]]:
        """List nodes as (name, InternalIP) pairs."""
        result = self._run(["get", "nodes", "-o", "json"])
        try:
            items = json.loads(result.stdout).get("items", [])
        except ValueError as e:
            raise ClusterError(f"Unexpected node list output: {e}")

        nodes = []
        for item in items:
            name = item.get("metadata", {}).get("name", "")
            address = ""
            for addr in item.get("status", {}).get("addresses", []):
                if addr.get("type") == "InternalIP":
                    address = addr.get("address", "")
                    break
            nodes.append((name, address))
        return nodes
