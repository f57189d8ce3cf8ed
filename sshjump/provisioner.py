"""Provisioning of the singleton jump pod."""

import logging
import os
import time
from typing import Optional

from .logging import log_cleanup, log_pod_created, log_pod_ready, log_pod_timeout
from .models import JumpPod, PodPhase, WaitPolicy


def default_manifest(name: str, image: str) -> str:
    """Built-in jump pod: one SSH server container, Linux nodes only."""
    return f"""apiVersion: v1
kind: Pod
metadata:
  name: {name}
  labels:
    app: {name}
spec:
  containers:
  - name: {name}
    image: {image}
    ports:
    - containerPort: 22
  nodeSelector:
    kubernetes.io/os: linux
"""


class JumpPodProvisioner:
    """Ensures the jump pod exists and waits, bounded, for it to run."""

    def __init__(self, kube, pod_name: str = "sshjump",
                 image: str = "corbinu/ssh-server",
                 policy: Optional[WaitPolicy] = None, sleep=time.sleep):
        """Initialize the provisioner."""
        self.kube = kube
        self.pod_name = pod_name
        self.image = image
        self.policy = policy or WaitPolicy()
        self.sleep = sleep
        self.logger = logging.getLogger(__name__)

    def _manifest(self, template: Optional[str]):
        """Pick the manifest text and a label describing where it came from."""
        if template:
            path = os.path.expanduser(template)
            if os.path.isfile(path):
                with open(path) as f:
                    return f.read(), path
            self.logger.warning(
                f"Pod template {path} not found, using the built-in manifest"
            )
        return default_manifest(self.pod_name, self.image), "built-in"

    def ensure(self, template: Optional[str] = None) -> JumpPod:
        """
        Ensure the jump pod exists and give it a chance to become ready.

        An existing pod is reused whatever its phase. A missing pod is
        created from ``template`` (if that file exists) or from the built-in
        manifest. The pod is then polled until it is Running or the wait
        policy is exhausted; a timeout is logged, not raised.

        Raises:
            ClusterError: if the cluster cannot be queried or the pod cannot
                be created
        """
        pod = JumpPod(name=self.pod_name)
        phase = self.kube.get_pod_phase(self.pod_name)

        if phase is None:
            manifest, source = self._manifest(template)
            self.kube.apply_manifest(manifest)
            pod.created = True
            log_pod_created(self.logger, self.pod_name, source)
        else:
            self.logger.info(f"Jump pod {self.pod_name} exists (phase: {phase or 'unknown'})")

        return self._wait_until_running(pod)

    def _wait_until_running(self, pod: JumpPod) -> JumpPod:
        last = ""
        for attempt in range(1, self.policy.max_attempts + 1):
            last = self.kube.get_pod_phase(pod.name) or ""
            pod.phase = PodPhase.parse(last)
            if pod.ready:
                log_pod_ready(self.logger, pod.name, attempt)
                return pod
            if attempt < self.policy.max_attempts:
                self.sleep(self.policy.interval)

        log_pod_timeout(self.logger, pod.name, self.policy.max_attempts, last or "unknown")
        return pod

    def delete(self):
        """Delete the jump pod; tolerant of it being absent."""
        self.kube.delete_pod(self.pod_name)
        log_cleanup(self.logger, "pod", f"Deleted {self.pod_name}")
