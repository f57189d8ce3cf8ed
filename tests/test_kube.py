"""Tests for sshjump.kube - kubectl invocations and the port-forward resource."""

import json
import logging
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from sshjump.errors import ClusterError, MissingToolError
from sshjump.kube import KubectlClient, PortForward


def completed(returncode=0, stdout="", stderr=""):
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)


class TestKubectlClient:
    @patch("sshjump.kube.subprocess.run")
    def test_get_pod_phase(self, mock_run):
        mock_run.return_value = completed(stdout="Running")
        assert KubectlClient().get_pod_phase("sshjump") == "Running"
        cmd = mock_run.call_args[0][0]
        assert cmd == ["kubectl", "get", "pod", "sshjump", "-o", "jsonpath={.status.phase}"]

    @patch("sshjump.kube.subprocess.run")
    def test_get_pod_phase_not_found(self, mock_run):
        mock_run.return_value = completed(
            returncode=1, stderr='Error from server (NotFound): pods "sshjump" not found'
        )
        assert KubectlClient().get_pod_phase("sshjump") is None

    @patch("sshjump.kube.subprocess.run")
    def test_get_pod_phase_unreachable(self, mock_run):
        mock_run.return_value = completed(
            returncode=1, stderr="The connection to the server localhost:8080 was refused"
        )
        with pytest.raises(ClusterError, match="refused"):
            KubectlClient().get_pod_phase("sshjump")

    @patch("sshjump.kube.subprocess.run", side_effect=FileNotFoundError)
    def test_missing_kubectl(self, mock_run):
        with pytest.raises(MissingToolError, match="kubectl"):
            KubectlClient().get_pod_phase("sshjump")

    @patch("sshjump.kube.subprocess.run")
    def test_namespace(self, mock_run):
        mock_run.return_value = completed()
        KubectlClient(namespace="ops").delete_pod("sshjump")
        cmd = mock_run.call_args[0][0]
        assert cmd[:3] == ["kubectl", "-n", "ops"]
        assert "--ignore-not-found" in cmd

    @patch("sshjump.kube.subprocess.run")
    def test_apply_manifest_uses_stdin(self, mock_run):
        mock_run.return_value = completed()
        KubectlClient().apply_manifest("kind: Pod\n")
        assert mock_run.call_args[0][0] == ["kubectl", "apply", "-f", "-"]
        assert mock_run.call_args[1]["input"] == "kind: Pod\n"

    @patch("sshjump.kube.subprocess.run")
    def test_apply_failure(self, mock_run):
        mock_run.return_value = completed(returncode=1, stderr="forbidden")
        with pytest.raises(ClusterError, match="forbidden"):
            KubectlClient().apply_manifest("kind: Pod\n")

    @patch("sshjump.kube.subprocess.run")
    def test_exec_in_pod(self, mock_run):
        mock_run.return_value = completed()
        KubectlClient().exec_in_pod("sshjump", ["/bin/sh", "-c", "cat"], stdin="key")
        assert mock_run.call_args[0][0] == [
            "kubectl", "exec", "-i", "sshjump", "--", "/bin/sh", "-c", "cat"
        ]
        assert mock_run.call_args[1]["input"] == "key"

    @patch("sshjump.kube.subprocess.run")
    def test_list_nodes(self, mock_run):
        nodes = {"items": [
            {"metadata": {"name": "worker-1"},
             "status": {"addresses": [
                 {"type": "Hostname", "address": "worker-1"},
                 {"type": "InternalIP", "address": "10.0.0.11"},
             ]}},
            {"metadata": {"name": "worker-2"}, "status": {}},
        ]}
        mock_run.return_value = completed(stdout=json.dumps(nodes))
        assert KubectlClient().list_nodes() == [("worker-1", "10.0.0.11"), ("worker-2", "")]

    def test_port_forward_command(self):
        forward = KubectlClient(namespace="ops", forward_delay=3).port_forward("sshjump", 2222, 22)
        assert forward.cmdline == [
            "kubectl", "-n", "ops", "port-forward", "pod/sshjump", "2222:22"
        ]
        assert forward.delay == 3
        assert forward.process is None


class TestPortForward:
    @patch("sshjump.kube.subprocess.Popen")
    def test_context_manager_starts_and_stops(self, mock_popen):
        process = mock_popen.return_value
        sleeps = []
        with PortForward(["kubectl", "port-forward"], 2222, delay=2, sleep=sleeps.append):
            pass
        assert sleeps == [2]
        process.terminate.assert_called_once()
        process.wait.assert_called_once_with(timeout=5)

    @patch("sshjump.kube.subprocess.Popen")
    def test_close_is_idempotent(self, mock_popen):
        process = mock_popen.return_value
        forward = PortForward(["kubectl"], 2222).start()
        forward.close()
        forward.close()
        process.terminate.assert_called_once()

    @patch("sshjump.kube.subprocess.Popen")
    def test_closed_on_error(self, mock_popen):
        process = mock_popen.return_value
        with pytest.raises(RuntimeError):
            with PortForward(["kubectl"], 2222):
                raise RuntimeError("boom")
        process.terminate.assert_called_once()

    @patch("sshjump.kube.subprocess.Popen")
    def test_kill_when_terminate_hangs(self, mock_popen):
        process = mock_popen.return_value
        process.wait.side_effect = [subprocess.TimeoutExpired("kubectl", 5), 0]
        PortForward(["kubectl"], 2222).start().close()
        process.kill.assert_called_once()

    @patch("sshjump.kube.subprocess.Popen")
    def test_interrupted_settle_delay_stops_forward(self, mock_popen):
        process = mock_popen.return_value

        def interrupt(seconds):
            raise KeyboardInterrupt

        forward = PortForward(["kubectl", "port-forward"], 2222, delay=2, sleep=interrupt)
        with pytest.raises(KeyboardInterrupt):
            with forward:
                pytest.fail("body must not run")

        assert forward.closed is True
        process.terminate.assert_called_once()

    @patch("sshjump.kube.subprocess.Popen")
    def test_early_exit_is_logged(self, mock_popen, caplog):
        mock_popen.return_value.poll.return_value = 1
        with caplog.at_level(logging.WARNING, logger="sshjump.kube"):
            PortForward(["kubectl"], 2222).start()
        assert "exited early with code 1" in caplog.text

    @patch("sshjump.kube.subprocess.Popen")
    def test_running_forward_is_quiet(self, mock_popen, caplog):
        mock_popen.return_value.poll.return_value = None
        with caplog.at_level(logging.WARNING, logger="sshjump.kube"):
            PortForward(["kubectl"], 2222).start()
        assert "exited early" not in caplog.text

    @patch("sshjump.kube.subprocess.Popen", side_effect=FileNotFoundError)
    def test_missing_kubectl(self, mock_popen):
        with pytest.raises(MissingToolError):
            PortForward(["kubectl"], 2222).start()
