"""Main entry point for the kubectl ssh-jump helper."""

import argparse
import shlex
import shutil
import sys
from typing import List, Optional

from .agent import AgentManager, SshAgentControl
from .config import Config
from .errors import MissingToolError, SshJumpError
from .kube import KubectlClient
from .logging import setup_logging
from .models import ConnectionOptions, SessionRequest, WaitPolicy
from .options import FileKeyValueStore, OptionStore
from .provisioner import JumpPodProvisioner
from .session import SessionOrchestrator
from .tunnel import TunnelSession

PROG = "kubectl ssh-jump"


class SshJumpMain:
    """Main application class for sshjump."""

    def __init__(self, namespace: Optional[str] = None, verbose: bool = False):
        """Initialize the application and wire its collaborators."""
        self.logger = setup_logging(verbose=verbose)
        self.config = Config()
        self.kube = KubectlClient(
            kubectl=self.config.KUBECTL_BIN,
            namespace=namespace or self.config.NAMESPACE,
            forward_delay=self.config.FORWARD_DELAY,
        )
        self.orchestrator = SessionOrchestrator(
            option_store=OptionStore(FileKeyValueStore(self.config.OPTIONS_FILE)),
            agent_manager=AgentManager(
                SshAgentControl(self.config.SSH_AGENT_BIN, self.config.SSH_ADD_BIN),
                pid_file=self.config.AGENT_PID_FILE,
                env_file=self.config.AGENT_ENV_FILE,
            ),
            provisioner=JumpPodProvisioner(
                self.kube,
                pod_name=self.config.POD_NAME,
                image=self.config.IMAGE,
                policy=WaitPolicy(self.config.WAIT_ATTEMPTS, self.config.WAIT_INTERVAL),
            ),
            tunnel=TunnelSession(
                self.kube,
                pod_name=self.config.POD_NAME,
                local_port=self.config.LOCAL_PORT,
                remote_port=self.config.REMOTE_PORT,
                jump_key_file=self.config.JUMP_KEY_FILE,
                ssh=self.config.SSH_BIN,
            ),
        )

    def check_tools(self):
        """Fail early if kubectl or ssh is not installed."""
        for tool in (self.config.KUBECTL_BIN, self.config.SSH_BIN):
            if shutil.which(tool) is None:
                raise MissingToolError(tool)

    def connect(self, request: SessionRequest) -> int:
        """Run a jump session and return its exit code."""
        self.config.validate()
        self.check_tools()
        return self.orchestrator.run(request)

    def cleanup(self, cleanup_jump: bool, cleanup_agent: bool) -> int:
        """Run cleanup steps without opening a session."""
        if cleanup_jump:
            self.check_tools()
        self.orchestrator.cleanup(cleanup_jump=cleanup_jump, cleanup_agent=cleanup_agent)
        return 0

    def list_nodes(self) -> int:
        """Print the cluster's nodes so the operator can pick a destination."""
        try:
            nodes = self.kube.list_nodes()
        except SshJumpError as e:
            self.logger.error(f"Could not list nodes: {e}")
            return 1

        width = max([len("NAME")] + [len(name) for name, _ in nodes])
        print(f"{'NAME':<{width}}  INTERNAL-IP")
        for name, address in nodes:
            print(f"{name:<{width}}  {address}")
        return 0


def get_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    d = ("SSH into a Kubernetes node through a jump pod. The jump pod"
         " ('%s' by default) is created on first use and reused afterwards."
         " Options given once are remembered for later invocations."
         % Config.POD_NAME)
    p = argparse.ArgumentParser(prog=PROG, description=d)

    p.add_argument("destnode", nargs="?",
                   help=("Destination node name. Use the jump pod's name to"
                         " log into the jump pod itself."))
    p.add_argument("-u", "--user", dest="ssh_user",
                   help="SSH user name (default: the current user)")
    p.add_argument("-i", "--identity",
                   help="Private key file used to log into the node")
    p.add_argument("-p", "--pubkey",
                   help=("Public key file installed into the jump pod. If"
                         " omitted, a generated key is used for the jump pod."))
    p.add_argument("-P", "--port", type=int,
                   help="SSH port on the destination node (default: 22)")
    p.add_argument("-a", "--args", dest="ssh_args", default="",
                   help="Extra arguments passed to ssh, e.g. '-vvv'")
    p.add_argument("-n", "--namespace",
                   help="Namespace for the jump pod (default: current context)")
    p.add_argument("--pod-template", default=Config.POD_TEMPLATE,
                   help="Manifest file used to create the jump pod")
    p.add_argument("--skip-agent", action="store_true",
                   help="Do not start or reuse a local ssh-agent")
    p.add_argument("--cleanup-agent", action="store_true",
                   help="Kill the ssh-agent when done")
    p.add_argument("--cleanup-jump", action="store_true",
                   help="Delete the jump pod when done")
    p.add_argument("-v", "--verbose", action="store_true",
                   help="Enable debug logging")
    p.add_argument("-V", "--version", action="version",
                   version=f"%(prog)s {Config.VERSION}")
    return p


def join_ssh_args(argv: List[str]) -> List[str]:
    """Glue the value of -a/--args to its flag so argparse accepts '-vvv'."""
    joined = []
    args = iter(argv)
    for arg in args:
        if arg in ("-a", "--args"):
            value = next(args, None)
            if value is None:
                joined.append(arg)
                break
            joined.append(f"--args={value}")
        else:
            joined.append(arg)
    return joined


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse the command line."""
    if argv is None:
        argv = sys.argv[1:]
    return get_parser().parse_args(join_ssh_args(list(argv)))


def build_request(args: argparse.Namespace) -> SessionRequest:
    """Turn parsed arguments into a session request."""
    return SessionRequest(
        destination=args.destnode,
        overrides=ConnectionOptions(
            ssh_user=args.ssh_user,
            identity=args.identity,
            pubkey=args.pubkey,
            port=args.port,
        ),
        ssh_args=shlex.split(args.ssh_args or ""),
        skip_agent=args.skip_agent,
        cleanup_agent=args.cleanup_agent,
        cleanup_jump=args.cleanup_jump,
        pod_template=args.pod_template,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main function with command line argument parsing."""
    parser = get_parser()
    args = parse_args(argv)

    app = SshJumpMain(namespace=args.namespace, verbose=args.verbose)

    if not args.destnode:
        if args.cleanup_jump or args.cleanup_agent:
            try:
                return app.cleanup(args.cleanup_jump, args.cleanup_agent)
            except SshJumpError as e:
                app.logger.error(str(e))
                return 1
        parser.print_help()
        print()
        return app.list_nodes()

    try:
        request = build_request(args)
        return app.connect(request)
    except (SshJumpError, ValueError) as e:
        app.logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        app.logger.info("Interrupted")
        return 130


if __name__ == '__main__':
    sys.exit(main())
