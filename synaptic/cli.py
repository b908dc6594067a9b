"""Command-line entry point.

    synaptic dev <command> [service]
    synaptic docker <command> [service]
    synaptic deploy [--cleanup]
    synaptic build-all [version]
    synaptic verify
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

from synaptic import __version__
from synaptic.config import Settings
from synaptic.config import settings as default_settings
from synaptic.console import Console, configure_logging
from synaptic.core.locking import StackLock
from synaptic.core.readiness import ReadinessPoller
from synaptic.core.registry import LifecycleRegistry
from synaptic.exceptions import SynapticError
from synaptic.health import HealthReporter
from synaptic.installer import DependencyInstaller
from synaptic.lifecycle import ContainerManager, ProcessManager
from synaptic.pipeline import BuildDeployPipeline, BuildScriptRunner
from synaptic.runtime import CommandRunner, ComposeClient, DockerClient
from synaptic.schema import SchemaInitializer
from synaptic.services import DEV_START_ORDER, DATABASE, dev_services, docker_services
from synaptic.stack import DevStack, DockerStack
from synaptic.verify import SetupVerifier

logger = logging.getLogger(__name__)

LOCK_FILE = ".synaptic.lock"

DEV_COMMANDS = """Commands:
  start         Start all services in development mode
  stop          Stop all development services
  restart       Stop, then start all services
  status        Show running development processes
  health        Probe every service once
  logs [svc]    Follow development log files
  frontend      Start only the frontend in dev mode
  mcp-server    Start only the MCP server in dev mode (with PostgreSQL)
  ocr           Start only the OCR service in dev mode
  doc-db        Start only the doc-db RAG service in dev mode (with PostgreSQL)
  postgres      Start only PostgreSQL (via Docker)
  install       Install dependencies for all services
  clean         Stop everything and delete the logs directory
  help          Show this help

Examples:
  synaptic dev start          # Start all services in dev mode
  synaptic dev frontend       # Start only frontend
  synaptic dev status         # Check running processes
"""

DOCKER_COMMANDS = """Commands:
  start         Start all services with Docker Compose
  stop          Stop all services
  restart       Restart all services
  logs [svc]    Show logs (optionally for one service)
  ps            Show service status
  build         Build all images and deploy the stack
  health        Check service health
  shell <svc>   Open a shell in a service container
  clean         Remove containers, volumes and images
  help          Show this help

Examples:
  synaptic docker start              # Start all services
  synaptic docker logs agents        # Show agents logs
  synaptic docker shell mcp-server   # Open shell in MCP server
"""

# Commands that change running state take the stack lock
DEV_MUTATING = {"start", "stop", "restart", "install", "clean", *DEV_START_ORDER, DATABASE}
DOCKER_MUTATING = {"start", "stop", "restart", "build", "clean"}


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        '--no-color',
        action='store_true',
        help='Disable colored output'
    )
    common.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable debug logging'
    )
    common.add_argument(
        '--root',
        type=Path,
        default=None,
        help='Stack root holding docker-compose.yml and logs/ (default: SYNAPTIC_ROOT_DIR or .)'
    )

    parser = argparse.ArgumentParser(
        prog='synaptic',
        description='Synaptic stack operations',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  synaptic dev start               # Local processes + PostgreSQL container
  synaptic docker start            # Whole stack with Docker Compose
  synaptic deploy --cleanup        # Build images, deploy, prune old images
  synaptic build-all 1.4.0         # Run every service's build.sh
  synaptic verify                  # Check Docker and compose setup
        """
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    helpers = parser.add_subparsers(dest='helper', metavar='<helper>')

    for name, help_text, commands in (
        ('dev', 'Development helper', DEV_COMMANDS),
        ('docker', 'Docker helper', DOCKER_COMMANDS),
    ):
        sub = helpers.add_parser(
            name,
            parents=[common],
            help=help_text,
            description=f'Synaptic {help_text.lower()}',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog=commands,
        )
        sub.add_argument('command', nargs='?', default='help', help='Command to run (default: help)')
        sub.add_argument('service', nargs='?', default=None, help='Target service, where the command takes one')
        sub.add_argument(
            '--yes', '-y',
            action='store_true',
            help='Skip confirmation prompts'
        )
        sub.set_defaults(show_help=sub.print_help)

    deploy = helpers.add_parser(
        'deploy',
        parents=[common],
        help='Build dated images and redeploy the compose stack',
    )
    deploy.add_argument(
        '--cleanup',
        action='store_true',
        help='Remove dated images older than the retention window afterwards'
    )

    build_all = helpers.add_parser(
        'build-all',
        parents=[common],
        help="Run each service's build.sh with one version",
    )
    build_all.add_argument('version', nargs='?', default=None, help='Image version (default: YYYYMMDD-HHMMSS)')

    helpers.add_parser(
        'verify',
        parents=[common],
        help='Check Docker, build scripts and the compose file',
    )
    return parser


class Toolkit:
    """Wires settings into the clients and managers one invocation needs."""

    def __init__(self, settings: Settings, console: Console, runner: Optional[CommandRunner] = None):
        self.settings = settings
        self.console = console
        self.runner = runner or CommandRunner()
        self.compose = ComposeClient(self.runner, settings.compose_path, settings.compose_command)
        self.docker = DockerClient(self.runner)
        self.poller = ReadinessPoller(console)
        self.health = HealthReporter(console, compose=self.compose, timeout=settings.health_timeout)
        self.containers = ContainerManager(self.compose, self.poller, console)

    def dev_stack(self) -> DevStack:
        installer = DependencyInstaller(self.settings, self.runner, self.console)
        processes = ProcessManager(
            self.settings,
            LifecycleRegistry(self.settings.logs_path),
            self.runner,
            installer,
            self.console,
        )
        return DevStack(
            self.settings,
            dev_services(self.settings),
            processes,
            self.containers,
            installer,
            self.health,
            self.console,
        )

    def docker_stack(self) -> DockerStack:
        return DockerStack(
            docker_services(self.settings), self.compose, self.docker, self.health, self.console
        )

    def pipeline(self) -> BuildDeployPipeline:
        return BuildDeployPipeline(
            self.settings,
            docker_services(self.settings),
            self.docker,
            self.compose,
            self.containers,
            SchemaInitializer(self.settings, self.compose, self.console),
            self.health,
            self.console,
        )

    def build_scripts(self) -> BuildScriptRunner:
        return BuildScriptRunner(self.settings, self.runner, self.docker, self.console)

    def verifier(self) -> SetupVerifier:
        return SetupVerifier(self.settings, self.docker, self.compose, self.console)


def _ok(action: Callable[[], object]) -> Callable[[], int]:
    def run() -> int:
        action()
        return 0
    return run


def _unknown(console: Console, args) -> int:
    console.error(f"Unknown command: {args.command}")
    console.line()
    args.show_help()
    return 1


def run_dev(toolkit: Toolkit, args) -> int:
    stack = toolkit.dev_stack()
    commands: Dict[str, Callable[[], int]] = {
        'start': _ok(stack.start_all),
        'stop': _ok(stack.stop_all),
        'restart': _ok(stack.restart),
        'status': _ok(stack.status),
        'health': _ok(stack.health_report),
        'logs': lambda: stack.logs(args.service),
        'install': _ok(stack.install),
        'clean': _ok(lambda: stack.clean(assume_yes=args.yes)),
        'help': _ok(args.show_help),
    }
    for name in (*DEV_START_ORDER, DATABASE):
        commands[name] = _ok(lambda name=name: stack.start_one(name))

    handler = commands.get(args.command)
    if handler is None:
        return _unknown(toolkit.console, args)
    return handler()


def run_docker(toolkit: Toolkit, args) -> int:
    stack = toolkit.docker_stack()

    def build() -> int:
        toolkit.console.info("Building all Docker images...")
        return 0 if toolkit.pipeline().run().succeeded else 1

    commands: Dict[str, Callable[[], int]] = {
        'start': _ok(stack.start),
        'stop': _ok(stack.stop),
        'restart': _ok(stack.restart),
        'logs': lambda: stack.logs(args.service),
        'ps': stack.status,
        'status': stack.status,
        'build': build,
        'health': _ok(stack.health_report),
        'shell': lambda: stack.shell(args.service),
        'clean': _ok(lambda: stack.clean(assume_yes=args.yes)),
        'help': _ok(args.show_help),
    }
    handler = commands.get(args.command)
    if handler is None:
        return _unknown(toolkit.console, args)
    return handler()


def _is_mutating(args) -> bool:
    if args.helper == 'dev':
        return args.command in DEV_MUTATING
    if args.helper == 'docker':
        return args.command in DOCKER_MUTATING
    return args.helper in ('deploy', 'build-all')


def main(
    argv: Optional[List[str]] = None,
    settings: Optional[Settings] = None,
    runner: Optional[CommandRunner] = None,
) -> int:
    """Parse arguments, run one command and return its exit code."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if not args.helper:
        parser.print_help()
        return 0

    settings = settings or default_settings
    if args.root is not None:
        settings = settings.model_copy(update={'root_dir': args.root})

    configure_logging(settings.log_level, args.verbose)
    console = Console(color_enabled=not args.no_color and sys.stdout.isatty())
    toolkit = Toolkit(settings, console, runner)

    lock = StackLock(settings.root_dir / LOCK_FILE) if _is_mutating(args) else None
    try:
        if lock is not None:
            lock.acquire()
        if args.helper == 'dev':
            return run_dev(toolkit, args)
        if args.helper == 'docker':
            return run_docker(toolkit, args)
        if args.helper == 'deploy':
            return 0 if toolkit.pipeline().run(cleanup=args.cleanup).succeeded else 1
        if args.helper == 'build-all':
            toolkit.build_scripts().run(args.version)
            return 0
        toolkit.verifier().run()
        return 0
    except SynapticError as e:
        console.error(str(e))
        logger.debug("Command failed", exc_info=True)
        return 1
    except KeyboardInterrupt:
        console.line()
        return 130
    finally:
        if lock is not None:
            lock.release()


if __name__ == '__main__':
    sys.exit(main())
