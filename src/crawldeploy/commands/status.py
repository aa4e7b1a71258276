"""Status command - report a host's deployment state without changing it"""
from crawldeploy.core import ConsoleLogger
from crawldeploy.deploy import (
    ChannelFactory,
    DeploymentError,
    SystemdSupervisor,
    inspect_host,
)
from crawldeploy.utils.config import load_config
from crawldeploy.deploy.modes import format_mode


def setup_parser(parser):
    """Setup argument parser for status command"""
    parser.add_argument(
        'host',
        help='Target host: user@host[:port], user@[v6addr]:port, host, or local://'
    )
    parser.add_argument(
        '--config', '-c',
        help='Deployment config YAML (default: configs/crawldeploy.yaml if present)'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Show verbose output'
    )


def _describe_file(stat):
    if stat is None:
        return "missing"
    return f"{format_mode(stat.mode)} {stat.owner}:{stat.group}"


def execute(args):
    """Execute status check"""
    logger = ConsoleLogger(verbose=args.verbose)

    try:
        config = load_config(args.config)
        channel = ChannelFactory.from_host_string(
            args.host,
            become=config.transport.become,
            connect_timeout=config.transport.connect_timeout,
            command_timeout=config.transport.command_timeout
        )
        supervisor = SystemdSupervisor(channel, unit_dir=config.paths.unit_dir)
        report = inspect_host(config, channel, supervisor)
    except DeploymentError as e:
        logger.error(str(e))
        return 1

    print(f"Host:            {report.host}")
    print(f"Unit definition: {report.unit_definition.value}")
    print(f"Service:         {report.runtime_state.value}")
    print(f"Boot-enabled:    {'yes' if report.enabled_on_boot else 'no'}")
    print(f"Binary:          {_describe_file(report.binary)}")
    print(f"Asset:           {_describe_file(report.asset)}")
    print(f"Data link:       {'present' if report.link_present else 'missing'}")

    if report.converged:
        print("\n✓ Host is converged")
        return 0

    print("\n✗ Host is not converged:")
    for problem in report.problems:
        print(f"  - {problem}")
    return 1
