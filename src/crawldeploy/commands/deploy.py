"""Deploy command - converge one host to the new crawler build"""
from crawldeploy.core import ConsoleLogger
from crawldeploy.deploy import (
    ChannelFactory,
    DeploymentError,
    DeploymentPipeline,
    SystemdSupervisor,
)
from crawldeploy.utils.config import load_config


def setup_parser(parser):
    """Setup argument parser for deploy command"""
    parser.add_argument(
        'host',
        help='Target host: user@host[:port], user@[v6addr]:port, host, or local://'
    )
    parser.add_argument(
        '--config', '-c',
        help='Deployment config YAML (default: configs/crawldeploy.yaml if present)'
    )
    parser.add_argument(
        '--binary',
        help='Path to the built crawler executable (overrides config)'
    )
    parser.add_argument(
        '--asset',
        help='Path to the static asset, e.g. index.html (overrides config)'
    )
    parser.add_argument(
        '--unit-file',
        help='Path to the systemd unit file (overrides config)'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Print the steps that would run, without contacting the host'
    )
    parser.add_argument(
        '--skip-preflight',
        action='store_true',
        help='Skip the passwordless SSH/sudo check'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Show verbose output'
    )


def build_pipeline(args, logger):
    """Load configuration and wire channel, supervisor and pipeline for args.host."""
    config = load_config(args.config).with_artifacts(
        binary=args.binary,
        asset=args.asset,
        unit=args.unit_file
    )
    channel = ChannelFactory.from_host_string(
        args.host,
        become=config.transport.become,
        connect_timeout=config.transport.connect_timeout,
        command_timeout=config.transport.command_timeout
    )
    supervisor = SystemdSupervisor(channel, unit_dir=config.paths.unit_dir)
    pipeline = DeploymentPipeline.from_config(config, channel, supervisor, logger)
    return channel, pipeline


def execute(args):
    """Execute deployment"""
    logger = ConsoleLogger(verbose=args.verbose)

    try:
        channel, pipeline = build_pipeline(args, logger)
    except DeploymentError as e:
        logger.error(str(e))
        return 1

    if args.dry_run:
        print(f"Deployment plan for {channel.describe()}:")
        for index, description in enumerate(pipeline.plan(), start=1):
            print(f"  {index}. {description}")
        return 0

    print("=" * 80)
    print(f"DEPLOY {channel.describe()}")
    print("=" * 80)

    try:
        if not args.skip_preflight:
            logger.info("Checking SSH configuration...")
            channel.check_connection()
        result = pipeline.run()
    except DeploymentError as e:
        if e.step is None:
            logger.error(str(e))
        print("\n✗ Deployment failed")
        return 1

    print("=" * 80)
    stopped = result.metadata.get("previous_install_stopped")
    if stopped:
        print("✓ Upgraded running installation")
    else:
        print("✓ Installed (no previous unit found)")
    print("=" * 80)
    return 0
