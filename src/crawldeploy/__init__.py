"""
crawldeploy - Idempotent deployment of the Minoru fediverse crawler

Converges a single host to "crawler installed, boot-enabled and running":
static asset, data symlink, systemd unit and a self-write-protected binary.
"""
import argparse
import sys

__version__ = "1.0.0"


def main():
    """Main CLI entry point"""
    from crawldeploy.commands import deploy, status

    parser = argparse.ArgumentParser(
        prog='crawldeploy',
        description='crawldeploy: converge a host to the current crawler build',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  crawldeploy deploy admin@crawler.example            # Full deployment
  crawldeploy deploy admin@crawler.example --dry-run  # Show the steps only
  crawldeploy deploy local:// --binary ./crawler      # Deploy onto this machine
  crawldeploy status admin@crawler.example:2222       # Report host state
        '''
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    # Deploy command
    deploy_parser = subparsers.add_parser('deploy', help='Deploy to one host')
    deploy.setup_parser(deploy_parser)

    # Status command
    status_parser = subparsers.add_parser('status', help='Report host deployment state')
    status.setup_parser(status_parser)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Dispatch to command handler
    try:
        if args.command == 'deploy':
            sys.exit(deploy.execute(args))
        elif args.command == 'status':
            sys.exit(status.execute(args))
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(1)
