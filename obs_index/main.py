#!/usr/bin/env python3
"""
obs-index - Durable NDJSON export of the tasks in an Obsidian vault.
"""

import argparse
import logging
import sys

from obs_index.core.config import load_config, save_config, get_default_config_path
from obs_index.commands import (
    SetupCommand,
    RebuildCommand,
    WatchCommand,
    StatusCommand,
    OpenCommand
)


def main(argv=None):
    """Main entry point for obs-index."""
    parser = argparse.ArgumentParser(
        description="Mirror Obsidian tasks into an NDJSON index for external tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  obs-index setup --vault ~/Notes   # Configure the vault
  obs-index rebuild                 # Write a fresh index
  obs-index watch                   # Keep the index current while editing
  obs-index status                  # Show the last written index metadata
  obs-index open                    # Open the index file
        """
    )

    default_config = get_default_config_path()

    parser.add_argument(
        '--config',
        help=f'Path to configuration file (default: {default_config})',
        default=None
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose output'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Setup command
    setup_parser = subparsers.add_parser('setup', help='Configure the vault and index settings')
    setup_parser.add_argument('--vault', help='Path to the Obsidian vault')
    setup_parser.add_argument('--file-name', help='Index file name (.ndjson is appended when missing)')
    setup_parser.add_argument('--folder', help='Vault-relative folder for the index (default: .obs-index)')
    setup_parser.add_argument('--debounce-ms', type=int, help='Quiet period before changes are written (100-5000)')
    setup_parser.add_argument('--include-raw', action='store_true', default=None, help='Include the raw source line in each row')
    setup_parser.add_argument('--exclude-done', action='store_true', help='Leave closed tasks out of the index')
    setup_parser.add_argument('--keep-done-days', type=int, help='Drop closed tasks older than N days (0 keeps all)')
    setup_parser.add_argument('--backup', action='store_true', default=None, help='Keep a .bak copy while replacing files')
    toggle = setup_parser.add_mutually_exclusive_group()
    toggle.add_argument('--enable', dest='enabled', action='store_true', default=None, help='Enable index export')
    toggle.add_argument('--disable', dest='enabled', action='store_false', help='Disable index export')

    # Rebuild command
    subparsers.add_parser('rebuild', help='Write a fresh index of every task')

    # Watch command
    watch_parser = subparsers.add_parser('watch', help='Update the index as notes change')
    watch_parser.add_argument(
        '--duration',
        type=float,
        help='Stop after this many seconds (default: run until interrupted)'
    )

    # Status command
    status_parser = subparsers.add_parser('status', help='Show index metadata')
    status_parser.add_argument('--json', action='store_true', help='Print the raw metadata as JSON')

    # Open command
    open_parser = subparsers.add_parser('open', help='Create the index file if needed and open it')
    open_parser.add_argument('--print', dest='print_only', action='store_true', help='Only print the path')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Show help if no command specified
    if not args.command:
        parser.print_help()
        return 1

    config = load_config(args.config)

    if args.verbose:
        actual_config_path = args.config if args.config else get_default_config_path()
        print(f"Using config: {actual_config_path}")

    try:
        if args.command == 'setup':
            cmd = SetupCommand(config, verbose=args.verbose)
            success = cmd.run(
                vault_path=args.vault,
                file_name=args.file_name,
                folder=args.folder,
                debounce_ms=args.debounce_ms,
                include_raw=args.include_raw,
                include_done=False if args.exclude_done else None,
                keep_done_days=args.keep_done_days,
                create_backup=args.backup,
                enabled=args.enabled,
            )
            if success:
                save_config(config, args.config)

        elif args.command == 'rebuild':
            cmd = RebuildCommand(config, verbose=args.verbose)
            success = cmd.run()

        elif args.command == 'watch':
            cmd = WatchCommand(config, verbose=args.verbose)
            success = cmd.run(duration=args.duration)

        elif args.command == 'status':
            cmd = StatusCommand(config, verbose=args.verbose)
            success = cmd.run(as_json=args.json)

        elif args.command == 'open':
            cmd = OpenCommand(config, verbose=args.verbose)
            success = cmd.run(print_only=args.print_only)

        else:
            print(f"Unknown command '{args.command}'.")
            return 1

        return 0 if success else 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user.")
        return 130
    except Exception as e:
        print(f"Error: {e}")
        if not args.verbose:
            print("Re-run with --verbose for more detail.")
        else:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
