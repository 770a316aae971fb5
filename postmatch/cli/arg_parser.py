"""
Argument parsing for the CLI interface.

Provides functions to create and configure the argument parser for the
postmatch command-line interface.
"""

from __future__ import annotations

import argparse
from pathlib import Path


def _threshold(value: str) -> float:
    """argparse type for a similarity threshold in (0, 1]."""
    try:
        threshold = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value}")
    if not 0.0 < threshold <= 1.0:
        raise argparse.ArgumentTypeError(f"must be in (0, 1], got {threshold}")
    return threshold


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog='postmatch',
        description='Store posts and find visual near-duplicates',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s ingest a.png b.jpg
      Store posts, reporting exact and near-duplicates already stored

  %(prog)s search query.jpg --threshold 0.85
      Reverse search without storing anything

  %(prog)s merge 12 7 --replace-content
      Fold post 12 into post 7, which takes over post 12's content

  %(prog)s serve --port 5000
      Run the HTTP API
        """
    )

    parser.add_argument(
        '--db',
        type=Path,
        default=None,
        help='SQLite database file (default: from configuration)'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Verbose output'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    # ingest
    ingest = subparsers.add_parser('ingest', help='Store files as new posts')
    ingest.add_argument('files', type=Path, nargs='+', help='Files to store')
    ingest.add_argument('--mime-type', help='MIME type for all files (default: from extension)')
    ingest.add_argument('--source', help='Source recorded on each post')
    ingest.add_argument(
        '-t', '--threshold',
        type=_threshold,
        default=None,
        help='Similarity threshold in (0, 1], higher = stricter. Default: from configuration'
    )
    ingest.add_argument('--json', action='store_true', help='Print results as JSON')

    # search
    search = subparsers.add_parser('search', help='Reverse search without storing')
    search.add_argument('file', type=Path, help='File to search for')
    search.add_argument('--mime-type', help='MIME type (default: from extension)')
    search.add_argument(
        '-t', '--threshold',
        type=_threshold,
        default=None,
        help='Similarity threshold in (0, 1], higher = stricter. Default: from configuration'
    )
    search.add_argument('--json', action='store_true', help='Print results as JSON')

    # delete
    delete = subparsers.add_parser('delete', help='Delete a post and its signature')
    delete.add_argument('post_id', type=int)

    # merge
    merge = subparsers.add_parser('merge', help='Merge one post into another')
    merge.add_argument('remove_id', type=int, help='Post that disappears')
    merge.add_argument('merge_to_id', type=int, help='Post that survives')
    merge.add_argument(
        '--replace-content',
        action='store_true',
        help="Surviving post takes over the removed post's content and signature"
    )

    # stats
    subparsers.add_parser('stats', help='Show database statistics')

    # config
    config = subparsers.add_parser('config', help='Show or create the configuration file')
    config.add_argument('-i', '--init', action='store_true', help='Create an example config file')

    # serve
    serve = subparsers.add_parser('serve', help='Run the HTTP API')
    serve.add_argument('-p', '--port', type=int, default=5000, help='Port (default: 5000)')
    serve.add_argument('--host', default='127.0.0.1', help='Interface (default: 127.0.0.1)')

    return parser


def parse_arguments(argv=None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        argv: List of argument strings (default: sys.argv)

    Returns:
        Parsed arguments as Namespace object

    Examples:
        >>> args = parse_arguments(['search', 'query.jpg', '--threshold', '0.8'])
        >>> args.threshold
        0.8
    """
    parser = create_parser()
    return parser.parse_args(argv)


__all__ = [
    'create_parser',
    'parse_arguments',
]
