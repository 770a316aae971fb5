#!/usr/bin/env python3
"""
postmatch - HTTP API
====================
Serves post upload and reverse search over HTTP.

Run with: python -m postmatch serve
Or: python -m postmatch.app

Options:
    -q, --quiet     Quiet mode - suppress all output except errors
    -v, --verbose   Verbose mode - show all Flask request logs
    -p, --port      Port to run on (default: 5000)
    --db            SQLite database file

Author: Zach
"""

import argparse
import logging
from typing import Optional

from flask import Flask

from .api import api
from .database import PostStore, get_store
from .pipeline import DuplicateDetectionPipeline
from .user_config import get_user_config


# Logging levels
LOG_QUIET = 0    # No output except errors
LOG_MINIMAL = 1  # Startup info only (default)
LOG_VERBOSE = 2  # All Flask request logs


def create_app(
    store: Optional[PostStore] = None,
    similarity_threshold: Optional[float] = None,
    log_level: int = LOG_MINIMAL,
) -> Flask:
    """
    Create and configure the Flask application.

    Configuration is loaded and validated here, so an invalid threshold
    stops the app from starting instead of failing requests.

    Args:
        store: Store to serve (default: the global store)
        similarity_threshold: Fixed threshold; None reads configuration per request
        log_level: Logging verbosity level

    Returns:
        Configured Flask app instance

    Raises:
        InvalidThresholdConfig: If the configured threshold is out of range
    """
    get_user_config().load()

    app = Flask(__name__)

    store = store or get_store()
    app.extensions['postmatch_store'] = store
    app.extensions['postmatch_pipeline'] = DuplicateDetectionPipeline(
        store, similarity_threshold=similarity_threshold
    )

    # Configure logging based on level
    if log_level < LOG_VERBOSE:
        # Suppress Flask's default request logging
        log = logging.getLogger('werkzeug')
        log.setLevel(logging.ERROR if log_level == LOG_QUIET else logging.WARNING)

    # Register routes
    app.register_blueprint(api)

    return app


def run_server(
    store: Optional[PostStore] = None,
    host: str = '127.0.0.1',
    port: int = 5000,
    log_level: int = LOG_MINIMAL,
) -> None:
    """Run the API on Flask's threaded server until interrupted."""
    app = create_app(store, log_level=log_level)

    if log_level >= LOG_MINIMAL:
        print(f"\n  postmatch API running at: http://{host}:{port}")
        print("  Press Ctrl+C to stop\n")

    try:
        app.run(
            host=host,
            port=port,
            debug=False,
            threaded=True,
            use_reloader=False
        )
    except KeyboardInterrupt:
        if log_level >= LOG_MINIMAL:
            print("\n  Server stopped\n")


def main():
    """Main entry point for the HTTP API."""
    # Parse command line arguments
    parser = argparse.ArgumentParser(
        description='postmatch - HTTP API',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Quiet mode - suppress all output except errors'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Verbose mode - show all Flask request logs'
    )
    parser.add_argument(
        '-p', '--port',
        type=int,
        default=5000,
        help='Port to run the server on (default: 5000)'
    )
    parser.add_argument(
        '--db',
        default=None,
        help='SQLite database file (default: from configuration)'
    )

    args = parser.parse_args()

    # Determine log level
    if args.quiet:
        log_level = LOG_QUIET
    elif args.verbose:
        log_level = LOG_VERBOSE
    else:
        log_level = LOG_MINIMAL

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    store = PostStore(args.db) if args.db else None
    run_server(store, port=args.port, log_level=log_level)


if __name__ == '__main__':
    main()
