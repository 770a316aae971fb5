"""
Allow running the package with: python -m postmatch

Examples:
    python -m postmatch ingest a.png b.jpg   # Store posts
    python -m postmatch search query.jpg     # Reverse search
    python -m postmatch stats                # Database statistics
    python -m postmatch config --init        # Create example config file
    python -m postmatch serve                # Run the HTTP API
"""

import sys

from .cli import main


if __name__ == '__main__':
    sys.exit(main())
