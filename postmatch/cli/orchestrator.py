"""
CLI workflow orchestration for postmatch.

Provides the CLIOrchestrator class that coordinates one CLI invocation from
argument parsing through command dispatch and reporting.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from ..database import PostStore
from ..errors import PostMatchError, DecodeError
from ..lsh import IndexGenerator
from ..models import mime_type_from_extension
from ..pipeline import DuplicateDetectionPipeline
from ..user_config import get_user_config
from .arg_parser import parse_arguments
from .reporting import print_search_report, print_json, print_stats


def setup_logging(verbose: bool = False) -> logging.Logger:
    """
    Configure logging for the CLI.

    Args:
        verbose: Enable verbose (DEBUG level) logging

    Returns:
        Configured logger instance
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    return logging.getLogger(__name__)


class CLIOrchestrator:
    """
    Orchestrates one CLI invocation.

    Loads configuration, opens the store, and dispatches to the handler for
    the chosen subcommand.
    """

    def __init__(self, argv: Optional[list[str]] = None):
        """
        Initialize the orchestrator.

        Args:
            argv: Argument list (default: sys.argv)
        """
        self.argv = argv
        self.logger = None
        self.args = None
        self.config = None
        self._store = None

    def run(self) -> int:
        """
        Execute the CLI workflow.

        Returns:
            Exit code (0 for success, 1 for error)
        """
        self.args = parse_arguments(self.argv)
        self.logger = setup_logging(self.args.verbose)

        try:
            self.config = get_user_config().load()
        except PostMatchError as e:
            self.logger.error(f"Invalid configuration: {e}")
            return 1

        handler = getattr(self, f"_cmd_{self.args.command}")
        try:
            return handler()
        except PostMatchError as e:
            self.logger.error(str(e))
            return 1

    @property
    def store(self) -> PostStore:
        """Store opened on first use, so 'config' works without a database."""
        if self._store is None:
            db_path = str(self.args.db) if self.args.db else self.config.database_file
            self._store = PostStore(db_path)
        return self._store

    def _pipeline(self) -> DuplicateDetectionPipeline:
        return DuplicateDetectionPipeline(
            self.store,
            similarity_threshold=getattr(self.args, 'threshold', None),
        )

    def _read(self, path: Path) -> tuple[bytes, str]:
        """
        Read a file and work out its MIME type.

        Raises:
            DecodeError: If the MIME type cannot be determined
        """
        if self.args.mime_type:
            mime_type = self.args.mime_type
        else:
            try:
                mime_type = mime_type_from_extension(path.suffix)
            except ValueError as e:
                raise DecodeError(f"{path}: {e}") from e
        return path.read_bytes(), mime_type

    def _cmd_ingest(self) -> int:
        pipeline = self._pipeline()
        results = []
        failures = 0

        for path in self.args.files:
            try:
                content, mime_type = self._read(path)
                result = pipeline.ingest(content, mime_type, source=self.args.source)
            except OSError as e:
                self.logger.error(f"Cannot read {path}: {e}")
                failures += 1
                continue
            except DecodeError as e:
                self.logger.error(f"Cannot store {path}: {e}")
                failures += 1
                continue

            results.append((path, result))
            if not self.args.json:
                print_search_report(path, result)

        if self.args.json:
            print_json(results)

        created = sum(1 for _, r in results if r.created)
        self.logger.info(f"Stored {created} of {len(self.args.files)} files")
        return 1 if failures else 0

    def _cmd_search(self) -> int:
        path = self.args.file
        try:
            content, mime_type = self._read(path)
        except OSError as e:
            self.logger.error(f"Cannot read {path}: {e}")
            return 1

        result = self._pipeline().reverse_search(content, mime_type)
        if self.args.json:
            print_json([(path, result)])
        else:
            print_search_report(path, result)
        return 0

    def _cmd_delete(self) -> int:
        self.store.delete_post(self.args.post_id)
        print(f"Deleted post {self.args.post_id}")
        return 0

    def _cmd_merge(self) -> int:
        merged = self.store.merge_posts(
            self.args.remove_id,
            self.args.merge_to_id,
            replace_content=self.args.replace_content,
        )
        print(f"Merged post {self.args.remove_id} into {merged.id}")
        return 0

    def _cmd_stats(self) -> int:
        generator = IndexGenerator()
        threshold = self.config.similarity_threshold
        lsh_stats = generator.get_stats()
        lsh_stats['threshold'] = threshold
        lsh_stats['recall'] = generator.collision_probability(1.0 - threshold)
        print_stats(self.store.get_stats(), lsh_stats)
        return 0

    def _cmd_config(self) -> int:
        config = self.config
        if self.args.init:
            if config.create_example_config():
                print("Created example configuration file at:")
                print(f"  {config.config_file_path}")
                return 0
            print("Failed to create configuration file.")
            return 1

        print(f"Configuration file: {config.config_file_path}")
        if config.config_file_path.exists():
            print("Status: found")
        else:
            print("Status: not found (using defaults)")
            print("\nRun 'postmatch config --init' to create one.")

        print("\nCurrent settings:")
        print(f"  similarity_threshold: {config.similarity_threshold}")
        print(f"  database_file: {config.database_file}")
        print(f"  rank_workers: {config.rank_workers}")
        return 0

    def _cmd_serve(self) -> int:
        from ..app import run_server
        run_server(self.store, host=self.args.host, port=self.args.port)
        return 0


__all__ = ['CLIOrchestrator', 'setup_logging']
