"""
Report formatting and display for the CLI interface.

Provides functions to print pipeline results in a human-readable format.
"""

from __future__ import annotations

import json
from pathlib import Path

from ..models import Post, ReverseSearchResult, IngestResult, format_size


def _describe_post(post: Post) -> str:
    return (f"post {post.id}: {post.mime_type} {post.resolution} | "
            f"{format_size(post.file_size)} | {post.checksum[:12]}")


def print_search_report(path: Path, result: ReverseSearchResult) -> None:
    """
    Print the outcome of a reverse search or ingestion for one file.

    Args:
        path: File that was searched or stored
        result: Pipeline result
    """
    print(f"\n{path}")

    if isinstance(result, IngestResult) and result.post is not None:
        print(f"  [NEW]   {_describe_post(result.post)}")

    if result.exact_post is not None:
        print(f"  [EXACT] {_describe_post(result.exact_post)}")
        return

    if not result.similar_posts:
        print("  No similar posts")
        return

    for match in result.similar_posts:
        similarity = 1.0 - match.distance
        if match.post is not None:
            print(f"  [{similarity:5.1%}] {_describe_post(match.post)}")
        else:
            print(f"  [{similarity:5.1%}] post {match.post_id}")


def print_json(results: list[tuple[Path, ReverseSearchResult]]) -> None:
    """Print results as a JSON array, one object per file."""
    payload = []
    for path, result in results:
        entry = result.to_dict()
        entry['file'] = str(path)
        payload.append(entry)
    print(json.dumps(payload, indent=2))


def print_stats(stats: dict, lsh_stats: dict) -> None:
    """Print database and index statistics."""
    print(f"Database:           {stats['db_path']}")
    print(f"Size:               {format_size(stats['db_size_bytes'])}")
    print(f"Posts:              {stats['total_posts']:,}")
    print(f"Signed posts:       {stats['signed_posts']:,}")
    print(f"Posting rows:       {stats['posting_rows']:,}")
    print(f"Words / signature:  {stats['avg_words_per_signature']}")
    print(f"Index:              {lsh_stats['num_words']} words x {lsh_stats['bits_per_word']} bits "
          f"over {lsh_stats['signature_bits']}-bit signatures")
    print(f"Recall at threshold {lsh_stats['threshold']:.2f}: {lsh_stats['recall']:.2%}")


__all__ = ['print_search_report', 'print_json', 'print_stats']
