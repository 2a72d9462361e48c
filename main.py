#!/usr/bin/env python3
"""
Command line front-end for absolutify.

Reads HTML from the given files (or stdin), rewrites relative href/src
references against a base URL and writes the result to stdout or a file.

Usage:
    absolutify --base https://example.org/blog/ post.html > post.abs.html
    curl -s https://example.org/feed.html | absolutify --base https://example.org/
"""

import argparse
import sys
from typing import List, Optional

from absolutify import absolutify
from config import config, configure_logging, get_logger, load_environment
from telemetry import init_telemetry

# Module-specific logger
logger = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='absolutify',
        description='Rewrite relative <a href> and <img src> references to absolute URLs')
    parser.add_argument('files', nargs='*',
                        help='HTML files to process (default: read stdin)')
    parser.add_argument('--base', '-b', type=str, default=None,
                        help='Base URL to resolve against (default: $BASE_URL)')
    parser.add_argument('--output', '-o', type=str,
                        help='Write the result to this file instead of stdout')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Log every reference that is left unchanged')
    return parser


def _read_inputs(files: List[str]) -> List[str]:
    if not files:
        return [sys.stdin.read()]
    documents = []
    for name in files:
        with open(name, 'r', encoding='utf-8') as f:
            documents.append(f.read())
    return documents


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # stdout carries the rewritten HTML
    configure_logging("DEBUG" if args.verbose else None, stream=sys.stderr)
    if load_environment():
        config.reload_targets()
    base_url = args.base or config.BASE_URL
    init_telemetry("absolutify-cli")

    if not base_url:
        parser.print_usage(sys.stderr)
        logger.error("No base URL given; use --base or set BASE_URL")
        return 2

    try:
        documents = _read_inputs(args.files)
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Could not read input: {e}")
        return 1

    result = "".join(absolutify(document, base_url) for document in documents)

    try:
        if args.output:
            with open(args.output, 'w', encoding='utf-8') as f:
                f.write(result)
            logger.info(f"Wrote {len(result)} characters to {args.output}")
        else:
            sys.stdout.write(result)
    except OSError as e:
        logger.error(f"Could not write output: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
