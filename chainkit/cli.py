#!/usr/bin/env python3
"""
ChainKit CLI
============
Command-line interface for building chains and generating text.

Usage:
    chainkit build chain.json --text notes.txt --name angus --date 2020:001
    chainkit generate chain.json --source angus -n 5 --min-words 5 --max-words 20
    chainkit sources chain.json
    chainkit stats chain.json
"""

import argparse
import json
import logging
import random
import sys
from datetime import datetime

from chainkit import __version__
from chainkit.model import Datestamp, MarkovChain, load_chain, save_chain
from chainkit.settings import get_setting, resolve_path

logger = logging.getLogger(__name__)


# =============================================================================
# Utilities
# =============================================================================

class Output:
    """Handles CLI output with quiet mode support."""

    def __init__(self, quiet: bool = False):
        self.quiet = quiet

    def print(self, *args, **kwargs):
        if not self.quiet:
            print(*args, **kwargs)

    def error(self, msg: str):
        print(f"Error: {msg}", file=sys.stderr)

    def success(self, msg: str):
        if not self.quiet:
            print(f"OK: {msg}")

    def table(self, headers: list, rows: list, col_widths: list = None):
        """Print a formatted table."""
        if self.quiet:
            return

        if not col_widths:
            col_widths = [max(len(str(h)), max((len(str(r[i])) for r in rows), default=0)) + 2
                         for i, h in enumerate(headers)]

        header_line = ''.join(str(h).ljust(w) for h, w in zip(headers, col_widths))
        print(header_line)
        print('-' * len(header_line))

        for row in rows:
            print(''.join(str(c).ljust(w) for c, w in zip(row, col_widths)))


def parse_datestamp(value: str) -> Datestamp:
    """Parse YEAR:DAY (e.g. 2018:021) or an ISO date (2018-01-21)."""
    try:
        if ':' in value:
            year, day = value.split(':', 1)
            return Datestamp(year=int(year), day=int(day))
        return Datestamp.from_datetime(datetime.strptime(value, '%Y-%m-%d'))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid date '{value}': {e}")


def open_chain(path: str, create: bool = False) -> MarkovChain:
    model_path = resolve_path(path)
    if model_path.exists():
        return load_chain(model_path)
    if create:
        return MarkovChain()
    raise FileNotFoundError(f"Chain file not found: {model_path}")


# =============================================================================
# Commands
# =============================================================================

def cmd_build(args, out: Output):
    """Ingest plain text files into a chain."""
    chain = open_chain(args.model, create=True)
    datestamp = args.date or Datestamp()

    total = 0
    for text_path in args.text:
        text = resolve_path(text_path).read_text(encoding='utf-8')
        added = chain.append_text(text, args.name, datestamp)
        out.print(f"{text_path}: {added} records")
        total += added

    save_chain(chain, resolve_path(args.model))
    out.success(f"Added {total} records, chain has {len(chain.words)} words "
                f"in {len(chain.sources)} sources")
    return 0


def cmd_generate(args, out: Output):
    """Generate text from a chain."""
    chain = open_chain(args.model)

    if args.source:
        sources = chain.sources_by_name(args.source)
        if not sources:
            out.error(f"No source matches: {', '.join(args.source)}")
            return 1
    else:
        sources = chain.sources

    date_range = None
    if args.date_from or args.date_to:
        date_range = (
            args.date_from or Datestamp(year=-(1 << 15), day=0),
            args.date_to or Datestamp(year=(1 << 15) - 1, day=366),
        )

    min_words = args.min_words
    if min_words is None:
        min_words = get_setting("generation.min_words", 5)
    max_words = args.max_words
    if max_words is None:
        max_words = get_setting("generation.max_words", 20)

    from chainkit.generate import ChainGenerator

    rng = random.Random(args.seed)
    generator = ChainGenerator(chain)
    results = generator.generate_batch(
        rng, sources, args.count, min_words, max_words, date_range
    )

    if not results:
        out.print("No text generated.")
        return 0

    if args.json:
        print(json.dumps(results, ensure_ascii=False, indent=2))
    else:
        for text in results:
            print(text)
    return 0


def cmd_sources(args, out: Output):
    """List the sources of a chain."""
    chain = open_chain(args.model)

    rows = []
    for i, source in enumerate(chain.sources, 1):
        dates = [e.datestamp for e in source.entries]
        span = f"{min(dates)} - {max(dates)}" if dates else '-'
        rows.append([i, ', '.join(source.names), len(source.entries), span])

    if not rows:
        out.print("Chain has no sources.")
        return 0

    out.table(['#', 'Names', 'Records', 'Dates'], rows)
    return 0


def cmd_stats(args, out: Output):
    """Show chain statistics."""
    chain = open_chain(args.model)
    terminal = sum(1 for s in chain.sources for e in s.entries if e.is_terminal)

    out.print(f"Words:    {len(chain.words)}")
    out.print(f"Sources:  {len(chain.sources)}")
    out.print(f"Records:  {chain.entry_count}")
    out.print(f"Terminal: {terminal}")
    return 0


# =============================================================================
# Main
# =============================================================================

def main(argv=None):
    parser = argparse.ArgumentParser(
        prog='chainkit',
        description='ChainKit - Markov chain text generator',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s build chain.json --text notes.txt --name angus --name "sol onset"
  %(prog)s generate chain.json --source angus -n 5
  %(prog)s generate chain.json --from 2018:010 --to 2018:021 --seed 1
  %(prog)s sources chain.json
"""
    )

    parser.add_argument('--version', '-V', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--quiet', '-q', action='store_true', help='Suppress non-essential output')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # --- build ---
    p = subparsers.add_parser('build', aliases=['b'], help='Ingest text files into a chain')
    p.add_argument('model', help='Chain file (created if missing)')
    p.add_argument('--text', '-t', action='append', required=True, help='Text file to ingest')
    p.add_argument('--name', action='append', required=True,
                   help='Source alias (repeat for several aliases)')
    p.add_argument('--date', '-d', type=parse_datestamp,
                   help='Datestamp for the records (YEAR:DAY or YYYY-MM-DD)')

    # --- generate ---
    p = subparsers.add_parser('generate', aliases=['gen', 'g'], help='Generate text')
    p.add_argument('model', help='Chain file')
    p.add_argument('--source', '-s', action='append', help='Source alias to draw from (repeatable)')
    p.add_argument('-n', '--count', type=int, default=1, help='Number of texts (default: 1)')
    p.add_argument('--min-words', type=int, help='Minimum words')
    p.add_argument('--max-words', type=int, help='Maximum words')
    p.add_argument('--from', dest='date_from', type=parse_datestamp, help='Earliest date (inclusive)')
    p.add_argument('--to', dest='date_to', type=parse_datestamp, help='Latest date (inclusive)')
    p.add_argument('--seed', type=int, help='Random seed')
    p.add_argument('--json', '-j', action='store_true', help='Output as JSON')

    # --- sources ---
    p = subparsers.add_parser('sources', aliases=['ls'], help='List chain sources')
    p.add_argument('model', help='Chain file')

    # --- stats ---
    p = subparsers.add_parser('stats', help='Show chain statistics')
    p.add_argument('model', help='Chain file')

    args = parser.parse_args(argv)

    level = 'DEBUG' if args.verbose else get_setting("logging.level", "WARNING")
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')

    if not args.command:
        parser.print_help()
        return 0

    cmd_map = {
        'b': 'build',
        'gen': 'generate', 'g': 'generate',
        'ls': 'sources',
    }
    command = cmd_map.get(args.command, args.command)

    out = Output(quiet=args.quiet)

    commands = {
        'build': cmd_build,
        'generate': cmd_generate,
        'sources': cmd_sources,
        'stats': cmd_stats,
    }

    handler = commands.get(command)
    if handler:
        try:
            return handler(args, out)
        except KeyboardInterrupt:
            out.print("\nCancelled.")
            return 130
        except Exception as e:
            out.error(str(e))
            logger.debug("Command failed", exc_info=True)
            return 1

    parser.print_help()
    return 0


if __name__ == '__main__':
    sys.exit(main())
