#!/usr/bin/env python3
"""
dwellmap CLI - Inspect the attention data of a workspace

Usage:
    dwellmap status                       Show data directory and totals
    dwellmap hotspots [--top N] [--json]  Rank the symbols you spent time on
    dwellmap histogram FILE               Dwell time across a file's lines
    dwellmap interactions [--last N]      Show the interaction log
    dwellmap reset [--yes]                Archive and clear recorded positions
    dwellmap version                      Show version information
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dwellmap.config import default_data_dir, load_config
from dwellmap.storage import FileStorage, SnapshotStore


def _paths(args) -> tuple[Path, Path]:
    workspace = Path(args.workspace).resolve() if args.workspace else Path.cwd()
    data_dir = Path(args.data_dir) if args.data_dir else default_data_dir(workspace)
    return workspace, data_dir


def _format_ms(ms: float) -> str:
    seconds = ms / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"


def cmd_status(args):
    """Show data directory, tracked files and totals."""
    from dwellmap.interactions import InteractionLog

    workspace, data_dir = _paths(args)
    snapshots = SnapshotStore(FileStorage(data_dir))
    store = snapshots.load()
    config = load_config(data_dir)
    events = InteractionLog(data_dir, config.interaction_log_max_lines).load()

    if args.json:
        print(json.dumps({
            "workspace": str(workspace),
            "data_dir": str(data_dir),
            "tracked_files": store.file_count(),
            "dwell_ms": store.total_duration_ms(),
            "backups": len(snapshots.backups()),
            "interactions": len(events),
            "config": config.to_dict(),
        }, indent=2))
        return

    print("dwellmap Status")
    print("=" * 50)
    print(f"Workspace:      {workspace}")
    print(f"Data directory: {data_dir}")
    print(f"Tracked files:  {store.file_count()}")
    print(f"Dwell time:     {_format_ms(store.total_duration_ms())}")
    print(f"Backups:        {len(snapshots.backups())}")
    print(f"Interactions:   {len(events)}")


def cmd_hotspots(args):
    """Rank the symbols with the most attention."""
    from dwellmap.hotspots import HotspotAggregator
    from dwellmap.outliner import TreeSitterSymbolResolver

    workspace, data_dir = _paths(args)
    config = load_config(data_dir)
    store = SnapshotStore(FileStorage(data_dir)).load()
    aggregator = HotspotAggregator(TreeSitterSymbolResolver(), workspace, config.resolver_workers)
    if args.raw:
        print(json.dumps([h.to_dict() for h in aggregator.aggregate(store)], indent=2))
        return
    records = aggregator.rank(store)[: args.top]

    if args.json:
        print(json.dumps([r.to_dict() for r in records], indent=2))
        return
    if not records:
        print("No hotspots recorded yet.")
        return

    print(f"{'SCORE':>8}  {'TIME':>6}  {'KIND':<12} SYMBOL")
    print("-" * 60)
    for record in records:
        try:
            location = Path(record.file_path).relative_to(workspace).as_posix()
        except ValueError:
            location = record.file_path
        print(
            f"{record.importance:>8.1f}  {_format_ms(record.time_spent_ms):>6}  "
            f"{record.symbol_kind_name:<12} {record.symbol_name}  "
            f"({location}:{record.symbol_start_line}-{record.symbol_end_line})"
        )


def cmd_histogram(args):
    """Print a dwell-time bar chart for one file."""
    from dwellmap.engine import count_lines
    from dwellmap.histogram import bucket_file, render_bars
    from dwellmap.ranges import split_path

    workspace, data_dir = _paths(args)
    config = load_config(data_dir)
    store = SnapshotStore(FileStorage(data_dir)).load()

    file_path = Path(args.file)
    absolute = file_path if file_path.is_absolute() else (workspace / file_path)
    try:
        relative = absolute.resolve().relative_to(workspace).as_posix()
    except ValueError:
        relative = "/".join(split_path(args.file))

    line_count = args.lines if args.lines else count_lines(absolute)
    if line_count <= 0:
        raise ValueError(f"cannot determine line count of {args.file}; pass --lines")

    buckets = bucket_file(store.get(relative), line_count, args.buckets or config.histogram_buckets)
    if args.json:
        print(json.dumps({"file": relative, "line_count": line_count, "buckets": [b.to_dict() for b in buckets]}, indent=2))
        return
    print(f"{relative} ({line_count} lines)")
    for line in render_bars(buckets):
        print(line)


def cmd_interactions(args):
    """Show the interaction log."""
    from dwellmap.interactions import InteractionLog, summarize

    _, data_dir = _paths(args)
    events = InteractionLog(data_dir).load(last=args.last, interaction_type=args.type)

    if args.stats:
        summary = summarize(events)
        print(f"Interactions: {summary['total']}")
        for name, count in summary["by_type"].items():
            print(f"  {name:<22} {count}")
        if summary["by_file"]:
            print("\nFiles:")
            for name, count in list(summary["by_file"].items())[:10]:
                print(f"  {count:>5}  {name}")
        return

    if not events:
        print("No interactions recorded.")
        return
    for event in events:
        details = {k: v for k, v in event.items() if k not in ("timestamp_ms", "interaction_type")}
        rendered = " ".join(f"{k}={v}" for k, v in details.items())
        print(f"{event.get('timestamp_ms', '?')}  {event.get('interaction_type', '?'):<20} {rendered}")


def cmd_reset(args):
    """Archive the position snapshot and start over."""
    _, data_dir = _paths(args)
    snapshots = SnapshotStore(FileStorage(data_dir))
    store = snapshots.load()
    if store.is_empty():
        print("Nothing to reset.")
        return
    if not args.yes:
        answer = input(f"Archive and clear {store.file_count()} tracked files? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted.")
            return
    backup = snapshots.archive(store)
    store.reset()
    snapshots.save(store)
    print(f"Archived to {data_dir / backup}")


def cmd_version(args):
    """Show version information."""
    from dwellmap import __version__
    print(f"dwellmap version {__version__}")

    print("\nFeature availability:")
    for module, name in (("tree_sitter", "Tree-sitter"), ("tree_sitter_language_pack", "Language grammars")):
        try:
            __import__(module)
            print(f"  {name}: Available")
        except ImportError:
            print(f"  {name}: Not installed")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dwellmap",
        description="Where did your attention go? Dwell-time hotspots and navigation history",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dwellmap status                  Check what has been recorded
  dwellmap hotspots --top 10       Ten most important symbols
  dwellmap histogram src/app.py    Where in app.py the time went
        """
    )
    parser.add_argument("--data-dir", type=str, help="Project data directory (default: derived from workspace)")
    parser.add_argument("--workspace", type=str, help="Workspace root (default: current directory)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    status_parser = subparsers.add_parser("status", help="Show data directory and totals")
    status_parser.add_argument("--json", action="store_true", help="Output as JSON, including the effective config")

    hotspots_parser = subparsers.add_parser("hotspots", help="Rank the symbols you spent time on")
    hotspots_parser.add_argument("--top", type=int, default=20, help="Number of symbols to show")
    hotspots_parser.add_argument("--json", action="store_true", help="Output as JSON")
    hotspots_parser.add_argument("--raw", action="store_true", help="Output every hotspot interval as JSON, unranked")

    histogram_parser = subparsers.add_parser("histogram", help="Dwell time across a file's lines")
    histogram_parser.add_argument("file", help="File to chart (relative to the workspace or absolute)")
    histogram_parser.add_argument("--buckets", type=int, default=None, help="Number of buckets")
    histogram_parser.add_argument("--lines", type=int, default=None, help="Line count (default: read the file)")
    histogram_parser.add_argument("--json", action="store_true", help="Output buckets as JSON")

    interactions_parser = subparsers.add_parser("interactions", help="Show the interaction log")
    interactions_parser.add_argument("--last", type=int, default=20, help="Number of entries to show")
    interactions_parser.add_argument("--type", type=str, default=None, help="Only this interaction type")
    interactions_parser.add_argument("--stats", action="store_true", help="Counts per type and file")

    reset_parser = subparsers.add_parser("reset", help="Archive and clear recorded positions")
    reset_parser.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    subparsers.add_parser("version", help="Show version information")
    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(name)s] %(levelname)s %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    commands = {
        "status": cmd_status,
        "hotspots": cmd_hotspots,
        "histogram": cmd_histogram,
        "interactions": cmd_interactions,
        "reset": cmd_reset,
        "version": cmd_version,
    }

    handler = commands.get(args.command)
    if handler:
        try:
            handler(args)
        except KeyboardInterrupt:
            print("\nAborted.")
            sys.exit(1)
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
