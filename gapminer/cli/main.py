import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ..errors import TaggerUnavailable

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="gapminer",
        description="gapminer - word reconstruction, POS arbitration, text statistics and semantic gaps",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    _add_analyze_subparser(subparsers)
    _add_gaps_subparser(subparsers)
    _add_cache_subparser(subparsers)

    return parser


def _add_analyze_subparser(subparsers):
    """Add the analyze subcommand."""
    analyze_parser = subparsers.add_parser("analyze", help="Analyze text documents")
    analyze_parser.add_argument(
        "-i", "--input", type=Path, required=True, help="Input .txt file or directory"
    )
    analyze_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("output"),
        help="Output directory (default: output)",
    )
    analyze_parser.add_argument(
        "--config", type=Path, default=None, help="YAML config file"
    )
    analyze_parser.add_argument(
        "--embeddings",
        nargs="+",
        default=None,
        help="Embedding sources (files or URLs), tried in order",
    )
    analyze_parser.add_argument(
        "--no-secondary",
        action="store_true",
        help="Skip the secondary tagger and use primary tags only",
    )
    analyze_parser.add_argument(
        "--no-gaps", action="store_true", help="Skip semantic gap search"
    )


def _add_gaps_subparser(subparsers):
    """Add the gaps subcommand (re-run gap search on a saved analysis)."""
    gaps_parser = subparsers.add_parser(
        "gaps", help="Find semantic gaps for a saved analysis"
    )
    gaps_parser.add_argument(
        "-i",
        "--input",
        type=Path,
        required=True,
        help="Analysis JSON file written by 'gapminer analyze'",
    )
    gaps_parser.add_argument(
        "--embeddings",
        nargs="+",
        required=True,
        help="Embedding sources (files or URLs), tried in order",
    )
    gaps_parser.add_argument(
        "--config", type=Path, default=None, help="YAML config file"
    )
    gaps_parser.add_argument(
        "--update", action="store_true", help="Write the gaps back into the input file"
    )


def _add_cache_subparser(subparsers):
    """Add the cache subcommand."""
    cache_parser = subparsers.add_parser("cache", help="Manage the embedding cache")
    cache_parser.add_argument(
        "--cache-dir", type=Path, default=None, help="Cache directory"
    )
    group = cache_parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--stats", action="store_true", help="Show cache statistics")
    group.add_argument("--clear", action="store_true", help="Delete cached tables")


def _build_config(args) -> dict:
    from ..config import load_config

    overrides = {}
    if getattr(args, "embeddings", None):
        overrides["embeddings"] = {"sources": args.embeddings}
    if getattr(args, "no_secondary", False):
        overrides["secondary"] = {"enabled": False}
    if getattr(args, "no_gaps", False):
        overrides["gaps"] = {"enabled": False}
    return load_config(args.config, **overrides)


def cmd_analyze(args) -> int:
    """Execute the analyze command."""
    from ..pipeline import Pipeline

    text_files = _collect_text_files(args.input)
    if not text_files:
        print(f"No .txt files found in {args.input}")
        return 1

    config = _build_config(args)
    pipeline = Pipeline.from_config(config, output_dir=args.output)

    print(f"Analyzing {len(text_files)} document(s)...")
    results = pipeline.run(text_files)

    for path, result in zip(text_files, results):
        if result is None:
            continue
        stats = result.stats
        print(
            f"{path.name}: {stats.total_words} words, "
            f"{stats.total_sentences} sentences, "
            f"readability {stats.readability:.1f} ({stats.readability_level})"
        )
        if result.gaps:
            print(f"  gaps: {', '.join(result.gaps[:10])}")

    successful = sum(1 for r in results if r is not None)
    print(f"Analyzed {successful}/{len(text_files)} documents")
    return 0


def cmd_gaps(args) -> int:
    """Execute the gaps command."""
    from ..analyzers.base import Word
    from ..analyzers.gaps import SemanticGapFinder
    from ..pipeline import AnalysisContext

    try:
        data = json.loads(args.input.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        print(f"Could not load {args.input}: {e}")
        return 1

    surfaces = data.get("words", [])
    tags = data.get("pos_tags", [])
    if len(surfaces) != len(tags):
        print(f"{args.input}: words and pos_tags differ in length")
        return 1

    config = _build_config(args)
    words = [Word(surface, tag) for surface, tag in zip(surfaces, tags)]
    context = AnalysisContext(config=config)
    gaps = SemanticGapFinder(config.get("gaps", {})).find_gaps(words, context.embeddings())

    for word in gaps:
        print(word)

    if args.update:
        data["gaps"] = gaps
        args.input.write_text(
            json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8"
        )
        print(f"Updated {args.input}")
    return 0


def cmd_cache(args) -> int:
    """Execute the cache command."""
    from ..utils.cache import EmbeddingCache

    cache = EmbeddingCache(cache_dir=args.cache_dir)
    if args.clear:
        count = cache.clear()
        print(f"Cleared {count} cached embedding table(s)")
        return 0

    from rich.console import Console
    from rich.table import Table

    table = Table(title="Embedding cache")
    table.add_column("Key")
    table.add_column("Value")
    for key, value in cache.stats().items():
        table.add_row(key, f"{value:.2f}" if isinstance(value, float) else str(value))
    Console().print(table)
    return 0


def _collect_text_files(path: Path) -> List[Path]:
    """Collect .txt files from a path."""
    if path.is_file():
        return [path] if path.suffix.lower() == ".txt" else []
    return sorted(path.glob("*.txt"))


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO, format="%(message)s"
    )

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "analyze": cmd_analyze,
        "gaps": cmd_gaps,
        "cache": cmd_cache,
    }

    try:
        return commands[args.command](args)
    except TaggerUnavailable as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
