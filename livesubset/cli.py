#!/usr/bin/env python3
"""
livesubset - inspect live subsets from the command line.

Loads records from a JSON file into a parent collection, binds the subset
definitions from a YAML file and reports each subset's membership.
"""
import sys
import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from livesubset.collection import Collection
from livesubset.config import SubsetConfig, init_config
from livesubset.errors import LiveSubsetError
from livesubset.models import Record
from livesubset.registry import SubsetRegistry
from livesubset.subset import Subset

logger = logging.getLogger(__name__)


console = Console()


def load_records(path: Path) -> List[Dict[str, Any]]:
    """Read records from a JSON file: a list, or an object with a "records" list."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("records", [])

    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise LiveSubsetError(f"{path} must contain a list of JSON objects")

    return data


def build_parent(records: List[Dict[str, Any]], config: SubsetConfig) -> Collection:
    """Create the parent collection, honouring the configured id attribute."""
    record_class = Record
    if config.id_attribute != Record.id_attribute:
        record_class = type("ConfiguredRecord", (Record,), {"id_attribute": config.id_attribute})

    parent = Collection(record_class=record_class)
    parent.add(records)
    return parent


def build_registry(config: SubsetConfig) -> SubsetRegistry:
    registry = SubsetRegistry.from_config(config)
    if not config.definitions_file:
        logger.warning("No definitions file given; only built-in subsets are available")
    return registry


def bind_subsets(registry: SubsetRegistry, parent: Collection, names: Optional[List[str]]) -> Dict[str, Subset]:
    if names:
        return {name: registry.bind(name, parent) for name in names}
    subsets = registry.bind_all(parent)
    if not subsets:
        subsets = {"all": registry.bind("all", parent)}
    return subsets


def output_subset(name: str, subset: Subset, format: str = "table") -> None:
    """Output one subset's members in the specified format."""
    columns = sorted({key for record in subset for key in record})

    if format == "json":
        print(json.dumps({"subset": name, "records": subset.to_list()}, default=str))
    elif format == "plain":
        ids = ", ".join(str(key) for key in subset.ids())
        print(f"{name} ({len(subset)}): {ids}")
    else:
        table = Table(title=f"{name} ({len(subset)})")
        table.add_column("cid", style="dim")
        for column in columns:
            table.add_column(column, style="cyan" if column == subset.record_class.id_attribute else None)
        for record in subset:
            table.add_row(record.cid, *[str(record.get(column, "")) for column in columns])
        console.print(table)


def cmd_list(args):
    """List subset definitions."""
    config = args.config_obj
    registry = build_registry(config)

    if args.output == "json":
        print(json.dumps(registry.info()["definitions"], indent=2))
        return

    table = Table(title="Subset definitions")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    table.add_column("Live update")
    table.add_column("Exclusive")

    for name in registry.list():
        definition = registry.get_definition(name)
        table.add_row(
            name,
            definition.description,
            str(definition.live_update),
            "yes" if definition.exclusive else "",
        )
    console.print(table)


def cmd_show(args):
    """Show the members of each subset."""
    config = args.config_obj
    registry = build_registry(config)
    parent = build_parent(load_records(Path(args.records)), config)

    subsets = bind_subsets(registry, parent, args.subset)
    for name, subset in subsets.items():
        output_subset(name, subset, args.output)

    registry.dispose(parent)


def cmd_check(args):
    """Verify every subset holds exactly the parent records passing its predicate."""
    config = args.config_obj
    registry = build_registry(config)
    parent = build_parent(load_records(Path(args.records)), config)
    subsets = bind_subsets(registry, parent, args.subset)

    problems = 0
    table = Table(title=f"Subset consistency ({len(parent)} parent records)")
    table.add_column("Subset", style="cyan")
    table.add_column("Members", justify="right")
    table.add_column("Expected", justify="right")
    table.add_column("Status")

    for name, subset in subsets.items():
        expected = {record.key for record in parent if subset.predicate(record)}
        actual = set(subset.ids())
        orphans = [record for record in subset if parent.get(record) is not record]

        if actual == expected and not orphans:
            status = "[green]ok[/green]"
        else:
            problems += 1
            missing = ", ".join(str(k) for k in sorted(expected - actual, key=str))
            extra = ", ".join(str(k) for k in sorted(actual - expected, key=str))
            status = f"[red]missing: {missing or '-'}; extra: {extra or '-'}[/red]"

        table.add_row(name, str(len(actual)), str(len(expected)), status)

    console.print(table)
    registry.dispose(parent)

    if problems:
        sys.exit(1)


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="livesubset: inspect live-filtered subsets of a record collection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  livesubset -d subsets.yaml list
  livesubset -d subsets.yaml show tasks.json
  livesubset -d subsets.yaml show tasks.json --subset archived -o json
  livesubset -d subsets.yaml check tasks.json

Configuration:
  Config file: ~/.config/livesubset/config.toml or ./livesubset.toml
  Environment: LIVESUBSET_DEFINITIONS_FILE, LIVESUBSET_LOG_LEVEL
        """
    )

    parser.add_argument("-d", "--definitions", help="YAML subset definitions (file or directory)")
    parser.add_argument("--config", help="Config file path")
    parser.add_argument("-o", "--output", choices=["table", "json", "plain"], help="Output format")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List subset definitions")
    list_parser.set_defaults(func=cmd_list)

    show_parser = subparsers.add_parser("show", help="Show subset members for a records file")
    show_parser.add_argument("records", help="JSON file with a list of records")
    show_parser.add_argument("--subset", action="append", help="Only this subset (repeatable)")
    show_parser.set_defaults(func=cmd_show)

    check_parser = subparsers.add_parser("check", help="Check subset consistency for a records file")
    check_parser.add_argument("records", help="JSON file with a list of records")
    check_parser.add_argument("--subset", action="append", help="Only this subset (repeatable)")
    check_parser.set_defaults(func=cmd_check)

    args = parser.parse_args(argv)

    config_args = {}
    if args.output:
        config_args["output_format"] = args.output
    if args.verbose:
        config_args["log_level"] = "DEBUG"

    try:
        if args.config:
            config = SubsetConfig.load(Path(args.config))
            config.definitions_file = args.definitions or config.definitions_file
            for key, value in config_args.items():
                setattr(config, key, value)
        else:
            config = init_config(definitions_file=args.definitions, **config_args)
    except LiveSubsetError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    logging.basicConfig(
        level=config.get_log_level(),
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not config.color_output:
        console.no_color = True
    if not args.output:
        args.output = config.output_format
    args.config_obj = config

    try:
        args.func(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except (LiveSubsetError, OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
