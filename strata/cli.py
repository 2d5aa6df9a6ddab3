#!/usr/bin/env python3
"""
Strata CLI — compile model definitions, apply them to a database.

strata ddl models.json              # print DDL, belongs_to targets first
strata ddl models.json --json       # same, as a JSON array
strata apply models.json app.db     # create tables/indexes/triggers/views

models.json holds a list of model literals, or {"models": [...]}.
--views DIR adds every annotated .sql file in DIR as a CREATE VIEW.
"""

import argparse
import json
import sqlite3
import sys
from pathlib import Path

from strata.config import DatabaseOptions
from strata.ddl import compile_schema
from strata.ddl.views import create_view_sql, load_views
from strata.errors import StrataError
from strata.model import ModelDefinition, resolve_model
from strata.registry import RelationshipRegistry


def load_definitions(path: Path) -> list[ModelDefinition]:
    """Model definitions from a JSON file."""
    data = json.loads(Path(path).read_text(encoding='utf-8'))
    if isinstance(data, dict):
        data = data.get('models', [data] if 'name' in data else [])
    return [ModelDefinition.from_dict(d) for d in data]


def ordered(definitions: list[ModelDefinition]) -> list[ModelDefinition]:
    """Definitions reordered so belongs_to targets come first."""
    registry = RelationshipRegistry()
    by_name = {}
    for d in definitions:
        by_name[d.name] = d
        registry.register(d.name, resolve_model(d).definition.relationships)
    return [by_name[n] for n in registry.creation_order(list(by_name))]


def build_ddl(definitions: list[ModelDefinition], view_dir: Path = None) -> list[str]:
    resolved = [resolve_model(d) for d in ordered(definitions)]
    tables = {m.name: m.table_name for m in resolved}
    statements = []
    for model in resolved:
        statements += compile_schema(model, tables)
    if view_dir:
        statements += [create_view_sql(v) for v in load_views(view_dir)]
    return statements


# ============================================================
# strata ddl
# ============================================================

def cmd_ddl(args):
    statements = build_ddl(load_definitions(args.models), args.views)
    if args.json:
        print(json.dumps(statements, indent=2))
        return
    for sql in statements:
        print(f"{sql};")


# ============================================================
# strata apply
# ============================================================

def cmd_apply(args):
    from rich.console import Console
    from strata.database import Database

    console = Console()
    definitions = ordered(load_definitions(args.models))
    options = DatabaseOptions.from_env(verbose=True) if args.verbose else DatabaseOptions.from_env()

    console.print()
    console.print(f"  [bold]Applying {len(definitions)} model(s) to {args.database}[/bold]")
    console.print()
    with Database(str(args.database), options) as db:
        for definition in definitions:
            model = db.define(definition)
            console.print(f"  [dim]{model.name:<20}[/dim] {model.table_name:<24} [green]ok[/green]")
        if args.views:
            for view in load_views(args.views):
                db.driver.exec(create_view_sql(view))
                console.print(f"  [dim]{'view':<20}[/dim] {view.name:<24} [green]ok[/green]")


# ============================================================
# Main
# ============================================================

def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="strata",
        description="Declarative models compiled to SQLite DDL and DML.",
    )
    sub = parser.add_subparsers(dest="command")

    # strata ddl
    ddl_p = sub.add_parser("ddl", help="Print DDL for model definitions")
    ddl_p.add_argument("models", type=Path, help="JSON file of model definitions")
    ddl_p.add_argument("--views", type=Path, default=None, help="Directory of .sql view files")
    ddl_p.add_argument("--json", action="store_true", help="Output a JSON array")

    # strata apply
    apply_p = sub.add_parser("apply", help="Create the models in a database file")
    apply_p.add_argument("models", type=Path, help="JSON file of model definitions")
    apply_p.add_argument("database", type=Path, help="SQLite database file")
    apply_p.add_argument("--views", type=Path, default=None, help="Directory of .sql view files")
    apply_p.add_argument("-v", "--verbose", action="store_true", help="Print executed SQL to stderr")

    args = parser.parse_args(argv)
    try:
        if args.command == "ddl":
            cmd_ddl(args)
        elif args.command == "apply":
            cmd_apply(args)
        else:
            parser.print_help()
            return 1
    except (StrataError, sqlite3.Error, OSError, json.JSONDecodeError) as e:
        print(f"[strata] {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
