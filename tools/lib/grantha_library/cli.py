"""Command-line interface for the grantha library.

This module provides the grantha-library command: running the API server,
exporting and importing grantha snapshots, validating snapshot files,
creating admin accounts and repairing stored commentary levels.
"""

import argparse
import getpass
import sys
from collections import Counter, defaultdict
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.table import Table

from grantha_library.config import LibraryConfig, configure_logging, load_config
from grantha_library.exceptions import GranthaLibraryError, SchemaValidationError
from grantha_library.models import DEFAULT_COMMENTARY_ORDER
from grantha_library.services import LibraryServices
from grantha_library.store import DocumentStore
from grantha_library.transfer import read_import_file, write_export_file
from grantha_library.validator import validate_export_document


def cmd_serve(args: argparse.Namespace, config: LibraryConfig,
              store: DocumentStore) -> None:
    """Handles the 'serve' command."""
    from grantha_library.api import create_app

    app = create_app(config, store)
    app.run(
        host=args.host or config.host,
        port=args.port or config.port,
        debug=args.debug,
    )


def cmd_export(args: argparse.Namespace, services: LibraryServices) -> None:
    """Handles the 'export' command."""
    output_path = Path(args.output)
    data = services.transfer.export_grantha(args.grantha_id)
    write_export_file(data, output_path)
    statistics = data['statistics']
    print(f"✓ Exported '{data['grantha']['title']}' to {output_path}")
    print(f"  Verses: {statistics['totalVerses']}")
    print(f"  Commentaries: {statistics['totalCommentaries']}")


def cmd_import(args: argparse.Namespace, services: LibraryServices) -> None:
    """Handles the 'import' command."""
    input_path = Path(args.input)
    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")
    print(f"Importing {input_path}...")
    result = services.transfer.import_grantha(read_import_file(input_path))
    print(f"✓ {result['message']}")
    print(f"  Grantha id: {result['grantha']['_id']}")


def cmd_validate(args: argparse.Namespace) -> None:
    """Handles the 'validate' command."""
    input_path = Path(args.input)
    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")
    validate_export_document(read_import_file(input_path))
    print(f"✓ {input_path} matches the grantha export format")


def cmd_create_admin(args: argparse.Namespace, services: LibraryServices) -> None:
    """Handles the 'create-admin' command."""
    password = args.password
    if password is None:
        password = getpass.getpass('Password: ')
    account = services.admins.create_admin(args.username, password)
    print(f"✓ Created admin '{account.username}' ({account.admin_id})")


def cmd_repair_levels(args: argparse.Namespace, services: LibraryServices) -> None:
    """Handles the 'repair-levels' command."""
    if args.grantha:
        services.content.get_grantha(args.grantha)
    changed = services.tree.repair_levels(args.grantha)
    print(f"✓ Repaired {changed} commentary level(s)")


def cmd_stats(args: argparse.Namespace, services: LibraryServices,
              console: Console) -> None:
    """Handles the 'stats' command."""
    grantha = services.content.get_grantha(args.grantha_id)
    verses = services.content.list_verses(args.grantha_id)
    records = services.tree.export_flatten(args.grantha_id)

    console.print(f"[bold]{grantha.title}[/bold] ({grantha.status})")
    console.print(
        f"Chapters: {len({str(v.chapter_number) for v in verses})}  "
        f"Verses: {len(verses)}  Commentaries: {len(records)}"
    )
    console.print(build_commentary_table(records, grantha.commentary_order_map()))


def build_commentary_table(records: List[Dict], order: Dict[str, int]) -> Table:
    """Builds a table of commentary counts by name and level.

    Args:
        records: Flat commentary records (export_flatten output).
        order: Declared order by commentary name.

    Returns:
        rich Table with one row per commentary name.
    """
    by_name: Dict[str, Counter] = defaultdict(Counter)
    for record in records:
        by_name[record['commentaryName']][record['level']] += 1

    table = Table(title='Commentaries')
    table.add_column('Commentary')
    table.add_column('Order', justify='right')
    table.add_column('Total', justify='right')
    table.add_column('By level')
    for name in sorted(by_name, key=lambda n: (order.get(n, DEFAULT_COMMENTARY_ORDER), n)):
        levels = by_name[name]
        table.add_row(
            name,
            str(order[name]) if name in order else '-',
            str(sum(levels.values())),
            ', '.join(f"L{level}: {count}" for level, count in sorted(levels.items())),
        )
    return table


def build_parser() -> argparse.ArgumentParser:
    """Builds the argument parser."""
    parser = argparse.ArgumentParser(
        prog='grantha-library',
        description='Sanskrit grantha library: API server and maintenance tools.',
    )
    parser.add_argument('--config', type=Path, help='YAML configuration file')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    serve = subparsers.add_parser('serve', help='Run the API server')
    serve.add_argument('--host', help='Interface to bind')
    serve.add_argument('--port', type=int, help='Port to listen on')
    serve.add_argument('--debug', action='store_true', help='Flask debug mode')

    export = subparsers.add_parser('export', help='Export a grantha to JSON')
    export.add_argument('grantha_id', help='Grantha id')
    export.add_argument('-o', '--output', required=True, help='Output JSON file')

    import_ = subparsers.add_parser('import', help='Import a grantha export file')
    import_.add_argument('input', help='Export JSON file')

    validate = subparsers.add_parser(
        'validate', help='Check an export file against the schema'
    )
    validate.add_argument('input', help='Export JSON file')

    create_admin = subparsers.add_parser('create-admin', help='Create an admin')
    create_admin.add_argument('username', help='Admin username')
    create_admin.add_argument('--password',
                              help='Password (prompted for when omitted)')

    repair = subparsers.add_parser(
        'repair-levels', help='Recompute stored commentary levels'
    )
    repair.add_argument('--grantha', help='Only repair this grantha')

    stats = subparsers.add_parser('stats', help='Show grantha statistics')
    stats.add_argument('grantha_id', help='Grantha id')

    return parser


def main(
    argv: Optional[List[str]] = None,
    store: Optional[DocumentStore] = None,
    console: Optional[Console] = None
) -> int:
    """Runs the command line.

    Args:
        argv: Arguments (defaults to sys.argv[1:]).
        store: Document store to use instead of connecting from config.
        console: rich console for table output.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args.config)
        configure_logging('DEBUG' if args.verbose else config.log_level)
        if args.command == 'validate':
            cmd_validate(args)
            return 0

        if store is None:
            store = DocumentStore.connect(config.mongodb_uri, config.database_name)
        if args.command == 'serve':
            cmd_serve(args, config, store)
            return 0

        services = LibraryServices.create(store, config)
        if args.command == 'export':
            cmd_export(args, services)
        elif args.command == 'import':
            cmd_import(args, services)
        elif args.command == 'create-admin':
            cmd_create_admin(args, services)
        elif args.command == 'repair-levels':
            cmd_repair_levels(args, services)
        elif args.command == 'stats':
            cmd_stats(args, services, console or Console())
    except SchemaValidationError as e:
        print(f"✗ {e}", file=sys.stderr)
        for error in e.errors:
            print(f"  - {error}", file=sys.stderr)
        return 1
    except (GranthaLibraryError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
