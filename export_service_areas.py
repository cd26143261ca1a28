#!/usr/bin/env python3
"""
Service Area Export CLI

Command-line interface for precomputing client service-area polygons and
inspecting how entries normalize and resolve.
"""

import argparse
import logging
import sys
from pathlib import Path

from service_areas.cache import JsonFileCache
from service_areas.clients import AppsScriptClientStore, CsvClientStore
from service_areas.config import APPS_SCRIPT_URL, BUNDLE_PATH, CACHE_PATH, CLIENTS_SOURCE, MAPS_FOLDER
from service_areas.exceptions import ServiceAreaError
from service_areas.normalizer import normalize_service_area_input
from service_areas.precompute import export_service_areas
from service_areas.rendering import create_service_area_map, save_map_file
from service_areas.resolver import build_batch_resolver, build_interactive_resolver
from service_areas.service import ServiceAreaService


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Precompute client service-area polygons for the dashboard",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export every client from the configured sheet to data/service-areas.json
  python export_service_areas.py export

  # Export from a published Google Sheet CSV and also write a root copy
  python export_service_areas.py export --source "https://docs.google.com/.../pub?output=csv" --also service-areas.json

  # See how a service-area field is split into lookup entries
  python export_service_areas.py normalize "49501, 49503, Grand Rapids, MI"

  # Resolve entries through the persisted cache
  python export_service_areas.py resolve 49503 "Holland, MI"

  # Write one client's service-area map to static/maps/
  python export_service_areas.py map "Acme Plumbing"
        """
    )
    parser.add_argument('--verbose', action='store_true', help='Show debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Export command
    export_parser = subparsers.add_parser(
        'export',
        help='Resolve every client and write the precomputed bundle'
    )
    export_parser.add_argument(
        '--source',
        default=None,
        help=f'Client CSV/Excel path or URL (default: {CLIENTS_SOURCE})'
    )
    export_parser.add_argument(
        '--apps-script',
        default=APPS_SCRIPT_URL or None,
        help='Read clients from the Apps Script endpoint instead of a CSV'
    )
    export_parser.add_argument(
        '--output',
        default=BUNDLE_PATH,
        help=f'Bundle output path (default: {BUNDLE_PATH})'
    )
    export_parser.add_argument(
        '--also',
        action='append',
        default=[],
        help='Write an extra copy of the bundle to this path (repeatable)'
    )
    export_parser.add_argument(
        '--no-simplify',
        action='store_true',
        help='Keep full-resolution polygons in the bundle'
    )

    # Normalize command
    normalize_parser = subparsers.add_parser(
        'normalize',
        help='Split a service-area field into lookup entries'
    )
    normalize_parser.add_argument('text', help='Service-area text')

    # Resolve command
    resolve_parser = subparsers.add_parser(
        'resolve',
        help='Resolve entries to labelled polygons'
    )
    resolve_parser.add_argument('entries', nargs='+', help='ZIP codes or place names')
    resolve_parser.add_argument(
        '--cache',
        default=CACHE_PATH,
        help=f'Persisted cache path (default: {CACHE_PATH})'
    )

    # Clear-cache command
    clear_parser = subparsers.add_parser(
        'clear-cache',
        help='Delete the persisted resolution cache'
    )
    clear_parser.add_argument('--cache', default=CACHE_PATH, help='Persisted cache path')

    # Map command
    map_parser = subparsers.add_parser(
        'map',
        help="Render one client's service area to an HTML map"
    )
    map_parser.add_argument('name', help='Client name as it appears in the sheet')
    map_parser.add_argument('--source', default=None, help='Client CSV/Excel path or URL')
    map_parser.add_argument('--apps-script', default=APPS_SCRIPT_URL or None, help='Read clients from Apps Script')
    map_parser.add_argument('--bundle', default=BUNDLE_PATH, help='Precomputed bundle to use when present')
    map_parser.add_argument('--cache', default=CACHE_PATH, help='Persisted cache path')
    map_parser.add_argument(
        '--output-dir',
        default=MAPS_FOLDER,
        help=f'Folder for the generated page (default: {MAPS_FOLDER})'
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == 'export':
            return handle_export(args)
        elif args.command == 'normalize':
            return handle_normalize(args)
        elif args.command == 'resolve':
            return handle_resolve(args)
        elif args.command == 'clear-cache':
            return handle_clear_cache(args)
        elif args.command == 'map':
            return handle_map(args)
    except ServiceAreaError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def build_store(args):
    """Client store from --apps-script/--source, or None when the file is missing."""
    if args.apps_script and not args.source:
        print(f"Reading clients from Apps Script: {args.apps_script}")
        return AppsScriptClientStore(args.apps_script)

    source = args.source or CLIENTS_SOURCE
    if '://' not in source and not Path(source).exists():
        print(f"Error: Client file not found: {source}", file=sys.stderr)
        return None
    print(f"Reading clients from: {source}")
    return CsvClientStore(source)


def handle_export(args):
    """Handle the export command."""
    store = build_store(args)
    if store is None:
        return 1

    try:
        bundle = export_service_areas(
            store,
            build_batch_resolver(),
            args.output,
            extra_paths=args.also,
            simplify=not args.no_simplify,
        )
    except (OSError, ValueError) as e:
        print(f"Error during export: {e}", file=sys.stderr)
        return 1

    resolved = sum(len(client['polygons']) for client in bundle['clients'])
    print(f"✓ Exported {bundle['clientCount']} clients to {args.output}")
    for extra in args.also:
        print(f"✓ Copy written to {extra}")
    print(f"✓ Service-area polygons: {resolved}")
    missing = [client['name'] for client in bundle['clients'] if client['serviceArea'] and not client['polygons']]
    if missing:
        print(f"  - {len(missing)} clients have no resolved polygons: {', '.join(missing[:5])}"
              + (" ..." if len(missing) > 5 else ""))
    return 0


def handle_normalize(args):
    """Handle the normalize command."""
    for entry in normalize_service_area_input(args.text):
        print(entry)
    return 0


def handle_resolve(args):
    """Handle the resolve command."""
    resolver = build_interactive_resolver(args.cache)
    failures = 0
    for entry in args.entries:
        area = resolver.resolve(entry)
        if area is None:
            failures += 1
            print(f"✗ {entry}: no polygon found")
            continue
        geometry_type = area.feature['geometry']['type']
        print(f"✓ {entry}: {area.label} ({geometry_type})")
    return 1 if failures == len(args.entries) else 0


def handle_clear_cache(args):
    """Handle the clear-cache command."""
    cache = JsonFileCache(args.cache)
    count = len(cache)
    cache.clear()
    print(f"✓ Cleared {count} cached entries from {args.cache}")
    return 0


def handle_map(args):
    """Handle the map command."""
    store = build_store(args)
    if store is None:
        return 1

    service = ServiceAreaService(store, build_interactive_resolver(args.cache), bundle_path=args.bundle)
    try:
        record = service.get_client(args.name)
        bundle = service.render_bundle(args.name)
        lat, lng = service.client_location(record)
        m = create_service_area_map(bundle, record.name, lat, lng)
        _, filepath = save_map_file(m, args.output_dir)
    finally:
        service.shutdown()

    kind = 'fallback area' if bundle.is_fallback else f"{len(bundle.per_entry_outlines)} service-area entries"
    print(f"✓ Map for {record.name} ({kind}) saved to {filepath}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
