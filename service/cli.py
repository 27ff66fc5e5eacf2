"""Command line entry point."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import uvicorn

from connectors.base import ConnectorError, RemoteError, describe_body
from connectors.paapi_client import PAAPIClient
from connectors.tile_extractor import extract_asin_aaid_pairs, format_mapping
from connectors.url_expander import URLExpander, parse_url_list, unique_product_codes
from security.cipher import generate_passphrase
from service.app import create_app
from storage import Database, SettingsStore
from utils.config import load_settings
from utils.errors import ConfigError
from utils.logging import apply_logging_settings


def _serve(args: argparse.Namespace, settings: Dict[str, Any]) -> int:
    server_cfg = settings.get("server", {})
    uvicorn.run(
        create_app(settings),
        host=args.host or server_cfg.get("host", "127.0.0.1"),
        port=args.port or int(server_cfg.get("port", 4000)),
    )
    return 0


def _expand(args: argparse.Namespace, settings: Dict[str, Any]) -> int:
    text = Path(args.file).read_text(encoding="utf-8") if args.file else sys.stdin.read()
    urls = parse_url_list(text)
    if not urls:
        print("No URLs provided", file=sys.stderr)
        return 2
    outcomes = URLExpander(settings=settings).expand_batch(urls)
    for outcome in outcomes:
        print(json.dumps(outcome.to_dict()))
    codes = unique_product_codes(outcomes)
    print(f"{len(codes)} unique ASINs: {','.join(codes)}", file=sys.stderr)
    return 0


def _lookup(args: argparse.Namespace, settings: Dict[str, Any]) -> int:
    database = Database(settings["database"]["path"])
    try:
        credentials = SettingsStore(database).get_paapi_credentials()
    finally:
        database.close()
    if credentials is None:
        print("PA API credentials not configured", file=sys.stderr)
        return 1

    try:
        items = PAAPIClient(credentials, settings=settings).get_items(args.asins)
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except RemoteError as exc:
        print(f"PA API error {exc.status}: {describe_body(exc.body)}", file=sys.stderr)
        return 1
    except ConnectorError as exc:
        print(f"PA API request failed: {exc}", file=sys.stderr)
        return 1
    print(json.dumps({"items": items}, indent=2))
    return 0


def _pairs(args: argparse.Namespace, settings: Dict[str, Any]) -> int:
    html = Path(args.file).read_text(encoding="utf-8") if args.file else sys.stdin.read()
    pairs = extract_asin_aaid_pairs(html)
    if not pairs:
        print("No ASIN/ID pairs found", file=sys.stderr)
        return 1
    print(format_mapping(pairs))
    return 0


def _generate_key(args: argparse.Namespace, settings: Dict[str, Any]) -> int:
    print(generate_passphrase())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="workbench", description=__doc__)
    parser.add_argument("--settings", help="Path to a YAML settings file")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.set_defaults(handler=_serve)

    expand = sub.add_parser("expand", help="Expand short URLs read from a file or stdin")
    expand.add_argument("file", nargs="?")
    expand.set_defaults(handler=_expand)

    lookup = sub.add_parser("lookup", help="GetItems for the given ASINs with stored credentials")
    lookup.add_argument("asins", nargs="+")
    lookup.set_defaults(handler=_lookup)

    pairs = sub.add_parser("pairs", help="Extract ASIN/AAID pairs from editor HTML in a file or stdin")
    pairs.add_argument("file", nargs="?")
    pairs.set_defaults(handler=_pairs)

    keygen = sub.add_parser("generate-key", help="Print a random encryption passphrase")
    keygen.set_defaults(handler=_generate_key)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(args.settings)
    apply_logging_settings(settings.get("logging", {}))
    return args.handler(args, settings)


if __name__ == "__main__":
    sys.exit(main())
