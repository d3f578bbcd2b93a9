"""
Admin CLI for managing site records.

Usage:
    siteledger-admin init-schema
    siteledger-admin next-id --category production
    siteledger-admin create-site --company-id <id> --category <category> [--attr key=value ...] [--data-file <path>]
    siteledger-admin list-sites --company-id <id> [--category <category>]
    siteledger-admin show-site --company-id <id> --category <category> --site-id <n>
    siteledger-admin update-site --company-id <id> --category <category> --site-id <n> --version <v> [--attr key=value ...]
    siteledger-admin delete-site --company-id <id> --category <category> --site-id <n>

Database options default to the loaded configuration (see siteledger.config).
"""

import argparse
import json
import sys
from contextlib import contextmanager
from typing import Any

import psycopg
import yaml
from dotenv import load_dotenv

from siteledger.config import AppSettings, load_settings
from siteledger.core.errors import DuplicateKeyError, SiteLedgerError
from siteledger.core.id_generator import IdGenerator
from siteledger.core.models import SiteCreationResult
from siteledger.core.site_service import SiteService
from siteledger.observability.logger import get_logger, setup_logger
from siteledger.observability.metrics import start_metrics_server
from siteledger.store.connection import DatabaseConnectionPool
from siteledger.store.postgres_store import PostgresSiteStore
from siteledger.store.schema_mgmt import SchemaManager
from siteledger.utils.validation import SITE_CATEGORIES

logger = get_logger(__name__)


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def parse_attributes(pairs: list[str] | None, data_file: str | None = None) -> dict[str, Any]:
    """
    Build a site attribute mapping from a data file and key=value pairs.

    Pairs override keys loaded from the file.

    Raises:
        ValueError: If a pair has no '=' or the file is not a mapping
    """
    attributes: dict[str, Any] = {}

    if data_file:
        with open(data_file, 'r') as f:
            if data_file.endswith('.yaml') or data_file.endswith('.yml'):
                loaded = yaml.safe_load(f)
            else:
                loaded = json.load(f)
        if not isinstance(loaded, dict):
            raise ValueError(f"Data file {data_file} must contain a mapping")
        attributes.update(loaded)

    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid attribute {pair!r}, expected key=value")
        attributes[key.strip()] = value

    return attributes


def create_site_with_retry(
    service: SiteService,
    site_data: dict[str, Any],
    category: str,
    max_attempts: int = 3,
) -> SiteCreationResult:
    """
    Create a site, re-running the whole allocation when a concurrent
    creation took the same id.

    Raises:
        DuplicateKeyError: If every attempt collided
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    for attempt in range(1, max_attempts + 1):
        try:
            return service.create_site(site_data, category)
        except DuplicateKeyError as e:
            if attempt == max_attempts:
                raise
            logger.warning(
                f"Site id collision on {e.primary_key}, retrying",
                extra={"attempt": attempt, "max_attempts": max_attempts},
            )


def resolve_settings(args) -> AppSettings:
    """Load configuration and apply any database options given on the command line."""
    settings = load_settings(args.config)

    overrides = {
        "host": args.db_host,
        "port": args.db_port,
        "database": args.db_name,
        "user": args.db_user,
        "password": args.db_password,
        "table_name": args.table,
    }
    store = settings.store.model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    )
    return settings.model_copy(update={"store": store})


@contextmanager
def open_store(settings: AppSettings):
    """
    Open a connection pool and yield a PostgresSiteStore over it.

    Yields:
        PostgresSiteStore
    """
    pool = DatabaseConnectionPool.from_settings(settings.store)
    try:
        pool.open()
        yield PostgresSiteStore(pool, settings.store.table_name)
    finally:
        pool.close()


def init_schema_command(args, settings: AppSettings, store) -> None:
    SchemaManager(store.pool, settings.store.table_name).ensure_schema()
    print(f"\nSite table ready: {settings.store.table_name}")


def next_id_command(args, settings: AppSettings, store) -> None:
    """Show the id the next creation in a category would receive."""
    generator = IdGenerator(store, page_size=settings.scan_page_size)
    next_id = generator.next_site_id(args.category)
    print(f"\nNext {args.category} site ID: {next_id}")


def create_site_command(args, settings: AppSettings, store) -> None:
    site_data = parse_attributes(args.attr, args.data_file)
    site_data["companyId"] = args.company_id

    service = build_service(store, settings)
    result = create_site_with_retry(
        service, site_data, args.category, max_attempts=args.max_attempts
    )

    print(f"\n{result.message}")
    print_json(result.data)


def list_sites_command(args, settings: AppSettings, store) -> None:
    service = build_service(store, settings)
    sites = service.get_sites(args.company_id, args.category)

    if not sites:
        print(f"\nNo sites found for company {args.company_id}.")
        return

    print(f"\n{'=' * 80}")
    print(f"SITES FOR COMPANY: {args.company_id}")
    print(f"{'=' * 80}\n")
    print(f"{'Key':<25} {'Name':<30} {'Version':<8} {'Updated'}")
    print(f"{'-' * 80}")

    for site in sites:
        print(
            f"{site['PK']:<25} {str(site.get('name', '-')):<30} "
            f"{site.get('version', '-')!s:<8} {site.get('updatedAt', '-')}"
        )

    print(f"\nTotal sites: {len(sites)}\n")


def show_site_command(args, settings: AppSettings, store) -> None:
    service = build_service(store, settings)
    print_json(service.get_site(args.company_id, args.category, args.site_id))


def update_site_command(args, settings: AppSettings, store) -> None:
    updates = parse_attributes(args.attr, args.data_file)
    if not updates:
        print("\nNo updates specified. Use --attr or --data-file.")
        return

    service = build_service(store, settings)
    item = service.update_site(
        args.company_id, args.category, args.site_id, updates, args.version
    )

    print(f"\nSite updated successfully: {item['PK']} (version {item['version']})")
    print_json(item)


def delete_site_command(args, settings: AppSettings, store) -> None:
    service = build_service(store, settings)
    removed = service.delete_site(args.company_id, args.category, args.site_id)
    print(f"\nSite deleted: {removed['PK']}")


def build_service(store, settings: AppSettings) -> SiteService:
    return SiteService(store, IdGenerator(store, page_size=settings.scan_page_size))


COMMANDS = {
    "init-schema": init_schema_command,
    "next-id": next_id_command,
    "create-site": create_site_command,
    "list-sites": list_sites_command,
    "show-site": show_site_command,
    "update-site": update_site_command,
    "delete-site": delete_site_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Admin CLI for production and consumption site records",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "--config",
        help="Path to YAML configuration file (default: $SITELEDGER_CONFIG)"
    )
    parser.add_argument("--db-host", help="Database host")
    parser.add_argument("--db-port", type=int, help="Database port")
    parser.add_argument("--db-name", help="Database name")
    parser.add_argument("--db-user", help="Database user")
    parser.add_argument("--db-password", help="Database password")
    parser.add_argument("--table", help="Site table name")
    parser.add_argument(
        "--metrics-port",
        type=int,
        help="Expose Prometheus metrics on this port while the command runs"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init-schema", help="Create the site table if missing")

    next_id_parser = subparsers.add_parser(
        "next-id",
        help="Show the next site ID for a category"
    )
    next_id_parser.add_argument("--category", required=True, choices=SITE_CATEGORIES)

    create_parser = subparsers.add_parser("create-site", help="Create a new site")
    _add_site_target(create_parser, with_site_id=False)
    _add_attribute_options(create_parser)
    create_parser.add_argument(
        "--max-attempts",
        type=int,
        default=3,
        help="Attempts when a concurrent creation takes the same ID (default: 3)"
    )

    list_parser = subparsers.add_parser("list-sites", help="List a company's sites")
    list_parser.add_argument("--company-id", required=True, help="Owning company ID")
    list_parser.add_argument(
        "--category",
        choices=SITE_CATEGORIES,
        help="Restrict to one category (optional)"
    )

    show_parser = subparsers.add_parser("show-site", help="Show one site")
    _add_site_target(show_parser)

    update_parser = subparsers.add_parser("update-site", help="Update a site's attributes")
    _add_site_target(update_parser)
    _add_attribute_options(update_parser)
    update_parser.add_argument(
        "--version",
        type=int,
        required=True,
        help="Version of the site last read (optimistic concurrency token)"
    )

    delete_parser = subparsers.add_parser("delete-site", help="Delete a site")
    _add_site_target(delete_parser)

    return parser


def _add_site_target(parser: argparse.ArgumentParser, with_site_id: bool = True) -> None:
    parser.add_argument("--company-id", required=True, help="Owning company ID")
    parser.add_argument("--category", required=True, choices=SITE_CATEGORIES)
    if with_site_id:
        parser.add_argument("--site-id", type=int, required=True, help="Numeric site ID")


def _add_attribute_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--attr",
        action="append",
        metavar="KEY=VALUE",
        help="Site attribute (repeatable)"
    )
    parser.add_argument(
        "--data-file",
        help="Path to YAML or JSON file containing site attributes"
    )


def main(argv: list[str] | None = None) -> None:
    """Main entry point for admin CLI."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        settings = resolve_settings(args)
        setup_logger(level=settings.log_level, format_type=settings.log_format)

        metrics_port = args.metrics_port or settings.metrics_port
        if metrics_port:
            start_metrics_server(metrics_port)

        with open_store(settings) as store:
            COMMANDS[args.command](args, settings, store)

    except SiteLedgerError as e:
        logger.error(f"Command {args.command} failed: {e}", extra={"error_code": e.error_code})
        print(f"\nError [{e.error_code}]: {e}")
        sys.exit(1)

    except (ValueError, OSError, psycopg.Error) as e:
        logger.error(f"Command {args.command} failed: {e}", exc_info=True)
        print(f"\nError: {e}")
        sys.exit(1)

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
