"""Browse the print shop catalog from the command line.

Usage:
    printshop-catalog --search "sticker"
    printshop-catalog --category "Business Cards" --tag Matte --tag Glossy
    printshop-catalog --sort rating --order desc --page 2
"""

import argparse
import asyncio

import structlog

from printshop_catalog.application.catalog_source import CatalogSource
from printshop_catalog.application.coordinator import CatalogSnapshot
from printshop_catalog.application.screen import ListingScreen
from printshop_catalog.config import get_settings
from printshop_catalog.domain.exceptions import CatalogError
from printshop_catalog.domain.filters import SortBy, SortOrder
from printshop_catalog.infrastructure.api_client import PrintShopAPIClient
from printshop_catalog.logging_config import configure_logging

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Browse the print shop catalog")
    parser.add_argument("--api-url", help="REST API base URL (default: from settings)")
    parser.add_argument("--search", default="", help="Free-text search")
    parser.add_argument("--category", help="Top-level tag name")
    parser.add_argument(
        "--tag",
        action="append",
        default=[],
        help="Sub-tag name within the category (repeatable)",
    )
    parser.add_argument(
        "--sort",
        choices=[s.name.lower() for s in SortBy],
        default="name",
        help="Sort field (default: name)",
    )
    parser.add_argument(
        "--order",
        choices=["asc", "desc"],
        default="asc",
        help="Sort direction (default: asc)",
    )
    parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    return parser


def print_snapshot(snapshot: CatalogSnapshot) -> None:
    """Print the taxonomy and the current result page."""
    state = snapshot.state
    print("=" * 60)
    print("Print Shop Catalog")
    print("=" * 60)

    if snapshot.taxonomy is None:
        print("Tag filters unavailable.")
    else:
        for hierarchy in snapshot.taxonomy:
            top = hierarchy.top_level_tag
            marker = "*" if top == state.selected_top_level_tag else " "
            children = ", ".join(
                f"[{c.name}]" if c in state.selected_tags else c.name
                for c in hierarchy.children
            )
            print(f" {marker} {top.name}: {children}")
    print()

    if snapshot.error is not None:
        print(f"  ✗ Error: {snapshot.error.message}")
        return
    if snapshot.page is None:
        print("No results loaded.")
        return

    print(
        f"Page {state.current_page} of {snapshot.total_pages} "
        f"({snapshot.page.total_count} print shops)"
    )
    for item in snapshot.page.items:
        intro = f" - {item.introduction}" if item.introduction else ""
        print(f"  {item.id:>5}. {item.name}{intro}")


async def main(args: argparse.Namespace) -> int:
    settings = get_settings()
    configure_logging(settings)

    client = PrintShopAPIClient(
        base_url=args.api_url or settings.api_url,
        api_key=settings.api_key,
        timeout=settings.request_timeout,
    )
    try:
        async with ListingScreen(CatalogSource(client), settings) as screen:
            coordinator = screen.coordinator
            taxonomy = coordinator.taxonomy

            if taxonomy is not None and args.category:
                category = taxonomy.find_top_level(args.category)
                if category is None:
                    print(f"Unknown category: {args.category}")
                    return 2
                coordinator.set_top_level_tag(category)
            if taxonomy is not None:
                category = coordinator.state.selected_top_level_tag
                for name in args.tag:
                    tag = taxonomy.find_by_name(name, parent=category)
                    if tag is None:
                        print(f"Unknown tag in selected category: {name}")
                        return 2
                    coordinator.toggle_tag(tag)
            elif args.category or args.tag:
                logger.warning("Ignoring tag filters, taxonomy unavailable")

            coordinator.set_search_text(args.search)
            coordinator.set_sort(SortBy[args.sort.upper()], SortOrder[args.order.upper()])
            if args.page != 1:
                coordinator.set_page(args.page)

            await coordinator.wait_idle()
            print_snapshot(coordinator.snapshot())
            return 1 if coordinator.error else 0
    except CatalogError as e:
        print(f"  ✗ Error: {e.message}")
        return 2
    finally:
        await client.close()


def run() -> None:
    """Console script entry point."""
    raise SystemExit(asyncio.run(main(build_parser().parse_args())))
