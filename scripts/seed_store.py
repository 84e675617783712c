#!/usr/bin/env python3
"""Seed demo store script.

Creates the database tables and writes a small demo store (settings,
products, shipping zones and methods, a coupon) through the SQL
repositories.

Usage:
    python scripts/seed_store.py
    python scripts/seed_store.py --site-url https://shop.example.com
"""

import argparse
import asyncio

from storefront.infrastructure.database import dispose_engine, get_session_factory
from storefront.infrastructure.seed import create_tables, seed_demo_store
from storefront.infrastructure.sql_repositories import create_sql_repositories


async def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Seed a demo storefront")
    parser.add_argument(
        "--site-url",
        default=None,
        help="Storefront URL used in notification links",
    )
    args = parser.parse_args()

    print("=" * 60)
    print("Storefront Demo Seeder")
    print("=" * 60)

    sessions = get_session_factory()
    print("Creating database tables...")
    await create_tables(sessions.kw["bind"])
    print("Tables ready.")
    print()

    try:
        result = await seed_demo_store(create_sql_repositories(sessions), site_url=args.site_url)
        print(f"  ✓ Products: {result.products}")
        print(f"  ✓ Shipping zones: {result.zones}")
        print(f"  ✓ Shipping methods: {result.methods}")
        print(f"  ✓ Coupons: {result.coupons}")
    finally:
        await dispose_engine()

    print("=" * 60)
    print("Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
