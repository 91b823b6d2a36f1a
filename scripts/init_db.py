#!/usr/bin/env python3
"""
Database initialization script for the storefront pricing backend.

This script handles:
- Database creation (for PostgreSQL)
- Running Alembic migrations
- Optional demo data seeding (store settings, catalog, shipping, a coupon)

Usage:
    python scripts/init_db.py [--seed-data] [--reset-data] [--check-only]
"""

import os
import sys
import argparse
import subprocess
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from urllib.parse import urlparse

# add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from storefront.core.config import settings
from storefront.db.session import engine, session_scope
from storefront import models
from storefront.services.giftcards.codes import issue_gift_card
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
import logging

# configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_database_if_not_exists():
    """create db if it doesn't exist (PostgreSQL only)."""
    database_url = settings.DATABASE_URL

    if not database_url.startswith("postgresql"):
        logger.info("Database URL is not PostgreSQL, skipping database creation")
        return True

    parsed = urlparse(database_url)
    database_name = parsed.path[1:]
    postgres_engine = create_engine(f"{parsed.scheme}://{parsed.netloc}/postgres", isolation_level="AUTOCOMMIT")
    try:
        with postgres_engine.connect() as conn:
            result = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :db_name"),
                {"db_name": database_name}
            )
            if result.fetchone() is None:
                logger.info(f"Creating database: {database_name}")
                conn.execute(text(f'CREATE DATABASE "{database_name}"'))
                logger.info(f"Database {database_name} created successfully")
            else:
                logger.info(f"Database {database_name} already exists")
        return True
    except SQLAlchemyError as e:
        logger.error(f"Error creating database: {e}")
        return False
    finally:
        postgres_engine.dispose()


def run_migrations():
    """run Alembic migrations to create/update schema."""
    logger.info("Running Alembic migrations...")
    os.chdir(project_root)
    try:
        result = subprocess.run(
            [sys.executable, "-m", "alembic", "upgrade", "head"],
            capture_output=True,
            text=True,
            check=True
        )
    except subprocess.CalledProcessError as e:
        logger.error(f"Error running migrations: {e}")
        logger.error(f"Migration error output: {e.stderr}")
        return False

    logger.info("Migrations completed successfully")
    logger.debug(f"Migration output: {result.stdout}")
    return True


def delete_all_data():
    """delete all rows, child tables first."""
    logger.info("Deleting all existing data...")
    try:
        with session_scope() as db:
            for model in (
                models.OrderGiftCardRedemption,
                models.OrderItem,
                models.Order,
                models.GiftCard,
                models.Coupon,
                models.CouponBatch,
                models.ShippingRate,
                models.ShippingZone,
                models.StoreSettings,
                models.User,
            ):
                logger.info(f"Deleting {model.__tablename__}...")
                db.query(model).delete()
            # association rows go with their promotions and products
            for table in (models.promotion_products, models.promotion_categories, models.promotion_brands):
                db.execute(table.delete())
            for model in (models.Promotion, models.Product, models.Category, models.Brand):
                logger.info(f"Deleting {model.__tablename__}...")
                db.query(model).delete()
    except SQLAlchemyError as e:
        logger.error(f"Error deleting data: {e}")
        return False
    logger.info("All data deleted")
    return True


def seed_initial_data():
    """seed a small demo store."""
    logger.info("Seeding initial data...")
    now = datetime.utcnow()
    try:
        with session_scope() as db:
            if db.query(models.StoreSettings).first():
                logger.info("Store settings already exist, skipping seed")
                return True

            db.add(models.StoreSettings(
                store_name="Demo Store",
                currency=settings.DEFAULT_CURRENCY,
                currency_symbol=settings.DEFAULT_CURRENCY_SYMBOL,
                tax_enabled=True,
                tax_rate=Decimal("8.00"),
                tax_included=False,
                tax_shipping=False,
                gift_cards_cover_shipping=True,
                track_inventory=True,
            ))
            db.add(models.User(full_name="Store Admin", email="admin@example.com", role="admin"))

            apparel = models.Category(name="Apparel")
            accessories = models.Category(name="Accessories")
            house_brand = models.Brand(name="House Brand")
            db.add_all([apparel, accessories, house_brand])
            db.flush()

            tee = models.Product(title="Classic Tee", price=Decimal("25.00"), stock=100,
                                 weight=Decimal("0.200"), category_id=apparel.id, brand_id=house_brand.id)
            hoodie = models.Product(title="Zip Hoodie", price=Decimal("60.00"), discount=Decimal("10"),
                                    stock=40, weight=Decimal("0.800"), category_id=apparel.id)
            cap = models.Product(title="Logo Cap", price=Decimal("15.00"), stock=75,
                                 weight=Decimal("0.100"), category_id=accessories.id, brand_id=house_brand.id)
            db.add_all([tee, hoodie, cap])
            db.flush()

            db.add(models.Promotion(
                name="Accessories week",
                type="CATEGORY",
                discount_type="percentage",
                discount_value=Decimal("20"),
                starts_at=now - timedelta(days=1),
                ends_at=now + timedelta(days=6),
                badge_text="-20%",
                categories=[accessories],
            ))

            db.add(models.Coupon(
                code="SAVE10",
                discount_type="fixed",
                discount_value=Decimal("10.00"),
                min_order_amount=Decimal("50.00"),
            ))

            domestic = models.ShippingZone(name="Domestic", countries=["US"])
            world = models.ShippingZone(name="Rest of world", countries=[])
            db.add_all([domestic, world])
            db.flush()
            db.add_all([
                models.ShippingRate(zone_id=domestic.id, name="Standard", type="flat", price=Decimal("5.00"),
                                    min_order_amount=Decimal("100.00"), min_days=3, max_days=5),
                models.ShippingRate(zone_id=domestic.id, name="Express", type="flat", price=Decimal("15.00"),
                                    min_days=1, max_days=2),
                models.ShippingRate(zone_id=world.id, name="International", type="weight_based",
                                    price=Decimal("12.00"), min_days=7, max_days=14),
            ])

        with session_scope() as db:
            card = issue_gift_card(db, Decimal("50.00"), sender_name="Demo Store", message="Welcome!")
            logger.info(f"Demo gift card: {card.code}")
    except SQLAlchemyError as e:
        logger.error(f"Error seeding initial data: {e}")
        return False

    logger.info("Initial data seeded successfully")
    return True


def check_database_connection():
    """check if db connection is working."""
    logger.info("Testing database connection...")
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}")
        return False
    logger.info("Database connection successful")
    return True


def main():
    parser = argparse.ArgumentParser(description="Initialize storefront database")
    parser.add_argument(
        "--seed-data",
        action="store_true",
        help="Seed demo data (settings, products, shipping, coupon, gift card)"
    )
    parser.add_argument(
        "--reset-data",
        action="store_true",
        help="Delete all rows before seeding (DESTRUCTIVE)"
    )
    parser.add_argument(
        "--check-only",
        action="store_true",
        help="Only check database connection, don't run migrations"
    )

    args = parser.parse_args()

    logger.info("Starting database initialization...")

    if args.reset_data:
        logger.warning("Reset requested - this will DELETE all existing data!")
        confirm = input("Are you sure? Type 'yes' to continue: ")
        if confirm.lower() != 'yes':
            logger.info("Operation cancelled")
            return False

    # step 1: create db if needed
    if not args.check_only and not create_database_if_not_exists():
        logger.error("Failed to create database")
        return False

    # step 2: check db connection
    if not check_database_connection():
        logger.error("Database connection failed")
        return False

    if args.check_only:
        logger.info("Database check completed successfully")
        return True

    # step 3: run migrations
    if not run_migrations():
        logger.error("Migration failed")
        return False

    # step 4: optional reset and seed
    if args.reset_data and not delete_all_data():
        return False
    if args.seed_data and not seed_initial_data():
        logger.error("Data seeding failed")
        return False

    logger.info("Database initialization completed successfully!")
    return True


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
