#!/usr/bin/env python3
"""
Seed the database with reference data, materials, batches, and usage.

Creates the schema, seeds permissions, bootstraps an administrator, and
records a handful of materials and procedures through the orchestrator so
every row has a data log entry.

Usage:
    python3 scripts/seed_data.py
    python3 scripts/seed_data.py --db-url sqlite:///demo.db --reset
"""

import argparse
import sys
from datetime import timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create tables and seed demo inventory data")
    p.add_argument(
        "--config",
        default=None,
        help="Settings YAML (default: SUPPLY_LEDGER_CONFIG or the shipped defaults)",
    )
    p.add_argument("--db-url", default=None, help="Database URL (overrides settings)")
    p.add_argument("--reset", action="store_true", help="Drop all tables first")
    p.add_argument("--admin-username", default="admin")
    p.add_argument("--admin-email", default="admin@example.com")
    return p.parse_args()


def main() -> int:
    args = _parse_args()

    from supply_config import get_active_settings
    from supply_config.bridges import build_orchestrator, engine_kwargs_from_settings
    from supply_kernel.db.engine import create_tables, drop_tables, init_engine_from_url, session_scope
    from supply_kernel.db.immutability import register_immutability_listeners
    from supply_kernel.domain.clock import SystemClock
    from supply_kernel.logging_config import configure_logging

    settings = get_active_settings(args.config)
    configure_logging(level=settings.logging.level)

    db_url = args.db_url or settings.database.url
    init_engine_from_url(db_url, **engine_kwargs_from_settings(settings))
    register_immutability_listeners()
    if args.reset:
        drop_tables()
    create_tables()

    with session_scope() as session:
        clock = SystemClock()
        ledger = build_orchestrator(session, settings, clock=clock)
        admin = ledger.bootstrap_admin(args.admin_username, args.admin_email)
        uid = admin.id

        brand = ledger.create_reference("brand", {"name": "Medtronic"}, uid)
        stent = ledger.create_reference("material_type", {"name": "Stent"}, uid)
        catheter = ledger.create_reference("material_type", {"name": "Catheter"}, uid)
        vendor = ledger.create_reference(
            "vendor", {"name": "Central Surgical Supply", "city": "Pune"}, uid
        )
        ledger.create_reference(
            "physician", {"name": "Dr. A. Rao", "specialization": "Cardiology"}, uid
        )

        now = clock.now()
        stent_material = ledger.create_material(
            {"name": "Drug-Eluting Stent", "size": "3.0 x 18 mm",
             "brand_id": brand.id, "material_type_id": stent.id},
            uid,
        )
        catheter_material = ledger.create_material(
            {"name": "Guiding Catheter", "size": "6F",
             "brand_id": brand.id, "material_type_id": catheter.id},
            uid,
        )
        stent_batch = ledger.create_batch(
            stent_material.id,
            {"initial_quantity": 10, "vendor_id": vendor.id, "purchase_type": "Purchased",
             "lot_number": "DES-2401", "expiration_date": now + timedelta(days=365)},
            uid,
        )
        catheter_batch = ledger.create_batch(
            catheter_material.id,
            {"initial_quantity": 4, "vendor_id": vendor.id, "purchase_type": "Advance",
             "lot_number": "GC-0193", "expiration_date": now + timedelta(days=20)},
            uid,
        )

        procedure = {
            "patient_name": "Demo Patient",
            "patient_id": "P-0001",
            "procedure_name": "PCI",
            "procedure_date": now,
            "physician": "Dr. A. Rao",
        }
        ledger.record_usage(stent_batch.id, 1, procedure, uid)
        ledger.record_usage(catheter_batch.id, 1, procedure, uid)

        dashboard = ledger.get_dashboard()

    print()
    print(f"  Seeded {db_url}")
    print(f"  Administrator: {args.admin_username} ({uid})")
    stats = dashboard.summary_stats
    print(f"  Materials: {stats.total_materials}  Active batches: {stats.active_batches}")
    print(f"  Low stock: {stats.low_stock_count}  Expiring soon: {stats.expiring_soon_count}")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
