#!/usr/bin/env python3
"""
Seed script: loads the bundled sample jurisdictions and their rule versions.
Run after migrations: python scripts/seed.py
"""

import asyncio
import json
import os
import sys
from datetime import datetime, timezone
from uuid import uuid4

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dealtax.config import settings
from dealtax.database import get_engine_url_and_connect_args
from dealtax.storage.memory import load_jurisdiction_records, parse_timestamp, rules_from_record
from dealtax.utils.canonical import bundle_hash


async def seed():
    url, connect_args = get_engine_url_and_connect_args(settings.database_url)
    engine = create_async_engine(url, connect_args=connect_args)
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    now = datetime.now(timezone.utc)
    records = load_jurisdiction_records()

    async with async_session() as session:
        for record in records:
            result = await session.execute(
                text("SELECT jurisdiction_id FROM tax_jurisdictions WHERE postal_code = :pc"),
                {"pc": record["postal_code"]},
            )
            row = result.fetchone()
            if row:
                jurisdiction_id = str(row[0])
                print(f"Jurisdiction {record['postal_code']} already exists.")
            else:
                jurisdiction_id = record.get("jurisdiction_id") or str(uuid4())
                await session.execute(
                    text("""
                        INSERT INTO tax_jurisdictions
                        (jurisdiction_id, postal_code, state, county, city, special_district, created_at)
                        VALUES (:jid, :pc, :state, :county, :city, :district, :now)
                    """),
                    {
                        "jid": jurisdiction_id,
                        "pc": record["postal_code"],
                        "state": record["state"],
                        "county": record.get("county"),
                        "city": record.get("city"),
                        "district": record.get("special_district"),
                        "now": now,
                    },
                )

            for version in record.get("rule_versions", []):
                # Parse before inserting so a malformed bundle never reaches the table
                rules_from_record(version)
                result = await session.execute(
                    text("""
                        SELECT version_id FROM jurisdiction_rule_versions
                        WHERE jurisdiction_id = :jid AND version = :version
                    """),
                    {"jid": jurisdiction_id, "version": version["version"]},
                )
                if result.fetchone():
                    print(f"  Version {version['version']} already published.")
                    continue
                await session.execute(
                    text("""
                        INSERT INTO jurisdiction_rule_versions
                        (version_id, jurisdiction_id, version, effective_from, effective_to,
                         bundle_hash, bundle_json, published_at, change_summary)
                        VALUES (:vid, :jid, :version, :eff_from, :eff_to,
                                :bh, CAST(:bundle AS jsonb), :now, :summary)
                    """),
                    {
                        "vid": str(uuid4()),
                        "jid": jurisdiction_id,
                        "version": version["version"],
                        "eff_from": parse_timestamp(version["effective_from"]),
                        "eff_to": parse_timestamp(version.get("effective_to")),
                        "bh": bundle_hash(version["bundle"]),
                        "bundle": json.dumps(version["bundle"]),
                        "now": now,
                        "summary": version.get("change_summary"),
                    },
                )
                print(f"  Published {record['postal_code']} v{version['version']}")
        await session.commit()

    await engine.dispose()
    print("Seed complete!")
    print("Example: curl -X POST http://localhost:8000/v1/tax/calculate-sales-tax \\")
    print('  -H "Content-Type: application/json" \\')
    print('  -d \'{"postal_code":"90001","vehicle_price":"35000.00","trade_in_value":"10000.00"}\'')


if __name__ == "__main__":
    asyncio.run(seed())
