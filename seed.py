"""
Seed script -- populates the database and driver index with sample data.

Run after migrations:
    python seed.py

Creates:
  - 2 tenants (Helsinki operators) with pricing documents
  - 4 riders and 8 drivers per tenant
  - one active vehicle per driver
  - driver positions in the Redis GEO index around Helsinki centre
"""

import asyncio

from sqlalchemy import text

from src.config import settings
from src.domain.entities import Location, VehicleDescriptor
from src.domain.enums import VehicleType
from src.infrastructure.database import build_engine, build_session_factory
from src.infrastructure.driver_index import RedisDriverIndex
from src.infrastructure.models import TenantModel, UserModel, VehicleModel
from src.infrastructure.redis_client import build_redis

# Helsinki railway station (approx)
CENTRE_LAT, CENTRE_LNG = 60.1719, 24.9414


TENANTS = [
    {
        "slug": "helsinki-taxi",
        "name": "Helsinki Taxi Oy",
        "pricing": {
            "base_fare": 5.90,
            "per_km_rate": 1.60,
            "per_minute_rate": 0.80,
            "minimum_fare": 8.00,
            "booking_fee": 1.00,
            "surge_enabled": True,
            "vat_rate": 0.135,
        },
    },
    {
        "slug": "espoo-cabs",
        "name": "Espoo Cabs",
        "pricing": {
            "base_fare": 4.50,
            "per_km_rate": 1.45,
            "per_minute_rate": 0.75,
            "minimum_fare": 7.50,
            "booking_fee": 0.50,
        },
    },
]

RIDERS = ["Aino Virtanen", "Eero Korhonen", "Helmi Nieminen", "Onni Mäkinen"]

DRIVERS = [
    # (name, vehicle type, make, model, offset lat, offset lng)
    ("Juha Laine", VehicleType.STANDARD, "Toyota", "Corolla", 0.0020, 0.0030),
    ("Mikko Heikkinen", VehicleType.STANDARD, "Skoda", "Octavia", -0.0040, 0.0010),
    ("Sanna Koskinen", VehicleType.COMFORT, "Mercedes", "E-Class", 0.0060, -0.0050),
    ("Timo Järvinen", VehicleType.XL, "Volkswagen", "Caravelle", -0.0080, 0.0070),
    ("Laura Lehtonen", VehicleType.ELECTRIC, "Tesla", "Model 3", 0.0100, 0.0020),
    ("Pekka Saarinen", VehicleType.ACCESSIBLE, "Ford", "Transit", -0.0015, -0.0090),
    ("Riikka Salminen", VehicleType.COMFORT, "BMW", "520d", 0.0150, 0.0110),
    ("Antti Heinonen", VehicleType.STANDARD, "Kia", "Niro", -0.0200, -0.0060),
]


async def seed():
    engine = build_engine(settings.database_url)
    session_factory = build_session_factory(engine)
    redis = build_redis(settings.redis_url)
    index = RedisDriverIndex(
        redis, settings.redis_key_prefix, settings.driver_meta_ttl_seconds
    )
    positions = []

    try:
        async with session_factory() as session:
            # Check if already seeded
            result = await session.execute(text("SELECT count(*) FROM tenants"))
            if result.scalar() > 0:
                print("Database already seeded. Skipping.")
                return

            for t_index, t in enumerate(TENANTS, start=1):
                # ── Tenant ────────────────────────────────────────────
                tenant = TenantModel(
                    slug=t["slug"],
                    name=t["name"],
                    default_currency="EUR",
                    pricing_config=t["pricing"],
                )
                session.add(tenant)
                await session.flush()

                # ── Riders ────────────────────────────────────────────
                for name in RIDERS:
                    email = name.lower().replace(" ", ".") + f"@{t['slug']}.fi"
                    session.add(
                        UserModel(tenant_id=tenant.id, name=name, email=email)
                    )

                # ── Drivers + vehicles ────────────────────────────────
                for d_index, (name, vtype, make, model, dlat, dlng) in enumerate(
                    DRIVERS, start=1
                ):
                    driver = UserModel(
                        tenant_id=tenant.id,
                        name=name,
                        email=name.lower().replace(" ", ".") + f"@{t['slug']}.fi",
                        user_type="driver",
                        average_rating=4.6 + (d_index % 4) / 10,
                    )
                    session.add(driver)
                    await session.flush()

                    plate = f"{'ABC'[t_index - 1]}{'XYZ'[d_index % 3]}-{100 + d_index}"
                    session.add(
                        VehicleModel(
                            tenant_id=tenant.id,
                            driver_id=driver.id,
                            make=make,
                            model=model,
                            color="white",
                            registration_number=plate,
                            vehicle_type=vtype,
                            taximeter_serial_number=f"TXM-{tenant.id}-{driver.id:04d}",
                        )
                    )
                    positions.append(
                        (
                            tenant.id,
                            driver.id,
                            Location(CENTRE_LAT + dlat, CENTRE_LNG + dlng),
                            VehicleDescriptor(
                                vehicle_type=vtype.value,
                                make=make,
                                model=model,
                                color="white",
                                registration_number=plate,
                            ),
                            driver.average_rating,
                        )
                    )
                print(f"  Created tenant {t['slug']} with {len(DRIVERS)} drivers")

            await session.commit()

        # ── Driver index ──────────────────────────────────────────────
        for tenant_id, driver_id, location, vehicle, rating in positions:
            await index.update_location(tenant_id, driver_id, location, vehicle, rating)
        print(f"  Indexed {len(positions)} driver positions")
        print("\nSeed complete!")
    finally:
        await redis.aclose()
        await engine.dispose()


async def main():
    print("Seeding database...")
    await seed()


if __name__ == "__main__":
    asyncio.run(main())
