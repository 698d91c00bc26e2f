#!/usr/bin/env python3
"""Seed script – populates the database with packs and dummy callers.

Run after migrations:
    python -m scripts.seed
"""

from __future__ import annotations

import random

from faker import Faker
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from mcp_router.config import settings
from mcp_router.models import Base, Caller, Pack

fake = Faker()
Faker.seed(42)
random.seed(42)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# name -> (active, allowed_roles, description)
PACKS: dict[str, tuple[bool, list[str], str]] = {
    "productivity": (True, [], "Bulk operations, chaining and scheduling"),
    "quality": (True, [], "Compare, rate, improve and validate content"),
    "collaboration": (False, [], "Comments, assignments, notifications and sharing"),
    "analytics": (True, ["administrator", "mcp_premium"], "Advanced stats and exports"),
    "integration": (False, ["administrator"], "Webhooks, import/export and sync"),
}

ROLE_MIX = [
    ["subscriber"],
    ["subscriber"],
    ["author"],
    ["editor"],
    ["mcp_premium"],
    ["administrator"],
]


def seed_packs(session: Session) -> int:
    for name, (active, roles, description) in PACKS.items():
        session.add(Pack(name=name, active=active, allowed_roles=roles, description=description))
    session.flush()
    return len(PACKS)


def seed_callers(session: Session, count: int = 20) -> int:
    for caller_id in range(1, count + 1):
        session.add(
            Caller(
                id=caller_id,
                display_name=fake.name(),
                email=fake.unique.email(),
                roles=random.choice(ROLE_MIX),
                # A few callers get a hand-tuned limit
                rate_limit=random.choice([None, None, None, None, 120, 30]),
            )
        )
    session.flush()
    return count


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main() -> None:
    print("🌱  Seeding database …")
    engine = create_engine(settings.database_url_sync, echo=False)

    # Create all tables (fallback if migrations haven't run)
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        # Wipe existing data
        session.execute(Caller.__table__.delete())
        session.execute(Pack.__table__.delete())
        session.commit()

        n_packs = seed_packs(session)
        print(f"  ✅ {n_packs} packs")

        n_callers = seed_callers(session)
        print(f"  ✅ {n_callers} callers")

        session.commit()

    print("🎉  Seeding complete!")


if __name__ == "__main__":
    main()
