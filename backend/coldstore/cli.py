"""Management CLI for cold storages.

Usage:
    python -m coldstore.cli init-db            # Run Alembic upgrade head
    python -m coldstore.cli create-store NAME  # Add a cold storage with its counters
    python -m coldstore.cli list-stores        # Show all cold storages
"""

import subprocess
import sys

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from coldstore.config import settings
from coldstore.models.cold_storage import ColdStorage, GatePassCounter
from coldstore.utils.numbering import PASS_TYPES


def init_db():
    """Run Alembic upgrade head against DATABASE_URL_SYNC."""
    result = subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        capture_output=True, text=True,
    )
    if result.returncode != 0:
        print(f"  FAILED: {result.stderr}")
        sys.exit(1)
    print("  OK")


def create_store(name: str):
    engine = create_engine(settings.database_url_sync)
    with Session(engine) as session:
        store = ColdStorage(name=name, is_active=True)
        session.add(store)
        session.flush()
        for pass_type in PASS_TYPES:
            session.add(GatePassCounter(
                cold_storage_id=store.id, pass_type=pass_type, last_number=0,
            ))
        session.commit()
        print(f"  Created {store.name}: {store.id}")


def list_stores():
    engine = create_engine(settings.database_url_sync)
    with Session(engine) as session:
        stores = session.execute(select(ColdStorage).order_by(ColdStorage.name)).scalars().all()
        for store in stores:
            flag = "" if store.is_active else " (inactive)"
            print(f"  {store.id}  {store.name}{flag}")
        print(f"\n{len(stores)} cold storage(s)")


def main():
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "init-db":
        init_db()
    elif cmd == "create-store" and len(sys.argv) > 2:
        create_store(" ".join(sys.argv[2:]))
    elif cmd == "list-stores":
        list_stores()
    else:
        print("Usage: python -m coldstore.cli [init-db|create-store NAME|list-stores]")


if __name__ == "__main__":
    main()
