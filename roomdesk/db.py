from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from .config import settings

class Base(DeclarativeBase):
    pass

engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {},
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_database(bind=None):
    """Create any missing tables, then apply best-effort index adjustments."""
    # Import models so they register with Base.metadata
    from . import models  # noqa: F401

    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    ensure_schema(bind)


def ensure_schema(bind=None):
    """
    Lightweight, best-effort index adjustments for environments without Alembic.
    - Ensure lookup indexes exist for the dashboard's queries
    - Ensure one booking per room per date (unique index works like a constraint)
    Never fails app startup; best-effort only.
    """
    bind = bind or engine
    ddl = [
        "CREATE INDEX IF NOT EXISTS ix_rooms_property_category_name ON rooms(property_id, category, name);",
        "CREATE INDEX IF NOT EXISTS ix_bookings_booking_date ON bookings(booking_date);",
        "CREATE UNIQUE INDEX IF NOT EXISTS uq_bookings_room_date ON bookings(room_id, booking_date);",
    ]
    try:
        with bind.connect() as conn:
            for stmt in ddl:
                try:
                    conn.exec_driver_sql(stmt)
                except Exception:
                    # Pre-existing duplicates block the unique index; leave the table as is
                    pass
            conn.commit()
    except Exception:
        # Never fail app startup due to best-effort migration
        pass
