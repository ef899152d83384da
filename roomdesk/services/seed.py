import logging
from sqlalchemy.orm import Session
from ..models import Property, Room

logger = logging.getLogger(__name__)

DEMO_ROOMS = {
    "Suite": ["Garden Suite", "Lake Suite"],
    "Deluxe": ["Deluxe 1", "Deluxe 2", "Deluxe 3"],
    "Standard": ["Room 101", "Room 102", "Room 103", "Room 104"],
}


def seed_demo_data(db: Session) -> int:
    """
    Create one demo property with rooms in a few categories.
    Does nothing if any property exists. Returns the number of rooms created.
    """
    if db.query(Property).first():
        return 0
    prop = Property(name="White Grove Retreat", address="1 Grove Lane")
    db.add(prop)
    db.flush()
    created = 0
    for category, names in DEMO_ROOMS.items():
        for name in names:
            db.add(Room(property_id=prop.id, name=name, category=category))
            created += 1
    db.commit()
    logger.info("Seeded demo property %r with %d rooms", prop.name, created)
    return created
