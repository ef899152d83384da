from __future__ import annotations
from datetime import date, datetime
from typing import TYPE_CHECKING
from sqlalchemy import Integer, ForeignKey, Date, Boolean, DateTime, UniqueConstraint, true
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..db import Base

if TYPE_CHECKING:
    from .room import Room

class Booking(Base):
    """A room reserved for one night. Existence means booked; rows are never updated."""

    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint("room_id", "booking_date", name="uq_bookings_room_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    room_id: Mapped[int] = mapped_column(ForeignKey("rooms.id"), index=True)
    booking_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    is_booked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    room: Mapped[Room] = relationship(back_populates="bookings")
