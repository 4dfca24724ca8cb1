"""
Modèle SQLAlchemy pour les présences journalières (arrivée / départ).

Une seule ligne par (propriétaire, jour) : la contrainte uq_attendance_owner_date
est le seul arbitre entre deux scans simultanés du même QR code.
owner_id référence un apprenant ou un coach selon owner_type (pas de FK polymorphe).
"""

import uuid
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    String,
    UniqueConstraint,
    Uuid,
    func,
)

from app.database import Base


class AttendanceRecord(Base):
    """Présence d'un apprenant ou d'un coach pour une journée."""
    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint("owner_id", "date", name="uq_attendance_owner_date"),
        CheckConstraint("check_out IS NULL OR check_out > check_in", name="ck_attendance_checkout_after_checkin"),
        Index("ix_attendance_date_owner_type", "date", "owner_type"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_type = Column(String(10), nullable=False)   # LEARNER, COACH
    owner_id = Column(Uuid, nullable=False)
    date = Column(Date, nullable=False)

    check_in = Column(DateTime, nullable=False)       # Premier scan du jour
    is_late = Column(Boolean, nullable=False, default=False)  # Calculé une seule fois à l'arrivée
    check_out = Column(DateTime, nullable=True)       # Second scan du jour

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
