"""
Accès aux données du pointage.

Seul point d'écriture sur attendance_records. L'unicité (owner_id, date) est
garantie par la contrainte uq_attendance_owner_date : une création concurrente
est rejetée à l'écriture et signalée par PersistenceConflict.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import PersistenceConflict
from app.models.attendance import AttendanceRecord
from app.models.coach import Coach
from app.models.learner import Learner
from app.models.referential import Referential
from app.schemas.attendance import QrPayload

logger = logging.getLogger(__name__)

IDENTITY_MODELS = {"LEARNER": Learner, "COACH": Coach}


@dataclass(frozen=True)
class Identity:
    """Apprenant ou coach vu par le pointage (lecture seule)."""
    owner_type: str
    id: uuid.UUID
    matricule: str
    first_name: str
    last_name: str
    status: str
    photo_url: Optional[str] = None
    referential_id: Optional[uuid.UUID] = None
    late_cutoff: Optional[time] = None   # Heure limite du référentiel, si définie


def identity_model(owner_type: str):
    try:
        return IDENTITY_MODELS[owner_type]
    except KeyError:
        raise ValueError(f"Type de personne inconnu : {owner_type}")


def _to_identity(owner_type: str, row, late_cutoff: Optional[time] = None) -> Identity:
    return Identity(
        owner_type=owner_type,
        id=row.id,
        matricule=row.matricule,
        first_name=row.first_name,
        last_name=row.last_name,
        status=row.status,
        photo_url=row.photo_url,
        referential_id=row.referential_id,
        late_cutoff=late_cutoff,
    )


def find_identity_by_qr_payload(db: Session, payload: QrPayload) -> Optional[Identity]:
    """
    Résout le contenu d'un QR code vers un apprenant ou un coach.
    Si l'id et le matricule sont tous deux présents, les deux doivent correspondre.
    """
    owner_types = [payload.type] if payload.type else ["LEARNER", "COACH"]

    for owner_type in owner_types:
        model = IDENTITY_MODELS[owner_type]
        stmt = (
            select(model, Referential.late_cutoff)
            .outerjoin(Referential, Referential.id == model.referential_id)
        )
        if payload.id is not None:
            stmt = stmt.where(model.id == payload.id)
        if payload.matricule is not None:
            stmt = stmt.where(model.matricule == payload.matricule)

        row = db.execute(stmt).first()
        if row is not None:
            return _to_identity(owner_type, row[0], row[1])

    return None


def find_attendance_record(db: Session, owner_id: uuid.UUID, day: date) -> Optional[AttendanceRecord]:
    return db.execute(
        select(AttendanceRecord).where(
            AttendanceRecord.owner_id == owner_id,
            AttendanceRecord.date == day,
        )
    ).scalar()


def create_attendance_record(
    db: Session,
    identity: Identity,
    day: date,
    check_in: datetime,
    is_late: bool,
) -> AttendanceRecord:
    """
    Insère l'arrivée du jour en une seule transaction (check_in + is_late ensemble).
    Lève PersistenceConflict si un autre scan a déjà créé la ligne.
    """
    record = AttendanceRecord(
        owner_type=identity.owner_type,
        owner_id=identity.id,
        date=day,
        check_in=check_in,
        is_late=is_late,
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Création concurrente rejetée pour %s le %s", identity.id, day)
        raise PersistenceConflict() from exc
    db.refresh(record)
    return record


def update_attendance_record_check_out(db: Session, record_id: uuid.UUID, check_out: datetime) -> bool:
    """
    Enregistre le départ de manière conditionnelle : seulement si aucun départ
    n'est encore présent et que check_out est postérieur à l'arrivée.
    Retourne False si la ligne n'a pas été modifiée (départ concurrent déjà enregistré).
    """
    result = db.execute(
        update(AttendanceRecord)
        .where(
            AttendanceRecord.id == record_id,
            AttendanceRecord.check_out.is_(None),
            AttendanceRecord.check_in < check_out,
        )
        .values(check_out=check_out)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def list_attendance_records(
    db: Session,
    start: date,
    end: date,
    owner_type: str,
    referential_id: Optional[uuid.UUID] = None,
) -> List[Tuple[AttendanceRecord, Identity]]:
    """Présences de la période (bornes incluses), avec la personne associée."""
    model = identity_model(owner_type)
    stmt = (
        select(AttendanceRecord, model)
        .join(model, model.id == AttendanceRecord.owner_id)
        .where(
            AttendanceRecord.owner_type == owner_type,
            AttendanceRecord.date >= start,
            AttendanceRecord.date <= end,
        )
        .order_by(AttendanceRecord.date, AttendanceRecord.check_in)
    )
    if referential_id is not None:
        stmt = stmt.where(model.referential_id == referential_id)

    return [(record, _to_identity(owner_type, owner)) for record, owner in db.execute(stmt).all()]


def list_expected_identities(
    db: Session,
    owner_type: str,
    referential_id: Optional[uuid.UUID] = None,
) -> List[Identity]:
    """Personnes actives attendues (base du calcul des absents)."""
    model = identity_model(owner_type)
    stmt = (
        select(model)
        .where(model.status == "ACTIVE")
        .order_by(model.last_name, model.first_name)
    )
    if referential_id is not None:
        stmt = stmt.where(model.referential_id == referential_id)

    return [_to_identity(owner_type, row) for row in db.execute(stmt).scalars().all()]


def list_latest_records(db: Session, owner_type: str, limit: int) -> List[Tuple[AttendanceRecord, Identity]]:
    """Dernières présences modifiées, le scan le plus récent en premier."""
    model = identity_model(owner_type)
    last_scan = func.coalesce(AttendanceRecord.check_out, AttendanceRecord.check_in)
    rows = db.execute(
        select(AttendanceRecord, model)
        .join(model, model.id == AttendanceRecord.owner_id)
        .where(AttendanceRecord.owner_type == owner_type)
        .order_by(last_scan.desc())
        .limit(limit)
    ).all()
    return [(record, _to_identity(owner_type, owner)) for record, owner in rows]


def list_owner_records(
    db: Session,
    owner_id: uuid.UUID,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[AttendanceRecord]:
    stmt = select(AttendanceRecord).where(AttendanceRecord.owner_id == owner_id)
    if start is not None:
        stmt = stmt.where(AttendanceRecord.date >= start)
    if end is not None:
        stmt = stmt.where(AttendanceRecord.date <= end)
    return db.execute(stmt.order_by(AttendanceRecord.date.desc())).scalars().all()


def find_identity_by_id(db: Session, owner_id: uuid.UUID) -> Optional[Identity]:
    for owner_type, model in IDENTITY_MODELS.items():
        row = db.get(model, owner_id)
        if row is not None:
            return _to_identity(owner_type, row)
    return None
