"""
Service de pointage par QR code (arrivée / départ).

Machine à états par personne et par jour :
    AUCUNE LIGNE ──scan──▶ ARRIVÉE ──scan──▶ DÉPART (terminal pour la journée)

- Premier scan du jour : création de la ligne avec check_in = maintenant et
  is_late = maintenant > heure limite (calculé une seule fois).
- Second scan : check_out = maintenant, uniquement si postérieur à l'arrivée.
- Scans suivants : aucun changement, signalé ALREADY_CHECKED_OUT.

Deux scans simultanés du même QR code ne peuvent pas créer deux lignes :
la contrainte d'unicité rejette la seconde création (PersistenceConflict),
on relit alors la ligne existante et on renvoie son état réel.
"""

import logging
from datetime import datetime, time, timedelta

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.exceptions import (
    IdentityInactive,
    IdentityNotFound,
    InvalidScanTime,
    PersistenceConflict,
    PersistenceUnavailable,
)
from app.models.attendance import AttendanceRecord
from app.repositories import attendance_repository as repo
from app.repositories.attendance_repository import Identity
from app.schemas.attendance import AttendanceRecordResponse, IdentitySummary, ScanResult
from app.services.qr_service import decode_qr_payload

logger = logging.getLogger(__name__)

MESSAGES = {
    "CHECKIN": "Arrivée enregistrée",
    "CHECKIN_LATE": "Arrivée enregistrée (en retard)",
    "CHECKOUT": "Départ enregistré",
    "ALREADY_CHECKED_IN": "Arrivée déjà enregistrée aujourd'hui",
    "ALREADY_CHECKED_OUT": "Départ déjà enregistré aujourd'hui",
}


def resolve_cutoff(identity: Identity, default_cutoff: time) -> time:
    """Heure limite applicable : celle du référentiel si définie, sinon la valeur globale."""
    return identity.late_cutoff or default_cutoff


def is_late(now: datetime, cutoff: time) -> bool:
    """En retard = strictement après l'heure limite du jour du scan."""
    return now > datetime.combine(now.date(), cutoff)


def record_scan(
    db: Session,
    qr_data: str,
    now: datetime,
    default_cutoff: time,
    checkout_min_delay: timedelta = timedelta(0),
) -> ScanResult:
    """
    Point d'entrée du scanner : résout le QR code puis applique la transition du jour.

    Lève InvalidPayload, IdentityNotFound, IdentityInactive, InvalidScanTime
    ou PersistenceUnavailable. Aucune de ces erreurs ne laisse de ligne partielle.
    """
    payload = decode_qr_payload(qr_data)

    try:
        identity = repo.find_identity_by_qr_payload(db, payload)
    except OperationalError as exc:
        db.rollback()
        raise PersistenceUnavailable() from exc

    if identity is None:
        logger.info("QR code sans correspondance : %s", payload.matricule or payload.id)
        raise IdentityNotFound()
    if identity.status != "ACTIVE":
        raise IdentityInactive()

    return toggle_attendance(db, identity, now, default_cutoff, checkout_min_delay)


def toggle_attendance(
    db: Session,
    identity: Identity,
    now: datetime,
    default_cutoff: time,
    checkout_min_delay: timedelta = timedelta(0),
) -> ScanResult:
    """Applique exactement une transition (ou aucune) pour (identity, jour de now)."""
    today = now.date()
    try:
        record = repo.find_attendance_record(db, identity.id, today)

        if record is None:
            late = is_late(now, resolve_cutoff(identity, default_cutoff))
            try:
                record = repo.create_attendance_record(db, identity, today, now, late)
            except PersistenceConflict:
                return _resolve_conflict(db, identity, now)

            logger.info(
                "Arrivée %s %s à %s%s",
                identity.owner_type, identity.matricule, now.strftime("%H:%M:%S"),
                " (retard)" if late else "",
            )
            key = "CHECKIN_LATE" if late else "CHECKIN"
            return _result("CHECKIN", identity, record, now, message=MESSAGES[key])

        return _advance(db, identity, record, now, checkout_min_delay)
    except OperationalError as exc:
        db.rollback()
        logger.error("Base indisponible pendant le scan de %s : %s", identity.matricule, exc)
        raise PersistenceUnavailable() from exc


def _advance(
    db: Session,
    identity: Identity,
    record: AttendanceRecord,
    now: datetime,
    checkout_min_delay: timedelta,
) -> ScanResult:
    """Transition depuis une ligne existante : départ, doublon ou déjà parti."""
    if record.check_out is not None:
        logger.debug("Scan ignoré, départ déjà enregistré : %s", identity.matricule)
        return _result("ALREADY_CHECKED_OUT", identity, record, now)

    if now <= record.check_in:
        logger.warning(
            "Scan de départ rejeté pour %s : %s <= arrivée %s",
            identity.matricule, now, record.check_in,
        )
        raise InvalidScanTime()

    if now - record.check_in < checkout_min_delay:
        logger.debug("Double scan d'arrivée ignoré : %s", identity.matricule)
        return _result("ALREADY_CHECKED_IN", identity, record, now)

    if not repo.update_attendance_record_check_out(db, record.id, now):
        # Un autre scan a enregistré le départ entre la lecture et l'écriture
        current = repo.find_attendance_record(db, identity.id, now.date())
        return _result("ALREADY_CHECKED_OUT", identity, current, now, conflict=True)

    db.refresh(record)
    logger.info("Départ %s %s à %s", identity.owner_type, identity.matricule, now.strftime("%H:%M:%S"))
    return _result("CHECKOUT", identity, record, now)


def _resolve_conflict(db: Session, identity: Identity, now: datetime) -> ScanResult:
    """Relit la ligne créée par le scan concurrent et renvoie son état réel."""
    record = repo.find_attendance_record(db, identity.id, now.date())
    if record is None:
        # La contrainte a rejeté l'insertion mais la ligne reste invisible : état incohérent
        raise PersistenceUnavailable()

    action = "ALREADY_CHECKED_OUT" if record.check_out is not None else "ALREADY_CHECKED_IN"
    logger.warning("Conflit résolu pour %s : état %s", identity.matricule, action)
    return _result(action, identity, record, now, conflict=True)


def _result(
    action: str,
    identity: Identity,
    record: AttendanceRecord,
    now: datetime,
    message: str = "",
    conflict: bool = False,
) -> ScanResult:
    return ScanResult(
        action=action,
        message=message or MESSAGES[action],
        conflict=conflict,
        scanned_at=now,
        owner=IdentitySummary.model_validate(identity),
        record=AttendanceRecordResponse.model_validate(record),
    )
