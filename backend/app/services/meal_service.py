"""
Service des passages au restaurant (petit-déjeuner, déjeuner).

Un seul passage par apprenant, par jour et par repas : la contrainte
uq_meal_scan_learner_date_type arbitre les scans simultanés, comme pour
le pointage d'arrivée.
"""

import logging
import uuid
from datetime import date, datetime
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from app.exceptions import IdentityInactive, IdentityNotFound, PersistenceUnavailable
from app.models.learner import Learner
from app.models.meal_scan import MealScan
from app.repositories import attendance_repository as repo
from app.schemas.attendance import IdentitySummary
from app.schemas.meal import MealDayReport, MealScanResponse, MealScanResult
from app.services.qr_service import decode_qr_payload

logger = logging.getLogger(__name__)

MEAL_LABELS = {"BREAKFAST": "Petit-déjeuner", "LUNCH": "Déjeuner"}


def scan_meal(db: Session, qr_data: str, meal_type: str, now: datetime) -> MealScanResult:
    """
    Enregistre le passage d'un apprenant pour un repas.
    Un second passage le même jour renvoie already_scanned=True avec le passage existant.
    """
    payload = decode_qr_payload(qr_data)
    if payload.type == "COACH":
        raise IdentityNotFound("QR code invalide : apprenant introuvable.")

    try:
        identity = repo.find_identity_by_qr_payload(db, payload.model_copy(update={"type": "LEARNER"}))
        if identity is None:
            raise IdentityNotFound("QR code invalide : apprenant introuvable.")
        if identity.status != "ACTIVE":
            raise IdentityInactive()

        today = now.date()
        existing = _find_scan(db, identity.id, today, meal_type)
        already_scanned = existing is not None

        if existing is None:
            scan = MealScan(learner_id=identity.id, date=today, meal_type=meal_type, scanned_at=now)
            db.add(scan)
            try:
                db.commit()
                db.refresh(scan)
                existing = scan
            except IntegrityError:
                db.rollback()
                already_scanned = True
                existing = _find_scan(db, identity.id, today, meal_type)
                logger.warning("Passage concurrent rejeté : %s %s", identity.matricule, meal_type)
    except OperationalError as exc:
        db.rollback()
        raise PersistenceUnavailable() from exc

    label = MEAL_LABELS[meal_type]
    if already_scanned:
        message = f"{label} déjà servi aujourd'hui"
    else:
        message = f"{label} enregistré"
        logger.info("Repas %s servi à %s", meal_type, identity.matricule)

    return MealScanResult(
        already_scanned=already_scanned,
        message=message,
        learner=IdentitySummary.model_validate(identity),
        scan=MealScanResponse.model_validate(existing),
    )


def get_day_report(db: Session, day: date) -> MealDayReport:
    """Passages du jour avec les compteurs par repas."""
    scans = db.execute(
        select(MealScan).where(MealScan.date == day).order_by(MealScan.scanned_at.desc())
    ).scalars().all()

    return MealDayReport(
        date=day,
        breakfast_count=sum(1 for s in scans if s.meal_type == "BREAKFAST"),
        lunch_count=sum(1 for s in scans if s.meal_type == "LUNCH"),
        scans=[MealScanResponse.model_validate(s) for s in scans],
    )


def get_learner_scans(db: Session, learner_id: uuid.UUID) -> List[MealScanResponse]:
    """Historique des repas d'un apprenant. Lève ValueError si l'apprenant est introuvable."""
    if db.get(Learner, learner_id) is None:
        raise ValueError("Apprenant introuvable.")
    scans = db.execute(
        select(MealScan)
        .where(MealScan.learner_id == learner_id)
        .order_by(MealScan.date.desc(), MealScan.meal_type)
    ).scalars().all()
    return [MealScanResponse.model_validate(s) for s in scans]


def _find_scan(db: Session, learner_id: uuid.UUID, day: date, meal_type: str):
    return db.execute(
        select(MealScan).where(
            MealScan.learner_id == learner_id,
            MealScan.date == day,
            MealScan.meal_type == meal_type,
        )
    ).scalar()
