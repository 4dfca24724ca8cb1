"""
Service métier pour les coachs.
Le matricule et le QR code sont attribués à la création et ne changent plus.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.coach import Coach
from app.models.referential import Referential
from app.schemas.coach import CoachCreate, CoachResponse, CoachUpdate
from app.services.qr_service import build_qr_payload, generate_matricule

logger = logging.getLogger(__name__)

MATRICULE_PREFIX = "COA"


def create_coach(db: Session, data: CoachCreate) -> CoachResponse:
    """
    Crée un coach avec son matricule et son QR code.
    Lève ValueError si le référentiel est introuvable ou le matricule déjà pris.
    """
    if data.referential_id and db.get(Referential, data.referential_id) is None:
        raise ValueError("Référentiel introuvable.")

    coach_id = uuid.uuid4()
    matricule = data.matricule or generate_matricule(MATRICULE_PREFIX)
    coach = Coach(
        id=coach_id,
        matricule=matricule,
        first_name=data.first_name,
        last_name=data.last_name,
        email=data.email,
        phone=data.phone,
        photo_url=data.photo_url,
        referential_id=data.referential_id,
        status="ACTIVE",
        qr_payload=build_qr_payload("COACH", coach_id, matricule),
    )
    db.add(coach)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValueError(f"Le matricule '{matricule}' existe déjà.")
    db.refresh(coach)
    logger.info("Coach créé : %s (%s %s)", matricule, data.first_name, data.last_name)
    return CoachResponse.model_validate(coach)


def get_coaches(
    db: Session,
    referential_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
) -> List[CoachResponse]:
    """Retourne les coachs triés par nom puis prénom."""
    stmt = select(Coach).order_by(Coach.last_name, Coach.first_name)
    if referential_id is not None:
        stmt = stmt.where(Coach.referential_id == referential_id)
    if status is not None:
        stmt = stmt.where(Coach.status == status)
    return [CoachResponse.model_validate(coach) for coach in db.execute(stmt).scalars().all()]


def get_coach(db: Session, coach_id: uuid.UUID) -> Optional[Coach]:
    return db.get(Coach, coach_id)


def update_coach(db: Session, coach_id: uuid.UUID, data: CoachUpdate) -> Optional[CoachResponse]:
    """Met à jour les champs fournis. Les champs absents ne sont pas modifiés."""
    coach = db.get(Coach, coach_id)
    if coach is None:
        return None

    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("referential_id") and db.get(Referential, update_data["referential_id"]) is None:
        raise ValueError("Référentiel introuvable.")

    for field, value in update_data.items():
        setattr(coach, field, value)

    db.commit()
    db.refresh(coach)
    return CoachResponse.model_validate(coach)


def deactivate_coach(db: Session, coach_id: uuid.UUID) -> bool:
    """
    Désactive un coach (statut INACTIVE). Ses présences sont conservées.
    Retourne False si l'coach est introuvable.
    """
    coach = db.get(Coach, coach_id)
    if coach is None:
        return False
    coach.status = "INACTIVE"
    db.commit()
    logger.info("Coach désactivé : %s", coach.matricule)
    return True
