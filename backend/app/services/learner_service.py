"""
Service métier pour les apprenants.
Le matricule et le QR code sont attribués à la création et ne changent plus.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.learner import Learner
from app.models.referential import Referential
from app.schemas.learner import LearnerCreate, LearnerResponse, LearnerUpdate
from app.services.qr_service import build_qr_payload, generate_matricule

logger = logging.getLogger(__name__)

MATRICULE_PREFIX = "APP"


def create_learner(db: Session, data: LearnerCreate) -> LearnerResponse:
    """
    Crée un apprenant avec son matricule et son QR code.
    Lève ValueError si le référentiel est introuvable ou le matricule déjà pris.
    """
    if data.referential_id and db.get(Referential, data.referential_id) is None:
        raise ValueError("Référentiel introuvable.")

    learner_id = uuid.uuid4()
    matricule = data.matricule or generate_matricule(MATRICULE_PREFIX)
    learner = Learner(
        id=learner_id,
        matricule=matricule,
        first_name=data.first_name,
        last_name=data.last_name,
        email=data.email,
        phone=data.phone,
        photo_url=data.photo_url,
        referential_id=data.referential_id,
        status="ACTIVE",
        qr_payload=build_qr_payload("LEARNER", learner_id, matricule),
    )
    db.add(learner)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValueError(f"Le matricule '{matricule}' existe déjà.")
    db.refresh(learner)
    logger.info("Apprenant créé : %s (%s %s)", matricule, data.first_name, data.last_name)
    return LearnerResponse.model_validate(learner)


def get_learners(
    db: Session,
    referential_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
) -> List[LearnerResponse]:
    """Retourne les apprenants triés par nom puis prénom."""
    stmt = select(Learner).order_by(Learner.last_name, Learner.first_name)
    if referential_id is not None:
        stmt = stmt.where(Learner.referential_id == referential_id)
    if status is not None:
        stmt = stmt.where(Learner.status == status)
    return [LearnerResponse.model_validate(learner) for learner in db.execute(stmt).scalars().all()]


def get_learner(db: Session, learner_id: uuid.UUID) -> Optional[Learner]:
    return db.get(Learner, learner_id)


def update_learner(db: Session, learner_id: uuid.UUID, data: LearnerUpdate) -> Optional[LearnerResponse]:
    """Met à jour les champs fournis. Les champs absents ne sont pas modifiés."""
    learner = db.get(Learner, learner_id)
    if learner is None:
        return None

    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("referential_id") and db.get(Referential, update_data["referential_id"]) is None:
        raise ValueError("Référentiel introuvable.")

    for field, value in update_data.items():
        setattr(learner, field, value)

    db.commit()
    db.refresh(learner)
    return LearnerResponse.model_validate(learner)


def deactivate_learner(db: Session, learner_id: uuid.UUID) -> bool:
    """
    Désactive un apprenant (statut INACTIVE). Ses présences sont conservées.
    Retourne False si l'apprenant est introuvable.
    """
    learner = db.get(Learner, learner_id)
    if learner is None:
        return False
    learner.status = "INACTIVE"
    db.commit()
    logger.info("Apprenant désactivé : %s", learner.matricule)
    return True
