"""
Service métier pour les référentiels (cohortes de formation).
"""

import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.referential import Referential
from app.schemas.referential import ReferentialCreate, ReferentialResponse, ReferentialUpdate


def create_referential(db: Session, data: ReferentialCreate) -> ReferentialResponse:
    """
    Crée un référentiel.
    Lève une ValueError si le nom existe déjà.
    """
    referential = Referential(**data.model_dump())
    db.add(referential)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValueError(f"Un référentiel avec le nom '{data.name}' existe déjà.")
    db.refresh(referential)
    return ReferentialResponse.model_validate(referential)


def get_referentials(db: Session) -> List[ReferentialResponse]:
    referentials = db.execute(select(Referential).order_by(Referential.name)).scalars().all()
    return [ReferentialResponse.model_validate(r) for r in referentials]


def get_referential(db: Session, referential_id: uuid.UUID) -> Optional[ReferentialResponse]:
    referential = db.get(Referential, referential_id)
    if referential is None:
        return None
    return ReferentialResponse.model_validate(referential)


def update_referential(
    db: Session, referential_id: uuid.UUID, data: ReferentialUpdate
) -> Optional[ReferentialResponse]:
    """Met à jour les champs fournis. late_cutoff=null rétablit l'heure limite globale."""
    referential = db.get(Referential, referential_id)
    if referential is None:
        return None

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(referential, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValueError("Un référentiel avec ce nom existe déjà.")
    db.refresh(referential)
    return ReferentialResponse.model_validate(referential)
