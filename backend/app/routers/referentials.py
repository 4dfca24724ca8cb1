"""
Router pour les référentiels (cohortes) et leur heure limite d'arrivée.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.referential import ReferentialCreate, ReferentialResponse, ReferentialUpdate
from app.security import require_roles
from app.services import referential_service

router = APIRouter(
    prefix="/api/v1/referentials",
    tags=["Référentiels"],
    dependencies=[Depends(require_roles("ADMIN"))],
)


@router.post("", response_model=ReferentialResponse, status_code=201, summary="Créer un référentiel")
def create_referential(data: ReferentialCreate, db: Session = Depends(get_db)):
    try:
        return referential_service.create_referential(db, data)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("", response_model=List[ReferentialResponse], summary="Lister les référentiels")
def list_referentials(db: Session = Depends(get_db)):
    return referential_service.get_referentials(db)


@router.get("/{referential_id}", response_model=ReferentialResponse, summary="Détail d'un référentiel")
def get_referential(referential_id: uuid.UUID, db: Session = Depends(get_db)):
    referential = referential_service.get_referential(db, referential_id)
    if referential is None:
        raise HTTPException(status_code=404, detail="Référentiel introuvable.")
    return referential


@router.put("/{referential_id}", response_model=ReferentialResponse, summary="Modifier un référentiel")
def update_referential(referential_id: uuid.UUID, data: ReferentialUpdate, db: Session = Depends(get_db)):
    """Met à jour un référentiel. `late_cutoff` (HH:MM) remplace l'heure limite globale pour ses membres."""
    try:
        result = referential_service.update_referential(db, referential_id, data)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if result is None:
        raise HTTPException(status_code=404, detail="Référentiel introuvable.")
    return result
