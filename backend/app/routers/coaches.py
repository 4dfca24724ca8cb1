"""
Router pour les coachs.
Listage, création, mise à jour, désactivation et QR code d'identité.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.coach import CoachCreate, CoachResponse, CoachStatus, CoachUpdate
from app.security import require_roles
from app.services import coach_service
from app.services.qr_service import generate_qr_image

router = APIRouter(
    prefix="/api/v1/coaches",
    tags=["Coachs"],
    dependencies=[Depends(require_roles("ADMIN"))],
)


@router.get("", response_model=List[CoachResponse], summary="Lister les coachs")
def list_coaches(
    referential_id: Optional[uuid.UUID] = None,
    status: Optional[CoachStatus] = None,
    db: Session = Depends(get_db),
):
    return coach_service.get_coaches(db, referential_id, status)


@router.post("", response_model=CoachResponse, status_code=201, summary="Créer un coach")
def create_coach(data: CoachCreate, db: Session = Depends(get_db)):
    try:
        return coach_service.create_coach(db, data)
    except ValueError as e:
        msg = str(e)
        if "introuvable" in msg:
            raise HTTPException(status_code=404, detail=msg)
        raise HTTPException(status_code=409, detail=msg)


@router.get("/{coach_id}", response_model=CoachResponse, summary="Détail d'un coach")
def get_coach(coach_id: uuid.UUID, db: Session = Depends(get_db)):
    coach = coach_service.get_coach(db, coach_id)
    if coach is None:
        raise HTTPException(status_code=404, detail="Coach introuvable.")
    return coach


@router.put("/{coach_id}", response_model=CoachResponse, summary="Modifier un coach")
def update_coach(coach_id: uuid.UUID, data: CoachUpdate, db: Session = Depends(get_db)):
    try:
        coach = coach_service.update_coach(db, coach_id, data)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if coach is None:
        raise HTTPException(status_code=404, detail="Coach introuvable.")
    return coach


@router.delete("/{coach_id}", status_code=204, summary="Désactiver un coach")
def deactivate_coach(coach_id: uuid.UUID, db: Session = Depends(get_db)):
    """Passe le coach en statut INACTIVE. Son historique de présence est conservé."""
    if not coach_service.deactivate_coach(db, coach_id):
        raise HTTPException(status_code=404, detail="Coach introuvable.")


@router.get("/{coach_id}/qr-code", summary="QR code d'identité (PNG)")
def coach_qr_code(coach_id: uuid.UUID, db: Session = Depends(get_db)):
    coach = coach_service.get_coach(db, coach_id)
    if coach is None:
        raise HTTPException(status_code=404, detail="Coach introuvable.")
    return Response(
        content=generate_qr_image(coach.qr_payload),
        media_type="image/png",
        headers={"Content-Disposition": f"inline; filename=qr_{coach.matricule}.png"},
    )
