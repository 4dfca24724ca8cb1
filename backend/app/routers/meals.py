"""
Router pour les passages au restaurant (scan du QR code apprenant).
"""

import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.clock import Clock, get_clock
from app.database import get_db
from app.exceptions import IdentityInactive, IdentityNotFound, InvalidPayload, PersistenceUnavailable
from app.schemas.meal import MealDayReport, MealScanRequest, MealScanResponse, MealScanResult
from app.security import CurrentUser, require_roles
from app.services import meal_service

router = APIRouter(prefix="/api/v1/meals", tags=["Restauration"])

MEAL_ROLES = ("ADMIN", "RESTAURATEUR")


@router.post("/scan", response_model=MealScanResult, summary="Scanner un apprenant pour un repas")
def scan_meal(
    data: MealScanRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    user: CurrentUser = Depends(require_roles(*MEAL_ROLES)),
):
    """
    Enregistre le passage d'un apprenant (petit-déjeuner ou déjeuner).
    Un second passage le même jour pour le même repas est signalé (already_scanned) sans doublon.
    """
    try:
        return meal_service.scan_meal(db, data.qr_data, data.meal_type, clock())
    except InvalidPayload as e:
        raise HTTPException(status_code=400, detail=e.message)
    except IdentityNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except IdentityInactive as e:
        raise HTTPException(status_code=403, detail=e.message)
    except PersistenceUnavailable as e:
        raise HTTPException(status_code=503, detail=e.message)


@router.get("/today", response_model=MealDayReport, summary="Passages du jour")
def today_meals(
    day: Optional[date] = None,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    user: CurrentUser = Depends(require_roles(*MEAL_ROLES)),
):
    return meal_service.get_day_report(db, day or clock().date())


@router.get("/learners/{learner_id}", response_model=List[MealScanResponse],
            summary="Historique des repas d'un apprenant")
def learner_meals(
    learner_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_roles(*MEAL_ROLES)),
):
    try:
        return meal_service.get_learner_scans(db, learner_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
