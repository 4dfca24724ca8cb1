"""
Schémas Pydantic pour les passages au restaurant.
"""

import uuid
from datetime import date, datetime
from typing import List, Literal

from pydantic import BaseModel

from app.schemas.attendance import IdentitySummary, ScanRequest

MealType = Literal["BREAKFAST", "LUNCH"]


class MealScanRequest(ScanRequest):
    meal_type: MealType


class MealScanResponse(BaseModel):
    id: uuid.UUID
    learner_id: uuid.UUID
    date: date
    meal_type: MealType
    scanned_at: datetime

    model_config = {"from_attributes": True}


class MealScanResult(BaseModel):
    already_scanned: bool
    message: str
    learner: IdentitySummary
    scan: MealScanResponse


class MealDayReport(BaseModel):
    date: date
    breakfast_count: int
    lunch_count: int
    scans: List[MealScanResponse]
