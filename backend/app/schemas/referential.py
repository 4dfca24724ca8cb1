"""
Schémas Pydantic pour les référentiels.
"""

import uuid
from datetime import datetime, time
from typing import Optional

from pydantic import BaseModel, field_validator


class ReferentialCreate(BaseModel):
    name: str
    code: Optional[str] = None
    description: Optional[str] = None
    late_cutoff: Optional[time] = None   # "HH:MM" : NULL = heure limite globale

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le nom du référentiel ne peut pas être vide.")
        return v.strip()


class ReferentialUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    late_cutoff: Optional[time] = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Le nom du référentiel ne peut pas être vide.")
        return v.strip() if v else v


class ReferentialResponse(BaseModel):
    id: uuid.UUID
    name: str
    code: Optional[str]
    description: Optional[str]
    late_cutoff: Optional[time]
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}
