"""
Schémas Pydantic pour les apprenants.
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, EmailStr, field_validator

from app.schemas.attendance import MATRICULE_REGEX

LearnerStatus = Literal["ACTIVE", "INACTIVE", "SUSPENDED"]


class LearnerCreate(BaseModel):
    """Schéma de création manuelle d'un apprenant (POST /learners)."""
    first_name: str
    last_name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    photo_url: Optional[str] = None
    referential_id: Optional[uuid.UUID] = None
    matricule: Optional[str] = None   # Généré si absent

    @field_validator("first_name", "last_name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le champ ne peut pas être vide.")
        return v.strip()

    @field_validator("matricule")
    @classmethod
    def matricule_format(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().upper()
        if not v:
            return None
        if len(v) > 50:
            raise ValueError("Matricule trop long (50 caractères maximum).")
        if not MATRICULE_REGEX.match(v):
            raise ValueError("Format matricule invalide : lettres, chiffres, - ou _ (3 caractères minimum).")
        return v


class LearnerUpdate(BaseModel):
    """Mise à jour partielle (PUT /learners/{id}). Le matricule et le QR code sont immuables."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    photo_url: Optional[str] = None
    referential_id: Optional[uuid.UUID] = None
    status: Optional[LearnerStatus] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Le champ ne peut pas être vide.")
        return v.strip() if v else v


class LearnerResponse(BaseModel):
    id: uuid.UUID
    matricule: str
    first_name: str
    last_name: str
    email: Optional[str]
    phone: Optional[str]
    photo_url: Optional[str]
    referential_id: Optional[uuid.UUID]
    status: str
    qr_payload: str
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}


class LearnerImportRow(BaseModel):
    """Représente une ligne valide du CSV après parsing."""
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    referentiel: Optional[str] = None
    matricule: Optional[str] = None


class ImportError(BaseModel):
    """Détail d'une ligne rejetée lors de l'import."""
    row: int
    content: str
    reason: str


class LearnerImportReport(BaseModel):
    """Rapport retourné après un import CSV."""
    total_rows: int
    inserted: int
    rejected: int
    duplicates_in_file: int
    duplicates_in_db: int
    errors: List[ImportError]
