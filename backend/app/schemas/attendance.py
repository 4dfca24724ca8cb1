"""
Schémas Pydantic pour le pointage par QR code et les rapports de présence.
Endpoint principal : POST /api/v1/attendance/scan
"""

import re
import uuid
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, field_validator, model_validator

OwnerType = Literal["LEARNER", "COACH"]
ScanAction = Literal["CHECKIN", "CHECKOUT", "ALREADY_CHECKED_IN", "ALREADY_CHECKED_OUT"]

MAX_QR_DATA_LENGTH = 2000
MATRICULE_REGEX = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_\-]{2,49}$")


class QrPayload(BaseModel):
    """Contenu décodé d'un QR code : au moins l'id ou le matricule."""

    id: Optional[uuid.UUID] = None
    matricule: Optional[str] = None
    type: Optional[OwnerType] = None

    model_config = {"extra": "ignore"}

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator("matricule")
    @classmethod
    def normalize_matricule(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip().upper() or None

    @model_validator(mode="after")
    def id_or_matricule(self) -> "QrPayload":
        if self.id is None and self.matricule is None:
            raise ValueError("Le QR code doit contenir un id ou un matricule.")
        return self


class ScanRequest(BaseModel):
    """Corps de la requête de scan. Aucun horodatage : l'heure est celle du serveur."""

    qr_data: str

    @field_validator("qr_data")
    @classmethod
    def qr_data_bounds(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("QR code vide.")
        if len(v) > MAX_QR_DATA_LENGTH:
            raise ValueError(f"QR code trop long : maximum {MAX_QR_DATA_LENGTH} caractères.")
        return v


class IdentitySummary(BaseModel):
    """Apprenant ou coach, tel qu'affiché après un scan."""
    owner_type: OwnerType
    id: uuid.UUID
    matricule: str
    first_name: str
    last_name: str
    photo_url: Optional[str] = None
    referential_id: Optional[uuid.UUID] = None

    model_config = {"from_attributes": True}


class AttendanceRecordResponse(BaseModel):
    id: uuid.UUID
    owner_type: OwnerType
    owner_id: uuid.UUID
    date: date
    check_in: datetime
    check_out: Optional[datetime]
    is_late: bool

    model_config = {"from_attributes": True}


class ScanResult(BaseModel):
    """Résultat d'un scan, utilisé pour le message (toast) côté scanner."""
    action: ScanAction
    message: str
    conflict: bool = False        # True si un scan concurrent a créé l'enregistrement
    scanned_at: datetime
    owner: IdentitySummary
    record: AttendanceRecordResponse


class AttendanceEntry(BaseModel):
    owner: IdentitySummary
    record: AttendanceRecordResponse


class DailySummary(BaseModel):
    date: date
    expected: int
    present: int
    late: int
    absent: int
    checked_out: int


class DailyAttendanceReport(BaseModel):
    owner_type: OwnerType
    referential_id: Optional[uuid.UUID]
    summary: DailySummary
    records: List[AttendanceEntry]
    absentees: List[IdentitySummary]


class AttendanceRangeReport(BaseModel):
    owner_type: OwnerType
    referential_id: Optional[uuid.UUID]
    start: date
    end: date
    days: List[DailySummary]
    total_present: int
    total_late: int
    total_absent: int


class LatestScan(BaseModel):
    owner: IdentitySummary
    event: Literal["CHECKIN", "CHECKOUT"]
    scan_time: datetime
    is_late: bool


class LatestScansResponse(BaseModel):
    learner_scans: List[LatestScan]
    coach_scans: List[LatestScan]


class AttendanceExportRow(BaseModel):
    """Ligne de l'export CSV des présences."""
    owner_type: OwnerType
    owner_id: uuid.UUID
    matricule: str
    last_name: str
    first_name: str
    date: date
    check_in: datetime
    check_out: Optional[datetime] = None
    is_late: bool
