"""
Router pour le pointage par QR code et les rapports de présence.
POST /api/v1/attendance/scan        : arrivée / départ (apprenants et coachs)
GET  /api/v1/attendance/daily       : synthèse journalière
GET  /api/v1/attendance/range       : synthèse par jour sur une période
GET  /api/v1/attendance/export      : export CSV
GET  /api/v1/attendance/latest      : derniers scans
GET  /api/v1/attendance/owners/{id} : historique d'une personne
GET  /api/v1/attendance/me          : historique de l'utilisateur connecté
"""

import uuid
from datetime import date, timedelta
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.clock import Clock, get_clock
from app.config import Settings, get_settings
from app.database import get_db
from app.exceptions import (
    IdentityInactive,
    IdentityNotFound,
    InvalidPayload,
    InvalidScanTime,
    PersistenceUnavailable,
)
from app.schemas.attendance import (
    AttendanceRangeReport,
    AttendanceRecordResponse,
    DailyAttendanceReport,
    LatestScansResponse,
    ScanRequest,
    ScanResult,
)
from app.security import CurrentUser, get_current_user, require_roles
from app.services import attendance_service, report_service

router = APIRouter(prefix="/api/v1/attendance", tags=["Pointage"])

SCANNER_ROLES = ("ADMIN", "VIGIL")
REPORT_ROLES = ("ADMIN", "VIGIL", "COACH")

OwnerTypeQuery = Literal["LEARNER", "COACH"]


@router.post("/scan", response_model=ScanResult, summary="Scanner un QR code (arrivée / départ)")
def scan_qr_code(
    data: ScanRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
    user: CurrentUser = Depends(require_roles(*SCANNER_ROLES)),
):
    """
    Enregistre le scan d'un apprenant ou d'un coach.

    - Premier scan du jour → arrivée (CHECKIN), en retard si après l'heure limite
    - Second scan → départ (CHECKOUT)
    - Scans suivants → ALREADY_CHECKED_OUT, rien n'est modifié

    L'heure retenue est toujours celle du serveur.
    Retourne 400 si le QR code est illisible, 404 si la personne est introuvable,
    403 si le compte est inactif, 409 si l'heure est incohérente, 503 si la base est indisponible.
    """
    try:
        return attendance_service.record_scan(
            db,
            data.qr_data,
            now=clock(),
            default_cutoff=settings.LATE_CUTOFF,
            checkout_min_delay=timedelta(seconds=settings.CHECKOUT_MIN_DELAY_SECONDS),
        )
    except InvalidPayload as e:
        raise HTTPException(status_code=400, detail=e.message)
    except IdentityNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except IdentityInactive as e:
        raise HTTPException(status_code=403, detail=e.message)
    except InvalidScanTime as e:
        raise HTTPException(status_code=409, detail=e.message)
    except PersistenceUnavailable as e:
        raise HTTPException(status_code=503, detail=e.message)


@router.get("/daily", response_model=DailyAttendanceReport, summary="Synthèse journalière")
def daily_report(
    day: Optional[date] = None,
    owner_type: OwnerTypeQuery = "LEARNER",
    referential_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    user: CurrentUser = Depends(require_roles(*REPORT_ROLES)),
):
    """Présents, retards, absents et départs pour un jour (aujourd'hui par défaut)."""
    return report_service.get_daily_report(db, day or clock().date(), owner_type, referential_id)


@router.get("/range", response_model=AttendanceRangeReport, summary="Synthèse sur une période")
def range_report(
    start: date,
    end: date,
    owner_type: OwnerTypeQuery = "LEARNER",
    referential_id: Optional[uuid.UUID] = None,
    include_weekends: bool = False,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    user: CurrentUser = Depends(require_roles(*REPORT_ROLES)),
):
    try:
        return report_service.get_range_report(
            db, start, end, owner_type, referential_id,
            include_weekends=include_weekends, max_days=settings.MAX_REPORT_RANGE_DAYS,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/export", summary="Exporter les présences en CSV")
def export_attendance(
    start: date,
    end: date,
    owner_type: OwnerTypeQuery = "LEARNER",
    referential_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    user: CurrentUser = Depends(require_roles(*REPORT_ROLES)),
):
    """
    Exporte les présences de la période en CSV (UTF-8 BOM, séparateur ;).
    Compatible Excel.
    """
    try:
        csv_content = report_service.export_attendance_csv(
            db, start, end, owner_type, referential_id, max_days=settings.MAX_REPORT_RANGE_DAYS,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    filename = f"presences_{owner_type.lower()}_{start.isoformat()}_{end.isoformat()}.csv"
    return StreamingResponse(
        iter([csv_content]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/latest", response_model=LatestScansResponse, summary="Derniers scans")
def latest_scans(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_roles(*REPORT_ROLES)),
):
    return report_service.get_latest_scans(db, limit)


@router.get("/me", response_model=List[AttendanceRecordResponse], summary="Mes présences")
def my_attendance(
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    """Historique de l'apprenant ou du coach rattaché au compte connecté."""
    if user.identity_id is None:
        raise HTTPException(status_code=404, detail="Aucun profil apprenant ou coach rattaché à ce compte.")
    try:
        return report_service.get_owner_history(db, user.identity_id, start, end)
    except ValueError as e:
        raise HTTPException(status_code=404 if "introuvable" in str(e) else 400, detail=str(e))


@router.get("/owners/{owner_id}", response_model=List[AttendanceRecordResponse],
            summary="Historique d'une personne")
def owner_history(
    owner_id: uuid.UUID,
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_roles(*REPORT_ROLES)),
):
    try:
        return report_service.get_owner_history(db, owner_id, start, end)
    except ValueError as e:
        msg = str(e)
        if "introuvable" in msg:
            raise HTTPException(status_code=404, detail=msg)
        raise HTTPException(status_code=400, detail=msg)
