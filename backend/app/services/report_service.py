"""
Rapports de présence (lecture seule) : synthèse journalière, période, export CSV,
derniers scans et historique individuel.

Les absents ne sont stockés nulle part : absent = personnes actives attendues
sans ligne de présence pour le jour.
"""

import csv
import io
import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.models.attendance import AttendanceRecord
from app.repositories import attendance_repository as repo
from app.schemas.attendance import (
    AttendanceEntry,
    AttendanceExportRow,
    AttendanceRangeReport,
    AttendanceRecordResponse,
    DailyAttendanceReport,
    DailySummary,
    IdentitySummary,
    LatestScan,
    LatestScansResponse,
)

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "owner_type", "owner_id", "matricule", "last_name", "first_name",
    "date", "check_in", "check_out", "is_late",
]


def summarize_day(day: date, records: List[AttendanceRecord], expected_ids: set) -> DailySummary:
    """Compteurs d'une journée. Les présents hors liste attendue comptent comme présents."""
    present_ids = {r.owner_id for r in records}
    return DailySummary(
        date=day,
        expected=len(expected_ids),
        present=len(records),
        late=sum(1 for r in records if r.is_late),
        absent=len(expected_ids - present_ids),
        checked_out=sum(1 for r in records if r.check_out is not None),
    )


def get_daily_report(
    db: Session,
    day: date,
    owner_type: str = "LEARNER",
    referential_id: Optional[uuid.UUID] = None,
) -> DailyAttendanceReport:
    """Synthèse + liste des présences + liste des absents pour un jour."""
    rows = repo.list_attendance_records(db, day, day, owner_type, referential_id)
    expected = repo.list_expected_identities(db, owner_type, referential_id)

    records = [record for record, _ in rows]
    present_ids = {record.owner_id for record in records}

    return DailyAttendanceReport(
        owner_type=owner_type,
        referential_id=referential_id,
        summary=summarize_day(day, records, {i.id for i in expected}),
        records=[
            AttendanceEntry(
                owner=IdentitySummary.model_validate(identity),
                record=AttendanceRecordResponse.model_validate(record),
            )
            for record, identity in rows
        ],
        absentees=[IdentitySummary.model_validate(i) for i in expected if i.id not in present_ids],
    )


def get_range_report(
    db: Session,
    start: date,
    end: date,
    owner_type: str = "LEARNER",
    referential_id: Optional[uuid.UUID] = None,
    include_weekends: bool = False,
    max_days: int = 93,
) -> AttendanceRangeReport:
    """
    Une synthèse par jour de la période (bornes incluses).
    Lève ValueError si la période est inversée ou trop longue.
    """
    _check_range(start, end, max_days)

    rows = repo.list_attendance_records(db, start, end, owner_type, referential_id)
    expected_ids = {i.id for i in repo.list_expected_identities(db, owner_type, referential_id)}

    by_day: Dict[date, List[AttendanceRecord]] = defaultdict(list)
    for record, _ in rows:
        by_day[record.date].append(record)

    days = []
    current = start
    while current <= end:
        if include_weekends or current.weekday() < 5 or by_day.get(current):
            days.append(summarize_day(current, by_day.get(current, []), expected_ids))
        current += timedelta(days=1)

    return AttendanceRangeReport(
        owner_type=owner_type,
        referential_id=referential_id,
        start=start,
        end=end,
        days=days,
        total_present=sum(d.present for d in days),
        total_late=sum(d.late for d in days),
        total_absent=sum(d.absent for d in days),
    )


def export_attendance_csv(
    db: Session,
    start: date,
    end: date,
    owner_type: str = "LEARNER",
    referential_id: Optional[uuid.UUID] = None,
    max_days: int = 93,
) -> str:
    """
    Génère un CSV des présences de la période.
    Retourne le contenu CSV sous forme de string (UTF-8 BOM, séparateur ; pour Excel).
    Horodatages ISO 8601 avec espace, microsecondes conservées.
    """
    _check_range(start, end, max_days)
    rows = repo.list_attendance_records(db, start, end, owner_type, referential_id)

    output = io.StringIO()
    writer = csv.writer(output, delimiter=";")
    writer.writerow(EXPORT_COLUMNS)

    for record, identity in rows:
        writer.writerow([
            record.owner_type,
            str(record.owner_id),
            identity.matricule,
            identity.last_name,
            identity.first_name,
            record.date.isoformat(),
            record.check_in.isoformat(sep=" "),
            record.check_out.isoformat(sep=" ") if record.check_out else "",
            "true" if record.is_late else "false",
        ])

    logger.info("Export CSV %s du %s au %s : %d lignes", owner_type, start, end, len(rows))
    return "\ufeff" + output.getvalue()  # BOM pour compatibilité Excel


def parse_attendance_csv(content: str) -> List[AttendanceExportRow]:
    """
    Relit un export produit par export_attendance_csv.
    Lève ValueError si les colonnes ou une valeur ne correspondent pas au format.
    """
    reader = csv.DictReader(io.StringIO(content.lstrip("\ufeff")), delimiter=";")
    if reader.fieldnames is None or [f.strip() for f in reader.fieldnames] != EXPORT_COLUMNS:
        raise ValueError(f"Colonnes inattendues : {reader.fieldnames}")

    rows = []
    for line, row in enumerate(reader, start=2):
        try:
            rows.append(AttendanceExportRow(
                owner_type=row["owner_type"],
                owner_id=uuid.UUID(row["owner_id"]),
                matricule=row["matricule"],
                last_name=row["last_name"],
                first_name=row["first_name"],
                date=date.fromisoformat(row["date"]),
                check_in=datetime.fromisoformat(row["check_in"]),
                check_out=datetime.fromisoformat(row["check_out"]) if row["check_out"] else None,
                is_late=row["is_late"].strip().lower() == "true",
            ))
        except (ValueError, TypeError) as exc:
            raise ValueError(f"Ligne {line} invalide : {exc}") from exc
    return rows


def get_latest_scans(db: Session, limit: int = 10) -> LatestScansResponse:
    """Derniers scans des apprenants et des coachs (dernier événement de chaque ligne)."""
    return LatestScansResponse(
        learner_scans=[_latest(r, i) for r, i in repo.list_latest_records(db, "LEARNER", limit)],
        coach_scans=[_latest(r, i) for r, i in repo.list_latest_records(db, "COACH", limit)],
    )


def get_owner_history(
    db: Session,
    owner_id: uuid.UUID,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[AttendanceRecordResponse]:
    """Historique d'une personne. Lève ValueError si la personne est introuvable."""
    if repo.find_identity_by_id(db, owner_id) is None:
        raise ValueError("Personne introuvable.")
    if start and end and start > end:
        raise ValueError("La date de début doit précéder la date de fin.")
    return [
        AttendanceRecordResponse.model_validate(r)
        for r in repo.list_owner_records(db, owner_id, start, end)
    ]


def _latest(record: AttendanceRecord, identity) -> LatestScan:
    checked_out = record.check_out is not None
    return LatestScan(
        owner=IdentitySummary.model_validate(identity),
        event="CHECKOUT" if checked_out else "CHECKIN",
        scan_time=record.check_out if checked_out else record.check_in,
        is_late=record.is_late,
    )


def _check_range(start: date, end: date, max_days: int) -> None:
    if start > end:
        raise ValueError("La date de début doit précéder la date de fin.")
    if (end - start).days + 1 > max_days:
        raise ValueError(f"Période trop longue : maximum {max_days} jours.")
