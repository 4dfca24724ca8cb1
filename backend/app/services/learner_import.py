"""
Service d'import CSV pour les apprenants.
Gère le parsing, la validation ligne par ligne, la détection de doublons et l'insertion bulk.

Colonne optionnelle `referentiel` : si présente, l'apprenant est rattaché au
référentiel correspondant (créé s'il n'existe pas encore).
Chaque apprenant inséré reçoit son matricule (fourni ou généré) et son QR code.
"""

import csv
import io
import logging
import re
import uuid
from typing import Dict, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.learner import Learner
from app.models.referential import Referential
from app.schemas.learner import ImportError, LearnerImportReport, LearnerImportRow
from app.services.learner_service import MATRICULE_PREFIX
from app.services.qr_service import MATRICULE_REGEX, build_qr_payload, generate_matricule

logger = logging.getLogger(__name__)

# Colonnes acceptées dans le CSV (noms en français, insensibles à la casse)
REQUIRED_COLUMNS = {"nom", "prenom"}
OPTIONAL_COLUMNS = {"email", "telephone", "referentiel", "matricule"}
EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")


def _normalize_header(raw: str) -> str:
    """Normalise un nom de colonne : minuscules, sans espaces."""
    return raw.strip().lower()


def _detect_separator(sample: str) -> str:
    """Détecte le séparateur CSV (virgule ou point-virgule)."""
    if sample.count(";") >= sample.count(","):
        return ";"
    return ","


def _get_or_create_referential(db: Session, name: str) -> Referential:
    """
    Retourne le référentiel portant ce nom (insensible à la casse),
    ou le crée s'il n'existe pas encore.
    """
    existing = db.execute(
        select(Referential).where(func.lower(Referential.name) == name.lower())
    ).scalar_one_or_none()

    if existing:
        return existing

    referential = Referential(id=uuid.uuid4(), name=name.strip())
    db.add(referential)
    db.flush()  # obtenir l'ID sans committer
    return referential


def _empty_report(row: int, content: str, reason: str) -> LearnerImportReport:
    return LearnerImportReport(
        total_rows=0, inserted=0, rejected=0,
        duplicates_in_file=0, duplicates_in_db=0,
        errors=[ImportError(row=row, content=content, reason=reason)],
    )


def parse_and_import_csv(content: bytes, db: Session) -> LearnerImportReport:
    """
    Parse le CSV, valide chaque ligne, détecte les doublons et insère en bulk.

    Règles :
    - Colonnes requises : nom, prenom
    - Colonnes optionnelles : email, telephone, referentiel, matricule
    - Doublon intra-fichier : même matricule, ou même nom+prenom sans matricule
    - Doublon BDD : matricule déjà attribué, ou même nom+prenom déjà inscrit
    """
    try:
        text = content.decode("utf-8-sig")  # utf-8-sig gère le BOM Excel
    except UnicodeDecodeError:
        return _empty_report(0, "", "Encodage invalide : le fichier doit être en UTF-8")

    lines = text.splitlines()
    separator = _detect_separator(lines[0] if lines else "")
    reader = csv.DictReader(io.StringIO(text), delimiter=separator)

    if reader.fieldnames is None:
        return _empty_report(0, "", "Fichier CSV vide ou illisible")

    normalized_fields = {_normalize_header(f) for f in reader.fieldnames}
    missing = REQUIRED_COLUMNS - normalized_fields
    if missing:
        return _empty_report(0, str(reader.fieldnames), f"Colonnes manquantes : {', '.join(sorted(missing))}")

    # Mapping nom_normalise → nom_original
    field_map = {_normalize_header(f): f for f in reader.fieldnames}

    def cell(row: dict, column: str) -> str:
        if column not in field_map:
            return ""
        return (row.get(field_map[column]) or "").strip()

    valid_rows: list[LearnerImportRow] = []
    errors: list[ImportError] = []
    seen_names: set[Tuple[str, str]] = set()
    seen_matricules: set[str] = set()
    duplicates_in_file = 0
    row_num = 1

    for row_num, row in enumerate(reader, start=2):  # ligne 1 = header
        raw_last = cell(row, "nom")
        raw_first = cell(row, "prenom")
        raw_email = cell(row, "email")
        raw_matricule = cell(row, "matricule").upper()

        # Ligne vide
        if not raw_last and not raw_first:
            continue

        if not raw_last or not raw_first:
            errors.append(ImportError(
                row=row_num, content=f"{raw_last}, {raw_first}", reason="Nom ou prénom manquant"
            ))
            continue

        if raw_email and not EMAIL_REGEX.match(raw_email):
            errors.append(ImportError(
                row=row_num,
                content=f"{raw_last}, {raw_first}, {raw_email}",
                reason=f"Format email invalide : {raw_email}",
            ))
            continue

        if raw_matricule and not MATRICULE_REGEX.match(raw_matricule):
            errors.append(ImportError(
                row=row_num,
                content=f"{raw_last}, {raw_first}, {raw_matricule}",
                reason=f"Format matricule invalide : {raw_matricule}",
            ))
            continue

        # Doublon intra-fichier
        name_key = (raw_last.lower(), raw_first.lower())
        is_duplicate = raw_matricule in seen_matricules if raw_matricule else name_key in seen_names
        if is_duplicate:
            duplicates_in_file += 1
            errors.append(ImportError(
                row=row_num, content=f"{raw_last}, {raw_first}", reason="Doublon dans le fichier CSV"
            ))
            continue
        seen_names.add(name_key)
        if raw_matricule:
            seen_matricules.add(raw_matricule)

        valid_rows.append(LearnerImportRow(
            last_name=raw_last,
            first_name=raw_first,
            email=raw_email or None,
            phone=cell(row, "telephone") or None,
            referentiel=cell(row, "referentiel") or None,
            matricule=raw_matricule or None,
        ))

    total_rows = row_num - 1 if valid_rows or errors else 0

    if not valid_rows:
        return LearnerImportReport(
            total_rows=total_rows, inserted=0, rejected=len(errors),
            duplicates_in_file=duplicates_in_file, duplicates_in_db=0, errors=errors,
        )

    # Détection doublons contre la BDD (requêtes batch)
    existing_names = {
        (row[0], row[1])
        for row in db.execute(
            select(func.lower(Learner.last_name), func.lower(Learner.first_name))
            .where(func.lower(Learner.last_name).in_([r.last_name.lower() for r in valid_rows]))
        ).fetchall()
    }
    wanted_matricules = [r.matricule for r in valid_rows if r.matricule]
    existing_matricules = set()
    if wanted_matricules:
        existing_matricules = {
            row[0]
            for row in db.execute(
                select(Learner.matricule).where(Learner.matricule.in_(wanted_matricules))
            ).fetchall()
        }

    to_insert: list[LearnerImportRow] = []
    duplicates_in_db = 0

    for learner in valid_rows:
        key = (learner.last_name.lower(), learner.first_name.lower())
        if key in existing_names or (learner.matricule and learner.matricule in existing_matricules):
            duplicates_in_db += 1
            errors.append(ImportError(
                row=0,
                content=f"{learner.last_name}, {learner.first_name}",
                reason="Apprenant déjà présent en base de données",
            ))
        else:
            to_insert.append(learner)

    if to_insert:
        referentials = _resolve_referentials(db, to_insert)
        mappings = []
        for learner in to_insert:
            learner_id = uuid.uuid4()
            matricule = learner.matricule or generate_matricule(MATRICULE_PREFIX)
            referential = referentials.get(learner.referentiel.lower()) if learner.referentiel else None
            mappings.append({
                "id": learner_id,
                "matricule": matricule,
                "first_name": learner.first_name,
                "last_name": learner.last_name,
                "email": learner.email,
                "phone": learner.phone,
                "referential_id": referential.id if referential else None,
                "status": "ACTIVE",
                "qr_payload": build_qr_payload("LEARNER", learner_id, matricule),
            })
        db.bulk_insert_mappings(Learner, mappings)
        db.commit()

    logger.info(
        "Import CSV apprenants : %d lignes, %d insérés, %d rejetés",
        total_rows, len(to_insert), len(errors),
    )

    return LearnerImportReport(
        total_rows=total_rows,
        inserted=len(to_insert),
        rejected=len(errors),
        duplicates_in_file=duplicates_in_file,
        duplicates_in_db=duplicates_in_db,
        errors=errors,
    )


def _resolve_referentials(db: Session, learners: list[LearnerImportRow]) -> Dict[str, Optional[Referential]]:
    """Regroupe les référentiels cités pour minimiser les requêtes (clé : nom en minuscules)."""
    referentials: Dict[str, Optional[Referential]] = {}
    for learner in learners:
        if not learner.referentiel:
            continue
        key = learner.referentiel.lower()
        if key not in referentials:
            referentials[key] = _get_or_create_referential(db, learner.referentiel)
    return referentials
