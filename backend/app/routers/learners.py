"""
Router pour les apprenants.
Import CSV (POST /api/v1/learners/upload)
Listage, création, mise à jour et désactivation (DELETE = statut INACTIVE)
QR code d'identité en PNG (GET /api/v1/learners/{id}/qr-code)
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.learner import (
    LearnerCreate,
    LearnerImportReport,
    LearnerResponse,
    LearnerStatus,
    LearnerUpdate,
)
from app.security import require_roles
from app.services import learner_service
from app.services.learner_import import parse_and_import_csv
from app.services.qr_service import generate_qr_image

router = APIRouter(
    prefix="/api/v1/learners",
    tags=["Apprenants"],
    dependencies=[Depends(require_roles("ADMIN"))],
)

ALLOWED_CONTENT_TYPES = {"text/csv", "text/plain", "application/vnd.ms-excel"}
MAX_FILE_SIZE_MB = 5


@router.get("", response_model=List[LearnerResponse], summary="Lister les apprenants")
def list_learners(
    referential_id: Optional[uuid.UUID] = None,
    status: Optional[LearnerStatus] = None,
    db: Session = Depends(get_db),
):
    """Retourne les apprenants triés alphabétiquement, filtrables par référentiel et statut."""
    return learner_service.get_learners(db, referential_id, status)


@router.post("", response_model=LearnerResponse, status_code=201, summary="Créer un apprenant")
def create_learner(data: LearnerCreate, db: Session = Depends(get_db)):
    """Crée un apprenant ; le matricule est généré s'il n'est pas fourni."""
    try:
        return learner_service.create_learner(db, data)
    except ValueError as e:
        msg = str(e)
        if "introuvable" in msg:
            raise HTTPException(status_code=404, detail=msg)
        raise HTTPException(status_code=409, detail=msg)


@router.post("/upload", response_model=LearnerImportReport, summary="Importer des apprenants via CSV")
async def upload_learners(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    """
    Importe une liste d'apprenants depuis un fichier CSV.

    Format attendu du CSV :
    - Colonnes obligatoires : `nom`, `prenom`
    - Colonnes optionnelles : `email`, `telephone`, `referentiel`, `matricule`
    - Séparateur : virgule (`,`) ou point-virgule (`;`)
    - Encodage : UTF-8 (avec ou sans BOM)

    Retourne un rapport détaillant les insertions et les rejets.
    """
    if file.content_type not in ALLOWED_CONTENT_TYPES and not (file.filename or "").endswith(".csv"):
        raise HTTPException(
            status_code=400,
            detail="Format invalide. Seuls les fichiers CSV sont acceptés."
        )

    content = await file.read()

    if len(content) > MAX_FILE_SIZE_MB * 1024 * 1024:
        raise HTTPException(
            status_code=400,
            detail=f"Fichier trop volumineux. Taille maximale : {MAX_FILE_SIZE_MB} Mo."
        )

    if not content:
        raise HTTPException(status_code=400, detail="Le fichier CSV est vide.")

    return parse_and_import_csv(content, db)


@router.get("/{learner_id}", response_model=LearnerResponse, summary="Détail d'un apprenant")
def get_learner(learner_id: uuid.UUID, db: Session = Depends(get_db)):
    learner = learner_service.get_learner(db, learner_id)
    if learner is None:
        raise HTTPException(status_code=404, detail="Apprenant introuvable.")
    return learner


@router.put("/{learner_id}", response_model=LearnerResponse, summary="Modifier un apprenant")
def update_learner(learner_id: uuid.UUID, data: LearnerUpdate, db: Session = Depends(get_db)):
    """Met à jour les champs fournis. Le matricule et le QR code ne sont pas modifiables."""
    try:
        learner = learner_service.update_learner(db, learner_id, data)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if learner is None:
        raise HTTPException(status_code=404, detail="Apprenant introuvable.")
    return learner


@router.delete("/{learner_id}", status_code=204, summary="Désactiver un apprenant")
def deactivate_learner(learner_id: uuid.UUID, db: Session = Depends(get_db)):
    """Passe l'apprenant en statut INACTIVE. Son historique de présence est conservé."""
    if not learner_service.deactivate_learner(db, learner_id):
        raise HTTPException(status_code=404, detail="Apprenant introuvable.")


@router.get("/{learner_id}/qr-code", summary="QR code d'identité (PNG)")
def learner_qr_code(learner_id: uuid.UUID, db: Session = Depends(get_db)):
    learner = learner_service.get_learner(db, learner_id)
    if learner is None:
        raise HTTPException(status_code=404, detail="Apprenant introuvable.")
    return Response(
        content=generate_qr_image(learner.qr_payload),
        media_type="image/png",
        headers={"Content-Disposition": f"inline; filename=qr_{learner.matricule}.png"},
    )
