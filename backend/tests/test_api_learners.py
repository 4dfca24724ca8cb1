"""
Tests d'intégration API pour les apprenants.
POST /api/v1/learners/upload   : import CSV
GET|POST /api/v1/learners      : listage, création
GET|PUT|DELETE /api/v1/learners/{id}
GET /api/v1/learners/{id}/qr-code
"""

import io
import uuid
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from app.models.learner import Learner
from app.schemas.learner import LearnerImportReport, LearnerResponse
from app.services.qr_service import build_qr_payload


# --- Helpers ---

def make_learner(**kwargs) -> Learner:
    learner = MagicMock(spec=Learner)
    learner.id = kwargs.get("id", uuid.uuid4())
    learner.matricule = kwargs.get("matricule", "APP-1234ABCD")
    learner.first_name = kwargs.get("first_name", "Awa")
    learner.last_name = kwargs.get("last_name", "Diop")
    learner.email = kwargs.get("email", "awa.diop@test.sn")
    learner.phone = kwargs.get("phone")
    learner.photo_url = None
    learner.referential_id = None
    learner.status = kwargs.get("status", "ACTIVE")
    learner.qr_payload = build_qr_payload("LEARNER", learner.id, learner.matricule)
    learner.created_at = datetime(2026, 3, 1, 10, 0)
    return learner


def make_report(**kwargs) -> LearnerImportReport:
    return LearnerImportReport(
        total_rows=kwargs.get("total_rows", 2),
        inserted=kwargs.get("inserted", 2),
        rejected=kwargs.get("rejected", 0),
        duplicates_in_file=0,
        duplicates_in_db=0,
        errors=[],
    )


def csv_file(content: bytes, filename="apprenants.csv", content_type="text/csv"):
    return {"file": (filename, io.BytesIO(content), content_type)}


# ============================================================
# POST /api/v1/learners/upload
# ============================================================

def test_upload_csv_valide(client):
    with patch("app.routers.learners.parse_and_import_csv") as mock_import:
        mock_import.return_value = make_report()

        response = client.post("/api/v1/learners/upload", files=csv_file(b"nom,prenom\nDiop,Awa\n"))

    assert response.status_code == 200
    assert response.json()["inserted"] == 2
    assert mock_import.call_args.args[0] == b"nom,prenom\nDiop,Awa\n"


def test_upload_format_invalide(client):
    response = client.post(
        "/api/v1/learners/upload",
        files=csv_file(b"PK\x03\x04", filename="apprenants.xlsx", content_type="application/zip"),
    )
    assert response.status_code == 400


def test_upload_fichier_vide(client):
    response = client.post("/api/v1/learners/upload", files=csv_file(b""))
    assert response.status_code == 400
    assert "vide" in response.json()["detail"]


def test_upload_reserve_aux_admins(client, login_as):
    login_as("VIGIL")
    response = client.post("/api/v1/learners/upload", files=csv_file(b"nom,prenom\nDiop,Awa\n"))
    assert response.status_code == 403


# ============================================================
# CRUD
# ============================================================

def test_list_learners_filtres(client):
    referential_id = uuid.uuid4()
    with patch("app.services.learner_service.get_learners") as mock_list:
        mock_list.return_value = [LearnerResponse.model_validate(make_learner())]

        response = client.get("/api/v1/learners", params={"referential_id": str(referential_id), "status": "ACTIVE"})

    assert response.status_code == 200
    assert response.json()[0]["matricule"] == "APP-1234ABCD"
    assert mock_list.call_args.args[1:] == (referential_id, "ACTIVE")


def test_list_learners_statut_inconnu_422(client):
    response = client.get("/api/v1/learners", params={"status": "DELETED"})
    assert response.status_code == 422


def test_create_learner_succes(client):
    learner = make_learner(first_name="Fatou", last_name="Ndiaye")
    with patch("app.services.learner_service.create_learner") as mock_create:
        mock_create.return_value = LearnerResponse.model_validate(learner)

        response = client.post("/api/v1/learners", json={"first_name": "Fatou", "last_name": "Ndiaye"})

    assert response.status_code == 201
    assert response.json()["qr_payload"] == learner.qr_payload


def test_create_learner_nom_vide_422(client):
    response = client.post("/api/v1/learners", json={"first_name": " ", "last_name": "Ndiaye"})
    assert response.status_code == 422


def test_create_learner_email_invalide_422(client):
    response = client.post("/api/v1/learners", json={
        "first_name": "Fatou", "last_name": "Ndiaye", "email": "pas-un-email",
    })
    assert response.status_code == 422


def test_create_learner_matricule_duplique_409(client):
    with patch("app.services.learner_service.create_learner",
               side_effect=ValueError("Le matricule 'APP-1' existe déjà.")):
        response = client.post("/api/v1/learners", json={
            "first_name": "Fatou", "last_name": "Ndiaye", "matricule": "APP-1",
        })

    assert response.status_code == 409


def test_create_learner_referentiel_inconnu_404(client):
    with patch("app.services.learner_service.create_learner", side_effect=ValueError("Référentiel introuvable.")):
        response = client.post("/api/v1/learners", json={
            "first_name": "Fatou", "last_name": "Ndiaye", "referential_id": str(uuid.uuid4()),
        })

    assert response.status_code == 404


def test_get_learner_inconnu_404(client):
    with patch("app.services.learner_service.get_learner", return_value=None):
        response = client.get(f"/api/v1/learners/{uuid.uuid4()}")

    assert response.status_code == 404


def test_update_learner(client):
    learner = make_learner(phone="+221770000000")
    with patch("app.services.learner_service.update_learner") as mock_update:
        mock_update.return_value = LearnerResponse.model_validate(learner)

        response = client.put(f"/api/v1/learners/{learner.id}", json={"status": "SUSPENDED"})

    assert response.status_code == 200
    assert mock_update.call_args.args[2].status == "SUSPENDED"


def test_deactivate_learner(client):
    with patch("app.services.learner_service.deactivate_learner", return_value=True):
        response = client.delete(f"/api/v1/learners/{uuid.uuid4()}")

    assert response.status_code == 204


def test_deactivate_learner_inconnu(client):
    with patch("app.services.learner_service.deactivate_learner", return_value=False):
        response = client.delete(f"/api/v1/learners/{uuid.uuid4()}")

    assert response.status_code == 404


def test_qr_code_png(client):
    learner = make_learner()
    with patch("app.services.learner_service.get_learner", return_value=learner):
        response = client.get(f"/api/v1/learners/{learner.id}/qr-code")

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content[:4] == b"\x89PNG"
    assert "qr_APP-1234ABCD.png" in response.headers["content-disposition"]


@pytest.mark.parametrize("matricule", ["A B", "é1", "AB", "-APP1", "A" * 51])
def test_create_learner_matricule_illisible_par_le_scanner_422(client, matricule):
    with patch("app.services.learner_service.create_learner") as mock_create:
        response = client.post("/api/v1/learners", json={
            "first_name": "Fatou", "last_name": "Ndiaye", "matricule": matricule,
        })

    assert response.status_code == 422
    mock_create.assert_not_called()
