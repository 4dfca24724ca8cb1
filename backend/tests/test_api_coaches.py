"""
Tests d'intégration API pour les coachs.
"""

import uuid
from datetime import datetime
from unittest.mock import patch

import pytest

from app.schemas.coach import CoachResponse
from app.services.qr_service import build_qr_payload


def make_coach_response(**kwargs) -> CoachResponse:
    coach_id = kwargs.get("id", uuid.uuid4())
    matricule = kwargs.get("matricule", "COA-1234ABCD")
    return CoachResponse(
        id=coach_id,
        matricule=matricule,
        first_name=kwargs.get("first_name", "Ibrahima"),
        last_name=kwargs.get("last_name", "Sow"),
        email=None,
        phone=None,
        photo_url=None,
        referential_id=None,
        status=kwargs.get("status", "ACTIVE"),
        qr_payload=build_qr_payload("COACH", coach_id, matricule),
        created_at=datetime(2026, 3, 1, 10, 0),
    )


def test_list_coaches(client):
    with patch("app.services.coach_service.get_coaches", return_value=[make_coach_response()]):
        response = client.get("/api/v1/coaches")

    assert response.status_code == 200
    assert response.json()[0]["matricule"] == "COA-1234ABCD"


def test_create_coach(client):
    with patch("app.services.coach_service.create_coach", return_value=make_coach_response()):
        response = client.post("/api/v1/coaches", json={"first_name": "Ibrahima", "last_name": "Sow"})

    assert response.status_code == 201
    assert '"type":"COACH"' in response.json()["qr_payload"]


def test_create_coach_matricule_duplique_409(client):
    with patch("app.services.coach_service.create_coach",
               side_effect=ValueError("Le matricule 'COA-1' existe déjà.")):
        response = client.post("/api/v1/coaches", json={
            "first_name": "Ibrahima", "last_name": "Sow", "matricule": "COA-1",
        })

    assert response.status_code == 409


def test_get_coach_inconnu_404(client):
    with patch("app.services.coach_service.get_coach", return_value=None):
        response = client.get(f"/api/v1/coaches/{uuid.uuid4()}")

    assert response.status_code == 404


def test_update_coach_inconnu_404(client):
    with patch("app.services.coach_service.update_coach", return_value=None):
        response = client.put(f"/api/v1/coaches/{uuid.uuid4()}", json={"last_name": "Ndiaye"})

    assert response.status_code == 404


def test_deactivate_coach(client):
    with patch("app.services.coach_service.deactivate_coach", return_value=True) as mock_deactivate:
        coach_id = uuid.uuid4()
        response = client.delete(f"/api/v1/coaches/{coach_id}")

    assert response.status_code == 204
    assert mock_deactivate.call_args.args[1] == coach_id


def test_coaches_reserve_aux_admins(client, login_as):
    login_as("COACH")
    response = client.get("/api/v1/coaches")
    assert response.status_code == 403


@pytest.mark.parametrize("matricule", ["A B", "é1", "C" * 51])
def test_create_coach_matricule_illisible_par_le_scanner_422(client, matricule):
    with patch("app.services.coach_service.create_coach") as mock_create:
        response = client.post("/api/v1/coaches", json={
            "first_name": "Ibrahima", "last_name": "Sow", "matricule": matricule,
        })

    assert response.status_code == 422
    mock_create.assert_not_called()
