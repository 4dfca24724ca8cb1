"""
Tests d'intégration API pour les référentiels.
"""

import uuid
from datetime import datetime, time
from unittest.mock import patch

from app.schemas.referential import ReferentialResponse


def make_referential_response(**kwargs) -> ReferentialResponse:
    return ReferentialResponse(
        id=kwargs.get("id", uuid.uuid4()),
        name=kwargs.get("name", "Développement Data"),
        code=kwargs.get("code", "DATA"),
        description=None,
        late_cutoff=kwargs.get("late_cutoff"),
        created_at=datetime(2026, 3, 1, 10, 0),
    )


def test_create_referential_avec_heure_limite(client):
    with patch("app.services.referential_service.create_referential") as mock_create:
        mock_create.return_value = make_referential_response(late_cutoff=time(8, 30))

        response = client.post("/api/v1/referentials", json={"name": "Développement Data", "late_cutoff": "08:30"})

    assert response.status_code == 201
    assert response.json()["late_cutoff"] == "08:30:00"
    assert mock_create.call_args.args[1].late_cutoff == time(8, 30)


def test_create_referential_heure_invalide_422(client):
    response = client.post("/api/v1/referentials", json={"name": "Data", "late_cutoff": "25:00"})
    assert response.status_code == 422


def test_create_referential_nom_duplique_409(client):
    with patch("app.services.referential_service.create_referential",
               side_effect=ValueError("Un référentiel avec le nom 'Data' existe déjà.")):
        response = client.post("/api/v1/referentials", json={"name": "Data"})

    assert response.status_code == 409


def test_list_referentials(client):
    with patch("app.services.referential_service.get_referentials",
               return_value=[make_referential_response()]):
        response = client.get("/api/v1/referentials")

    assert response.status_code == 200
    assert len(response.json()) == 1


def test_get_referential_inconnu_404(client):
    with patch("app.services.referential_service.get_referential", return_value=None):
        response = client.get(f"/api/v1/referentials/{uuid.uuid4()}")

    assert response.status_code == 404


def test_update_referential(client):
    ref_id = uuid.uuid4()
    with patch("app.services.referential_service.update_referential") as mock_update:
        mock_update.return_value = make_referential_response(id=ref_id)

        response = client.put(f"/api/v1/referentials/{ref_id}", json={"late_cutoff": None})

    assert response.status_code == 200
    assert mock_update.call_args.args[2].model_dump(exclude_unset=True) == {"late_cutoff": None}
