"""
Tests du codec des QR codes d'identité.
"""

import json
import uuid

import pytest

from app.exceptions import InvalidPayload
from app.schemas.coach import CoachCreate
from app.schemas.learner import LearnerCreate
from app.services.qr_service import (
    build_qr_payload,
    decode_qr_payload,
    generate_matricule,
    generate_qr_image,
)


def test_generate_matricule_format():
    matricule = generate_matricule("APP")
    assert matricule.startswith("APP-")
    assert len(matricule) == 12
    assert matricule[4:] == matricule[4:].upper()


def test_generate_matricule_unique():
    assert len({generate_matricule("COA") for _ in range(50)}) == 50


def test_build_qr_payload_json_compact():
    owner_id = uuid.uuid4()
    payload = build_qr_payload("COACH", owner_id, "COA-1234ABCD")

    assert " " not in payload
    assert json.loads(payload) == {"id": str(owner_id), "matricule": "COA-1234ABCD", "type": "COACH"}


def test_decode_payload_emis():
    owner_id = uuid.uuid4()
    decoded = decode_qr_payload(build_qr_payload("LEARNER", owner_id, "APP-1234ABCD"))

    assert decoded.id == owner_id
    assert decoded.matricule == "APP-1234ABCD"
    assert decoded.type == "LEARNER"


def test_decode_json_sans_type():
    owner_id = uuid.uuid4()
    decoded = decode_qr_payload(json.dumps({"id": str(owner_id)}))

    assert decoded.id == owner_id
    assert decoded.matricule is None
    assert decoded.type is None


def test_decode_normalise_matricule_et_type():
    decoded = decode_qr_payload('{"matricule": " app-1234abcd ", "type": "coach"}')

    assert decoded.matricule == "APP-1234ABCD"
    assert decoded.type == "COACH"


def test_decode_champs_inconnus_ignores():
    decoded = decode_qr_payload('{"matricule": "APP-1234ABCD", "version": 2}')
    assert decoded.matricule == "APP-1234ABCD"


def test_decode_matricule_seul():
    decoded = decode_qr_payload("  odc-dsd25307\n")

    assert decoded.matricule == "ODC-DSD25307"
    assert decoded.id is None


@pytest.mark.parametrize("raw", [
    "",
    "   ",
    None,
    "{pas du json",
    "{}",
    '{"id": "pas-un-uuid"}',
    '{"matricule": "APP-1", "type": "ADMIN"}',
    "AB",
    "https://exemple.org/carte?id=1",
])
def test_decode_payload_invalide(raw):
    with pytest.raises(InvalidPayload):
        decode_qr_payload(raw)


def test_generate_qr_image_png():
    content = generate_qr_image(build_qr_payload("LEARNER", uuid.uuid4(), "APP-1234ABCD"))
    assert content[:8] == b"\x89PNG\r\n\x1a\n"


def test_matricule_accepte_a_la_creation_est_decodable():
    for schema in (LearnerCreate, CoachCreate):
        created = schema(first_name="Awa", last_name="Diop", matricule=" odc-dsd25307 ")
        assert decode_qr_payload(created.matricule).matricule == "ODC-DSD25307"
