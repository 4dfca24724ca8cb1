"""
Encodage et décodage du contenu des QR codes d'identité (apprenants et coachs).

Format émis à la création : JSON compact {"id", "matricule", "type"}.
Format accepté au scan : ce JSON, ou un matricule seul (anciennes cartes imprimées).
"""

import io
import json
import uuid

import qrcode
from pydantic import ValidationError

from app.exceptions import InvalidPayload
from app.schemas.attendance import MATRICULE_REGEX, QrPayload


def generate_matricule(prefix: str) -> str:
    """Génère un matricule unique (format : APP-XXXXXXXX ou COA-XXXXXXXX)."""
    return f"{prefix}-" + uuid.uuid4().hex[:8].upper()


def build_qr_payload(owner_type: str, owner_id: uuid.UUID, matricule: str) -> str:
    """Contenu du QR code émis une seule fois à la création de l'identité."""
    return json.dumps(
        {"id": str(owner_id), "matricule": matricule, "type": owner_type},
        separators=(",", ":"),
    )


def decode_qr_payload(raw: str) -> QrPayload:
    """
    Décode le texte lu par le scanner.
    Lève InvalidPayload si le contenu n'est ni un JSON d'identité valide ni un matricule.
    """
    text = (raw or "").strip()
    if not text:
        raise InvalidPayload()

    if text.startswith("{"):
        try:
            return QrPayload.model_validate_json(text)
        except ValidationError as exc:
            raise InvalidPayload() from exc

    if MATRICULE_REGEX.match(text):
        return QrPayload(matricule=text)

    raise InvalidPayload()


def generate_qr_image(payload: str) -> bytes:
    """Génère une image PNG du QR code encodant le contenu donné."""
    qr = qrcode.QRCode(version=None, box_size=10, border=4)
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
