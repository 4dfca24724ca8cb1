"""
Vérification des tokens Bearer (JWT signés par le service d'authentification).
Les routes ne reçoivent que l'identité et le rôle résolus, jamais le token brut.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.config import Settings, get_settings

VALID_ROLES = {"ADMIN", "VIGIL", "COACH", "LEARNER", "RESTAURATEUR"}

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    role: str
    identity_id: Optional[uuid.UUID] = None  # Apprenant ou coach rattaché au compte


def create_access_token(
    subject: str,
    role: str,
    identity_id: Optional[uuid.UUID] = None,
    settings: Optional[Settings] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """Émet un token signé (outillage et tests)."""
    settings = settings or get_settings()
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    claims = {"sub": subject, "role": role, "exp": expire}
    if identity_id is not None:
        claims["identity_id"] = str(identity_id)
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> CurrentUser:
    """Lève ValueError si le token est invalide, expiré ou incomplet."""
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as exc:
        raise ValueError(f"Token invalide : {exc}") from exc

    subject = claims.get("sub")
    role = claims.get("role")
    if not subject or role not in VALID_ROLES:
        raise ValueError("Token incomplet.")

    identity_id = None
    if claims.get("identity_id"):
        try:
            identity_id = uuid.UUID(claims["identity_id"])
        except ValueError as exc:
            raise ValueError("Token incomplet.") from exc

    return CurrentUser(user_id=subject, role=role, identity_id=identity_id)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> CurrentUser:
    """Dépendance FastAPI : 401 si le token est absent ou invalide."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Accès refusé.",
                            headers={"WWW-Authenticate": "Bearer"})
    try:
        return decode_access_token(credentials.credentials, settings)
    except ValueError:
        raise HTTPException(status_code=401, detail="Accès refusé.",
                            headers={"WWW-Authenticate": "Bearer"})


def require_roles(*roles: str):
    """Fabrique une dépendance qui n'accepte que les rôles donnés (403 sinon)."""
    allowed = set(roles)

    def checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in allowed:
            raise HTTPException(status_code=403, detail="Action non autorisée pour ce rôle.")
        return user

    return checker
