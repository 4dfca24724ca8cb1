"""
Source unique de l'heure courante pour les pointages.
L'heure n'est jamais lue dans le corps d'une requête.
"""

from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

from app.config import settings

Clock = Callable[[], datetime]


def local_now() -> datetime:
    """Heure locale du centre (naïve), dans le fuseau TIMEZONE."""
    return datetime.now(ZoneInfo(settings.TIMEZONE)).replace(tzinfo=None)


def get_clock() -> Clock:
    """Dépendance FastAPI : horloge serveur (remplacée par une horloge fixe en test)."""
    return local_now
