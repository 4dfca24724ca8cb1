"""
Modèle SQLAlchemy pour les référentiels (programmes de formation).
Un référentiel sert de cohorte pour les rapports de présence.
"""

import uuid
from sqlalchemy import Column, DateTime, String, Text, Time, Uuid, func

from app.database import Base


class Referential(Base):
    __tablename__ = "referentials"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(150), unique=True, nullable=False)
    code = Column(String(20), nullable=True)                # Ex: "DSD"
    description = Column(Text, nullable=True)
    late_cutoff = Column(Time, nullable=True)               # NULL = heure limite globale
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
