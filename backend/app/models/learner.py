"""
Modèle SQLAlchemy pour les apprenants.
Le matricule et le contenu du QR code sont fixés à la création.
"""

import uuid
from sqlalchemy import Column, DateTime, ForeignKey, String, Text, Uuid, func

from app.database import Base


class Learner(Base):
    __tablename__ = "learners"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    matricule = Column(String(50), unique=True, nullable=False)   # Ex: "APP-3F9A12BC"
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    photo_url = Column(String(500), nullable=True)
    referential_id = Column(Uuid, ForeignKey("referentials.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), nullable=False, default="ACTIVE")  # ACTIVE, INACTIVE, SUSPENDED
    qr_payload = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
