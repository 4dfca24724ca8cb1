"""
Modèle SQLAlchemy pour les passages au restaurant (petit-déjeuner, déjeuner).
"""

import uuid
from sqlalchemy import Column, Date, DateTime, ForeignKey, String, UniqueConstraint, Uuid, func

from app.database import Base


class MealScan(Base):
    __tablename__ = "meal_scans"
    __table_args__ = (
        UniqueConstraint("learner_id", "date", "meal_type", name="uq_meal_scan_learner_date_type"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    learner_id = Column(Uuid, ForeignKey("learners.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    meal_type = Column(String(20), nullable=False)    # BREAKFAST, LUNCH
    scanned_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
