# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.

from app.models.referential import Referential  # noqa: F401 : doit précéder learner et coach
from app.models.learner import Learner  # noqa: F401
from app.models.coach import Coach  # noqa: F401
from app.models.attendance import AttendanceRecord  # noqa: F401
from app.models.meal_scan import MealScan  # noqa: F401
