"""
Verdant Backend: ORM Models
===========================

Importing this package registers every table on `Base.metadata`
(Alembic autogenerate and the test suite's `create_all` rely on that).
"""

from verdant.models.care_log import CareLog
from verdant.models.plant import Plant
from verdant.models.reminder import Reminder

__all__ = ["CareLog", "Plant", "Reminder"]
