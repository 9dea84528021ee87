"""
ORM models. Importing this package registers every table on `Base.metadata`,
which Alembic and the test suite rely on.
"""

from elabel.models.label import Label
from elabel.models.label_template import LabelTemplate
from elabel.models.user import User

__all__ = ["Label", "LabelTemplate", "User"]
