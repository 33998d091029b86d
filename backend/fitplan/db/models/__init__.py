"""ORM models exposed for metadata discovery."""
from fitplan.db.models.completion_document import CompletionDocument
from fitplan.db.models.plan_document import PlanDocument
from fitplan.db.models.user import User

__all__ = [
    "CompletionDocument",
    "PlanDocument",
    "User",
]
