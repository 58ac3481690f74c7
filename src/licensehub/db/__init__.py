from licensehub.db.database import Database
from licensehub.db.models import AgentRow, Base, CustomerRow, Fixed, PayoutRow, SaleRow

__all__ = [
    "Database",
    "Base",
    "Fixed",
    "AgentRow",
    "CustomerRow",
    "SaleRow",
    "PayoutRow",
]
