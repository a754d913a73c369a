from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


# Capability strings checked by the HTTP layer (never by the core services)
CAP_CREATE_SALE = "CREATE_SALE"
CAP_VOID_SALE = "VOID_SALE"
CAP_MANAGE_CASH = "MANAGE_CASH"
CAP_DELETE_CASH_MOVEMENT = "DELETE_CASH_MOVEMENT"
CAP_CLOSE_CASH = "CLOSE_CASH"
CAP_VIEW_REPORTS = "VIEW_REPORTS"

ALL_CAPABILITIES = (
    CAP_CREATE_SALE,
    CAP_VOID_SALE,
    CAP_MANAGE_CASH,
    CAP_DELETE_CASH_MOVEMENT,
    CAP_CLOSE_CASH,
    CAP_VIEW_REPORTS,
)


class User(db.Model):
    """
    Operator of the point of sale.

    Permissions are a plain list of capability strings (which screens and
    actions a non-admin may use). Admins implicitly hold every capability.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(128), nullable=False)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    capabilities = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def has_capability(self, code: str) -> bool:
        if self.is_admin:
            return True
        return code in set(self.capabilities or ())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "is_admin": self.is_admin,
            "is_active": self.is_active,
            "capabilities": sorted(self.capabilities or []),
            "created_at": to_utc_z(self.created_at),
        }
