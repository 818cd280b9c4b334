from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Outlet(db.Model):
    """
    A pharmacy branch. Stock and sales are always scoped to one outlet.
    """
    __tablename__ = "outlets"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_outlets_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Outlet id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "address": self.address,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
