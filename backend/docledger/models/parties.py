from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class _PartyMixin:
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def snapshot(self) -> dict:
        """Copied onto documents at creation; later edits never rewrite history."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
        }

    def to_dict(self) -> dict:
        return {
            **self.snapshot(),
            "tenant_id": self.tenant_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Client(_PartyMixin, db.Model):
    __tablename__ = "clients"
    __table_args__ = (
        db.Index("ix_clients_tenant_name", "tenant_id", "name"),
        {"sqlite_autoincrement": True},
    )

    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Client id={self.id} name={self.name!r} tenant_id={self.tenant_id}>"


class Supplier(_PartyMixin, db.Model):
    __tablename__ = "suppliers"
    __table_args__ = (
        db.Index("ix_suppliers_tenant_name", "tenant_id", "name"),
        {"sqlite_autoincrement": True},
    )

    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r} tenant_id={self.tenant_id}>"
