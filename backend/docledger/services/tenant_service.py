# Overview: Tenants and the party records (clients, suppliers) documents snapshot from.

"""
Tenant & Party Service

MULTI-TENANT: every lookup here takes tenant_id and filters on it. A party id
from another tenant is reported as not found, never leaked.

Clients and suppliers carry contact fields only. Documents copy a snapshot of the
party at creation and never read the live row again for display.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import DocumentNotFound, ValidationError
from ..extensions import db
from ..models import Client, Supplier, Tenant
from ..validation import clean_text
from .concurrency import run_with_retry


def create_tenant(*, name: str, code: str) -> Tenant:
    name = clean_text(name, "name", max_length=255, required=True)
    code = clean_text(code, "code", max_length=64, required=True).upper()

    def _op() -> Tenant:
        tenant = Tenant(name=name, code=code, is_active=True)
        db.session.add(tenant)
        try:
            db.session.flush()
        except IntegrityError:
            raise ValidationError("Tenant code already exists", {"code": code})
        db.session.commit()
        return tenant

    return run_with_retry(_op)


def list_tenants() -> list[Tenant]:
    return Tenant.query.order_by(Tenant.id.asc()).all()


def require_tenant(tenant_id) -> Tenant:
    tenant = db.session.get(Tenant, tenant_id) if tenant_id else None
    if tenant is None or not tenant.is_active:
        raise DocumentNotFound("Tenant not found", {"tenant_id": tenant_id})
    return tenant


def _create_party(model, *, tenant_id: int, name, email=None, phone=None):
    require_tenant(tenant_id)
    party = model(
        tenant_id=tenant_id,
        name=clean_text(name, "name", max_length=255, required=True),
        email=clean_text(email, "email", max_length=255) or None,
        phone=clean_text(phone, "phone", max_length=64) or None,
        is_active=True,
    )

    def _op():
        db.session.add(party)
        db.session.commit()
        return party

    return run_with_retry(_op)


def create_client(*, tenant_id: int, name: str, email: str | None = None, phone: str | None = None) -> Client:
    return _create_party(Client, tenant_id=tenant_id, name=name, email=email, phone=phone)


def create_supplier(*, tenant_id: int, name: str, email: str | None = None, phone: str | None = None) -> Supplier:
    return _create_party(Supplier, tenant_id=tenant_id, name=name, email=email, phone=phone)


def get_client(tenant_id: int, client_id) -> Client:
    client = Client.query.filter_by(tenant_id=tenant_id, id=client_id).first() if client_id else None
    if client is None:
        raise DocumentNotFound("Client not found", {"client_id": client_id})
    return client


def get_supplier(tenant_id: int, supplier_id) -> Supplier:
    supplier = Supplier.query.filter_by(tenant_id=tenant_id, id=supplier_id).first() if supplier_id else None
    if supplier is None:
        raise DocumentNotFound("Supplier not found", {"supplier_id": supplier_id})
    return supplier
