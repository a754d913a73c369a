# Overview: Client lookup/create consumed by the sale engine.

from __future__ import annotations

from ..errors import ErrorKind, PosError
from ..extensions import db
from ..models import Client
from ..time_utils import utcnow
from ..validation import require_text


class ClientError(PosError):
    """Raised for client lookup/create errors."""


def validate_client_data(name, phone=None) -> tuple[str, str | None]:
    name = require_text(name, "client name")
    if phone is not None and not isinstance(phone, str):
        phone = str(phone)
    phone = phone.strip() if phone and phone.strip() else None
    if phone and len(phone) > 20:
        raise ClientError("client phone must be at most 20 characters", details={"field": "phone"})
    return name, phone


def get_client(client_id: int) -> Client:
    client = (
        db.session.query(Client)
        .filter(Client.id == client_id, Client.deleted_at.is_(None))
        .first()
    )
    if client is None:
        raise ClientError(
            f"Client {client_id} not found",
            ErrorKind.CLIENT_NOT_FOUND,
            details={"client_id": client_id},
        )
    return client


def create_client(name: str, phone: str | None = None, *, commit: bool = True) -> Client:
    """
    Create a client.

    With commit=False the row is only flushed so it joins the caller's
    transaction (inline client creation during a sale).
    """
    name, phone = validate_client_data(name, phone)
    client = Client(name=name, phone=phone, created_at=utcnow())
    db.session.add(client)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return client
