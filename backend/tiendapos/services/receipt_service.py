# Overview: Read-only ticket projection of a posted sale.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Client, User
from ..time_utils import to_ticket_date
from ..validation import format_cents
from .sales_service import get_sale


GENERIC_CLIENT_NAME = "Público en general"

PAYMENT_METHOD_LABELS = {
    "cash": "Efectivo",
    "card": "Tarjeta",
    "transfer": "Transferencia",
}


@dataclass(frozen=True)
class ReceiptSettings:
    """Business data printed on every ticket."""

    business_name: str = ""
    address: str = ""
    phone: str = ""
    footer_message: str = ""

    @classmethod
    def from_config(cls, config) -> "ReceiptSettings":
        return cls(
            business_name=config.get("BUSINESS_NAME", ""),
            address=config.get("BUSINESS_ADDRESS", ""),
            phone=config.get("BUSINESS_PHONE", ""),
            footer_message=config.get("RECEIPT_FOOTER", ""),
        )


def _client_name(client_id: int | None) -> str:
    if client_id is None:
        return GENERIC_CLIENT_NAME
    client = db.session.get(Client, client_id)
    return client.name if client is not None else GENERIC_CLIENT_NAME


def _cashier_name(user_id: int | None) -> str:
    if user_id is None:
        return ""
    user = db.session.get(User, user_id)
    if user is None:
        return ""
    return user.name or user.username


def build_receipt(sale_id: int, settings: ReceiptSettings) -> dict:
    """
    Ticket data for a sale, voided or not.

    Names are resolved at read time, so a renamed client shows the new name
    on a reprint. Prices come from the sale's own snapshots.
    """
    sale = get_sale(sale_id)

    return {
        "folio": sale.folio,
        "fecha": to_ticket_date(sale.created_at),
        "cliente": _client_name(sale.client_id),
        "cajero": _cashier_name(sale.cashier_user_id),
        "items": [
            {
                "descripcion": d.description,
                "cantidad": d.quantity,
                "precio": format_cents(d.unit_price_cents),
                "total": format_cents(d.line_total_cents),
            }
            for d in sale.details
        ],
        "subtotal": format_cents(sale.subtotal_cents),
        "impuesto": format_cents(sale.tax_cents),
        "total": format_cents(sale.total_cents),
        "pago": format_cents(sale.amount_tendered_cents),
        "cambio": format_cents(sale.change_cents),
        "metodo_pago": PAYMENT_METHOD_LABELS.get(sale.payment_method, sale.payment_method),
        "anulada": bool(sale.voided),
        "negocio": {
            "nombre": settings.business_name,
            "direccion": settings.address,
            "telefono": settings.phone,
            "mensaje_pie": settings.footer_message,
        },
    }
