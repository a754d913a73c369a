# backend/tiendapos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/tiendapos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///tiendapos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Comma-separated browser origins allowed to call the API
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
        ).split(",")
        if origin.strip()
    ]

    # Folios look like "V-000123"
    SALE_FOLIO_PREFIX = os.environ.get("SALE_FOLIO_PREFIX", "V")
    DEFAULT_MIN_STOCK = int(os.environ.get("DEFAULT_MIN_STOCK", "5"))

    # Business data printed on tickets (read-only, injected into receipt building)
    BUSINESS_NAME = os.environ.get("BUSINESS_NAME", "Mi Tienda POS")
    BUSINESS_ADDRESS = os.environ.get("BUSINESS_ADDRESS", "")
    BUSINESS_PHONE = os.environ.get("BUSINESS_PHONE", "")
    RECEIPT_FOOTER = os.environ.get("RECEIPT_FOOTER", "¡Gracias por su compra!")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_LEVEL = "DEBUG"
