from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator


class Settings(BaseModel):
    """Typed application settings built from environment variables."""

    # Database settings
    database_url: str = "redis://localhost:6379/0"

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    api_debug: bool = False
    api_cors_origins: list[str] = ["*"]

    # Application settings
    app_name: str = "lnchat"
    app_version: str = "1.0.0"

    # Offer settings
    public_url: str = "http://127.0.0.1:8080"
    min_sendable: int = 10000
    max_sendable: int = 10000
    comment_allowed: int = 144
    offer_description: str = "Comment on lnurl-pay chat 📝"
    lightning_address: Optional[str] = None
    # None disables payer data entirely; otherwise whether "name" is mandatory
    payer_name_mandatory: Optional[bool] = None

    # LND settings
    lnd_rest_url: str = "https://127.0.0.1:8080"
    lnd_macaroon_hex: Optional[str] = None
    lnd_tls_cert_path: Optional[str] = None
    invoice_expiry: int = 3600

    # Settlement / feed settings
    settlement_ttl_seconds: float = 3600.0
    feed_limit: int = 1000
    broadcast_send_timeout: float = 5.0

    @field_validator("public_url", "lnd_rest_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("min_sendable", "max_sendable")
    @classmethod
    def validate_positive_amount(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Sendable amounts must be positive integers (msat)")
        return v

    @field_validator("comment_allowed")
    @classmethod
    def validate_comment_allowed(cls, v: int) -> int:
        if not 1 <= v <= 2000:
            raise ValueError("comment_allowed must be between 1 and 2000")
        return v

    @field_validator("lightning_address")
    @classmethod
    def validate_lightning_address(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        username, sep, domain = v.partition("@")
        if not sep or not username or not domain:
            raise ValueError(f"Invalid lightning address: {v}")
        return v.lower()

    @model_validator(mode="after")
    def validate_amount_bounds(self) -> "Settings":
        if self.min_sendable > self.max_sendable:
            raise ValueError("min_sendable cannot be greater than max_sendable")
        return self

    @property
    def offer_url(self) -> str:
        return f"{self.public_url}/api/send-text"

    @property
    def callback_url(self) -> str:
        return f"{self.public_url}/api/send-text/callback"


def _read_macaroon_hex() -> Optional[str]:
    macaroon_hex = os.environ.get("LND_MACAROON_HEX")
    if macaroon_hex:
        return macaroon_hex
    macaroon_path = os.environ.get("LND_MACAROON_PATH")
    if not macaroon_path:
        return None
    with open(macaroon_path, "rb") as f:
        return f.read().hex()


def _optional_bool(name: str) -> Optional[bool]:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return None
    return raw.lower() == "true"


def get_settings() -> Settings:
    """Return typed settings instance sourced from env vars."""
    return Settings(
        database_url=os.environ.get("DATABASE_URL", "redis://localhost:6379/0"),
        api_host=os.environ.get("API_HOST", "0.0.0.0"),
        api_port=int(os.environ.get("API_PORT", "8080")),
        api_debug=os.environ.get("API_DEBUG", "false").lower() == "true",
        api_cors_origins=os.environ.get("API_CORS_ORIGINS", "*").split(","),
        app_name=os.environ.get("APP_NAME", "lnchat"),
        app_version=os.environ.get("APP_VERSION", "1.0.0"),
        public_url=os.environ.get("PUBLIC_URL", "http://127.0.0.1:8080"),
        min_sendable=int(os.environ.get("MIN_SENDABLE", "10000")),
        max_sendable=int(os.environ.get("MAX_SENDABLE", "10000")),
        comment_allowed=int(os.environ.get("COMMENT_ALLOWED", "144")),
        offer_description=os.environ.get(
            "OFFER_DESCRIPTION", "Comment on lnurl-pay chat 📝"
        ),
        lightning_address=os.environ.get("LIGHTNING_ADDRESS") or None,
        payer_name_mandatory=_optional_bool("PAYER_NAME_MANDATORY"),
        lnd_rest_url=os.environ.get("LND_REST_URL", "https://127.0.0.1:8080"),
        lnd_macaroon_hex=_read_macaroon_hex(),
        lnd_tls_cert_path=os.environ.get("LND_TLS_CERT_PATH") or None,
        invoice_expiry=int(os.environ.get("INVOICE_EXPIRY", "3600")),
        settlement_ttl_seconds=float(os.environ.get("SETTLEMENT_TTL_SECONDS", "3600")),
        feed_limit=int(os.environ.get("FEED_LIMIT", "1000")),
        broadcast_send_timeout=float(os.environ.get("BROADCAST_SEND_TIMEOUT", "5")),
    )
