"""Формальные контракты записей событий (JSON Schema)."""

from .validators import (
    SCHEMA_DIR,
    ContractValidator,
    IssuanceEventValidator,
    SchemaLoader,
    default_loader,
    validate_issuance_event,
)

__all__ = [
    "SCHEMA_DIR",
    "SchemaLoader",
    "ContractValidator",
    "IssuanceEventValidator",
    "default_loader",
    "validate_issuance_event",
]
