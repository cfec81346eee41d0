"""
JSON Schema Contract Validators

Записи событий на notification boundary проверяются против формального
контракта (Draft 2020-12) до того, как попадут в журнал.

Схемы:
- issuance_event.json — запись {eventType, primaryActor, amount,
  secondaryAsset, secondaryAmount, resultingTotal, timestamp}
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Sequence

import jsonschema
from jsonschema import Draft202012Validator, ValidationError
from jsonschema.exceptions import best_match

SCHEMA_DIR = Path(__file__).parent / "schema"


# =============================================================================
# SCHEMA LOADER
# =============================================================================


class SchemaLoader:
    """Загрузка схем из каталога пакета с meta-validation и кэшем."""

    def __init__(self, schema_dir: Optional[Path] = None):
        self._schema_dir = schema_dir or SCHEMA_DIR
        if not self._schema_dir.is_dir():
            raise RuntimeError(f"Schema directory not found: {self._schema_dir}")
        self._schemas: Dict[str, Dict[str, Any]] = {}

    @property
    def schema_dir(self) -> Path:
        return self._schema_dir

    def load_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Args:
            schema_name: имя схемы без расширения ('issuance_event')

        Raises:
            FileNotFoundError: Нет файла схемы
            ValueError: Схема не проходит meta-validation
        """
        cached = self._schemas.get(schema_name)
        if cached is not None:
            return cached

        schema_path = self._schema_dir / f"{schema_name}.json"
        if not schema_path.is_file():
            raise FileNotFoundError(f"Schema not found: {schema_path}")

        schema = json.loads(schema_path.read_text(encoding="utf-8"))
        try:
            Draft202012Validator.check_schema(schema)
        except jsonschema.SchemaError as e:
            raise ValueError(f"Invalid JSON Schema in {schema_path.name}: {e.message}") from e

        self._schemas[schema_name] = schema
        return schema


@lru_cache(maxsize=None)
def default_loader() -> SchemaLoader:
    return SchemaLoader()


# =============================================================================
# CONTRACT VALIDATORS
# =============================================================================


class ContractValidator:
    """Валидатор записей одной схемы."""

    def __init__(self, schema_name: str, loader: Optional[SchemaLoader] = None):
        self.schema_name = schema_name
        self.schema = (loader or default_loader()).load_schema(schema_name)
        self._validator = Draft202012Validator(self.schema)

    def validate(self, record: Dict[str, Any]) -> None:
        """
        Raises:
            ValidationError: Наиболее релевантная ошибка записи (best_match)
        """
        error = best_match(self._validator.iter_errors(record))
        if error is not None:
            raise error

    def validate_batch(self, records: Sequence[Dict[str, Any]]) -> None:
        """Проверка всей пачки; ни одна запись не принимается, пока не валидны все."""
        for record in records:
            self.validate(record)

    def is_valid(self, record: Dict[str, Any]) -> bool:
        return self._validator.is_valid(record)

    def iter_errors(self, record: Dict[str, Any]) -> Iterator[ValidationError]:
        return self._validator.iter_errors(record)


class IssuanceEventValidator(ContractValidator):
    def __init__(self, loader: Optional[SchemaLoader] = None):
        super().__init__("issuance_event", loader)


def validate_issuance_event(record: Dict[str, Any]) -> None:
    """
    Валидация одной записи события.

    Raises:
        ValidationError: Запись не соответствует контракту
    """
    IssuanceEventValidator().validate(record)


__all__ = [
    "SCHEMA_DIR",
    "SchemaLoader",
    "ContractValidator",
    "IssuanceEventValidator",
    "ValidationError",
    "default_loader",
    "validate_issuance_event",
]
