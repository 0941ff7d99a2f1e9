"""
Error kinds raised by the scoring/status core.

- ShowjumpError: base for every failure the core reports
- ValidationError: missing/invalid field or enum value (never retried)
- InvalidRuleParameters: class configuration insufficient for its rule
- NotFound: referenced show/class/entry/score absent
- StoreFailure: persistence layer error
- ConfigurationError: store backend missing or misconfigured
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ErrorDetail:
    """Structured failure handed across the service boundary."""

    kind: str
    message: str
    status_code: int


class ShowjumpError(Exception):
    """Base exception for all core errors."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> ErrorDetail:
        return ErrorDetail(kind=self.kind, message=self.message, status_code=self.status_code)


class ValidationError(ShowjumpError):
    kind = "validation_error"
    status_code = 400


class InvalidRuleParameters(ShowjumpError):
    """The class lacks a field its rule's scoring formula requires."""

    kind = "invalid_rule_parameters"
    status_code = 400

    def __init__(self, rule: str, missing: tuple[str, ...]):
        self.rule = rule
        self.missing = missing
        super().__init__(
            f"class rule {rule} requires {', '.join(missing)} to be configured"
        )


class NotFound(ShowjumpError):
    kind = "not_found"
    status_code = 404

    def __init__(self, table: str, entity_id: str):
        self.table = table
        self.entity_id = entity_id
        super().__init__(f"{table} record {entity_id} not found")


class StoreFailure(ShowjumpError):
    kind = "store_failure"
    status_code = 500


class ConfigurationError(StoreFailure):
    kind = "configuration_error"
