"""
Order error catalogue, loaded from registry.yaml.

Each entry maps an ``ORD-<DOMAIN>-NNN`` code to the HTTP status and the
client-safe message the error handlers render. The domain is read from the
code itself, so the YAML only carries what the handlers need.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List

import yaml

from assessment_orders.core.errors import CODE_PATTERN

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
VALID_DOMAINS = {"API", "DB", "SYS", "WRK"}
VALID_SEVERITIES = {"DEBUG", "INFO", "WARN", "ERROR", "CRITICAL"}
REQUIRED_FIELDS = ("code", "title", "severity", "http_status", "retryable", "safe_message")

DEFAULT_PATH = os.path.join(os.path.dirname(__file__), "registry.yaml")


@dataclass(frozen=True)
class ErrorEntry:
    code: str
    title: str
    severity: str
    http_status: int
    retryable: bool
    safe_message: str
    remediation: List[str] = field(default_factory=list)

    @property
    def domain(self) -> str:
        return self.code.split("-")[1]


class RegistryValidationError(Exception):
    """registry.yaml is malformed."""


def _parse_entry(idx: int, raw: Any) -> ErrorEntry:
    if not isinstance(raw, dict):
        raise RegistryValidationError(f"Entry {idx}: expected a mapping")

    missing = [name for name in REQUIRED_FIELDS if name not in raw]
    if missing:
        raise RegistryValidationError(f"Entry {idx} ({raw.get('code', '?')}): missing fields {missing}")

    code = raw["code"]
    if not isinstance(code, str) or not CODE_PATTERN.match(code):
        raise RegistryValidationError(f"Invalid code format: {code!r}")

    domain = code.split("-")[1]
    if domain not in VALID_DOMAINS:
        raise RegistryValidationError(f"{code}: unknown domain {domain!r}")

    if raw["severity"] not in VALID_SEVERITIES:
        raise RegistryValidationError(f"{code}: unknown severity {raw['severity']!r}")

    status = raw["http_status"]
    if not isinstance(status, int) or not 400 <= status <= 599:
        raise RegistryValidationError(f"{code}: http_status must be a 4xx/5xx integer, got {status!r}")

    return ErrorEntry(
        code=code,
        title=str(raw["title"]),
        severity=raw["severity"],
        http_status=status,
        retryable=bool(raw["retryable"]),
        safe_message=str(raw["safe_message"]),
        remediation=list(raw.get("remediation") or []),
    )


class ErrorRegistry:
    """Code -> ErrorEntry lookup backed by registry.yaml."""

    def __init__(self) -> None:
        self._entries: Dict[str, ErrorEntry] = {}

    def load(self, path: str = DEFAULT_PATH) -> None:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        version = data.get("schema_version")
        if version != SCHEMA_VERSION:
            raise RegistryValidationError(f"Unsupported schema_version {version!r} (expected {SCHEMA_VERSION})")

        raw_entries = data.get("errors")
        if not isinstance(raw_entries, list):
            raise RegistryValidationError("'errors' must be a list")

        entries: Dict[str, ErrorEntry] = {}
        for idx, raw in enumerate(raw_entries):
            entry = _parse_entry(idx, raw)
            if entry.code in entries:
                raise RegistryValidationError(f"Duplicate code: {entry.code}")
            entries[entry.code] = entry

        self._entries = entries
        logger.info("error_registry_loaded", extra={"count": len(entries)})

    def get(self, code: str) -> ErrorEntry | None:
        return self._entries.get(code)

    def lookup(self, code: str) -> ErrorEntry:
        """Like get(), but an unknown code raises KeyError."""
        try:
            return self._entries[code]
        except KeyError:
            raise KeyError(f"Unknown error code: {code!r}") from None

    def all_codes(self) -> list[str]:
        return sorted(self._entries)

    def codes_for_domain(self, domain: str) -> list[str]:
        return sorted(c for c, e in self._entries.items() if e.domain == domain)

    def __contains__(self, code: object) -> bool:
        return code in self._entries

    def __len__(self) -> int:
        return len(self._entries)


# Loaded by create_app()
error_registry = ErrorRegistry()
