"""
Error code system.

OrdersError is the base exception for all structured errors. Raise it with
an error code from registry.yaml and the error middleware produces a
structured JSON response.

Usage:
    from assessment_orders.core.errors import OrdersError
    raise OrdersError("ORD-API-001", detail="order 42 missing")
"""

from __future__ import annotations

import re

CODE_PATTERN = re.compile(r"^ORD-[A-Z]{2,6}-\d{3}$")


class OrdersError(Exception):
    """Structured application error tied to the error registry.

    Args:
        code: Registry error code, e.g. "ORD-DB-001".
        detail: Internal-only detail message (never exposed in production).
        context: Arbitrary key-value context for structured logging.
    """

    def __init__(
        self,
        code: str,
        detail: str | None = None,
        context: dict | None = None,
    ) -> None:
        if not CODE_PATTERN.match(code):
            raise ValueError(f"Invalid error code format: {code!r}")
        self.code = code
        self.detail = detail
        self.context = context or {}
        super().__init__(f"{code}: {detail}" if detail else code)
