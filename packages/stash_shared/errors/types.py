"""Canonical error shapes for Stash components.

``ErrorDetail`` is the serializable form of a failure. Its ``code`` is what
completion logs, sync results and user notifications carry, so none of them
hold live exception objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping


class ErrorCategory(str, Enum):
    """High-level error categories shared across component boundaries."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    POLICY = "policy"
    DEPENDENCY = "dependency"
    INTEGRITY = "integrity"
    INTERNAL = "internal"


@dataclass(frozen=True)
class ErrorDetail:
    """Structured error object used in results, metrics and notifications."""

    code: str
    message: str
    category: ErrorCategory
    retryable: bool = False
    metadata: Mapping[str, str] = field(default_factory=dict)
