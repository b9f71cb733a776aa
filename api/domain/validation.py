# SPDX-License-Identifier: Apache-2.0

"""
Shared validation result container for domain rule checks.
"""

from dataclasses import dataclass, field
from typing import List

from .errors import ValidationFailedError


@dataclass
class ValidationResult:
    """Result of a domain validation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: List[str], warnings: List[str] = None) -> "ValidationResult":
        return cls(is_valid=len(errors) == 0, errors=errors, warnings=warnings or [])

    def raise_for_errors(self) -> None:
        """Raise ValidationFailedError carrying every collected message."""
        if not self.is_valid:
            raise ValidationFailedError("; ".join(self.errors))
