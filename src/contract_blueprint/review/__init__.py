"""Review support: user corrections to extracted fields."""

from .corrections import (
    CorrectionSet,
    FieldOverride,
    InvalidOverrideError,
    apply_overrides,
)

__all__ = [
    "CorrectionSet",
    "FieldOverride",
    "InvalidOverrideError",
    "apply_overrides",
]
