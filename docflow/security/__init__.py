"""Role → capability checks for the review workflow."""

from docflow.security.permissions import (  # noqa: F401
    PERMISSION_MATRIX,
    Capability,
    Role,
    has_capability,
    require_capability,
)

__all__ = ["PERMISSION_MATRIX", "Capability", "Role", "has_capability", "require_capability"]
