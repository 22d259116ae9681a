"""Merge global and per-entity permission settings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from appstack.resolution.models import PermissionsOverride, PermissionsSpec, StatementSpec


@dataclass(frozen=True)
class ResolvedPermissions:
    s3: bool
    ses: bool
    fargate: bool
    statements: Tuple[StatementSpec, ...]
    custom_role: bool = False

    def same_grants(self, other: "ResolvedPermissions") -> bool:
        """True when both sets grant the same access, ignoring role placement."""
        return (self.s3, self.ses, self.fargate, self.statements) == (
            other.s3,
            other.ses,
            other.fargate,
            other.statements,
        )


def global_permissions(spec: PermissionsSpec) -> ResolvedPermissions:
    return ResolvedPermissions(
        s3=spec.s3,
        ses=spec.ses,
        fargate=spec.fargate,
        statements=tuple(spec.statements),
    )


def merge_permissions(base: PermissionsSpec, override: Optional[PermissionsOverride]) -> ResolvedPermissions:
    """Merge an entity override onto the global permission set.

    A null override shares the global role. Any override, even one that
    repeats the defaults, gets its own role: booleans replace the global value
    when set and statements are appended after the global ones.
    """
    if override is None:
        return global_permissions(base)

    return ResolvedPermissions(
        s3=base.s3 if override.s3 is None else override.s3,
        ses=base.ses if override.ses is None else override.ses,
        fargate=base.fargate if override.fargate is None else override.fargate,
        statements=tuple(base.statements) + tuple(override.statements),
        custom_role=True,
    )
