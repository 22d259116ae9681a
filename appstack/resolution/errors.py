"""Error and issue types raised by configuration resolution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple


class IssueRules:
    SCHEMA = "schema"
    DUPLICATE_NAME = "duplicate_name"
    SOURCE_IMAGE_EXCLUSIVE = "source_image_exclusive"
    HTTP_ROUTING_EXCLUSIVE = "http_routing_exclusive"
    SUBDOMAIN_DEPTH = "subdomain_depth"
    DOMAIN_REQUIRED = "domain_required"
    DUPLICATE_ROUTE = "duplicate_route"
    MULTIPLE_CATCH_ALL = "multiple_catch_all"
    MISSING_SECRET = "missing_secret"
    SECRET_COLLISION = "secret_collision"
    SCHEDULE_EXPRESSION = "schedule_expression"

    # Accepted, but surfaced to the operator
    SPARSE_PORT_RANGE = "sparse_port_range"
    REDUNDANT_PERMISSIONS_OVERRIDE = "redundant_permissions_override"
    S3_DISABLED = "s3_disabled"
    VARIABLE_SHADOWED = "variable_shadowed"


ERROR = "error"
WARNING = "warning"


@dataclass(frozen=True)
class Issue:
    """A single problem found in the configuration tree."""

    entity: Optional[str]
    field: str
    rule: str
    message: str
    severity: str = ERROR
    kind: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity == ERROR

    def format(self) -> str:
        scope = "project"
        if self.entity:
            scope = f"{self.kind}/{self.entity}" if self.kind else self.entity
        return f"{scope}: {self.field}: {self.message} [{self.rule}]"


class ConfigurationError(ValueError):
    """Raised when the configuration tree cannot be resolved.

    Carries every error detected in the pass so operators can fix them in one
    cycle.
    """

    def __init__(self, issues: Iterable[Issue]) -> None:
        self.issues: Tuple[Issue, ...] = tuple(issues)
        lines = [issue.format() for issue in self.issues]
        count = len(lines)
        header = f"{count} configuration error{'s' if count != 1 else ''}"
        super().__init__("\n".join([header] + [f"  - {line}" for line in lines]))

    @property
    def entities(self) -> Tuple[str, ...]:
        seen = []
        for issue in self.issues:
            if issue.entity and issue.entity not in seen:
                seen.append(issue.entity)
        return tuple(seen)


class SecretReferenceError(ConfigurationError):
    """Raised when a secret reference names an unknown secret."""

    def __init__(self, secret_name: str, *, entity: Optional[str], field: str, kind: Optional[str] = None) -> None:
        self.secret_name = secret_name
        super().__init__(
            [
                Issue(
                    entity=entity,
                    field=field,
                    rule=IssueRules.MISSING_SECRET,
                    message=f"secret '{secret_name}' is not present in the secret lookup",
                    kind=kind,
                )
            ]
        )
