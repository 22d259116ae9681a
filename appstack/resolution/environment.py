"""Environment variable and secret reference resolution.

Expands the shorthand environment toggles (``region``, ``node``, ``s3`` and
``database``) into concrete name/value pairs, merges custom variables, and
qualifies every secret reference against the secret-name to ARN lookup.

Secret references take the form ``name`` or ``name:json.key``. A reference
that already starts with ``arn:`` is passed through; only a trailing JSON key
gets the ``::`` version suffix appended, matching the ``valueFrom`` format ECS
expects (``<arn>:<json-key>:<version-stage>:<version-id>``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

from appstack.resolution.errors import ConfigurationError, Issue, IssueRules, SecretReferenceError
from appstack.resolution.models import DatabaseSpec, DatabaseValue, ProjectSpec
from appstack.resolution.normalizer import NormalizedEntity

DEFAULT_REGION_VARIABLE = "AWS_REGION"
NODE_ENV_VARIABLE = "NODE_ENV"
DEFAULT_BUCKET_VARIABLE = "S3_BUCKET"
DEFAULT_DATABASE_VARIABLE = "DATABASE_URL"
DATABASE_SECRET_KEY = "DATABASE_URL_ACTIVE"

# arn:partition:service:region:account:secret:name-suffix
_ARN_FIELDS = 7


@dataclass(frozen=True)
class EnvironmentVariable:
    name: str
    value: str


@dataclass(frozen=True)
class SecretReference:
    """Environment variable backed by a fully-qualified secret ARN."""

    name: str
    value_from: str

    @property
    def secret_arn(self) -> str:
        return ":".join(self.value_from.split(":")[:_ARN_FIELDS])


@dataclass(frozen=True)
class DatabaseBinding:
    name: str
    secret: str


def default_database_secret(project: ProjectSpec) -> str:
    """Reference to the project's database URL secret."""
    return f"{project.database_secret}:{DATABASE_SECRET_KEY}"


def canonical_database(value: DatabaseValue, *, default_secret: str) -> Optional[DatabaseBinding]:
    """Collapse the ``database`` shorthand forms into one binding.

    ``true`` -> ``DATABASE_URL`` bound to the default secret; a string names the
    variable; an object may override either part.
    """
    if value is None or value is False:
        return None
    if value is True:
        return DatabaseBinding(DEFAULT_DATABASE_VARIABLE, default_secret)
    if isinstance(value, DatabaseSpec):
        return DatabaseBinding(value.name or DEFAULT_DATABASE_VARIABLE, value.secret or default_secret)
    return DatabaseBinding(str(value), default_secret)


def split_secret_reference(reference: str) -> Tuple[str, Optional[str], bool]:
    """Return ``(identifier, json_key, is_arn)`` for a secret reference."""
    text = str(reference).strip()
    if text.startswith("arn:"):
        parts = text.split(":")
        arn = ":".join(parts[:_ARN_FIELDS])
        json_key = ":".join(parts[_ARN_FIELDS:]) or None
        return arn, json_key, True
    identifier, _, json_key = text.partition(":")
    return identifier, json_key or None, False


def qualify_secret_reference(
    reference: str,
    secret_arns: Mapping[str, str],
    *,
    entity: Optional[str] = None,
    field: str = "secrets",
    kind: Optional[str] = None,
) -> str:
    """Turn a secret reference into the canonical ``valueFrom`` string."""
    identifier, json_key, is_arn = split_secret_reference(reference)
    if is_arn:
        text = str(reference).strip()
        # A key with version fields already attached is used verbatim.
        if json_key is None or ":" in json_key:
            return text
        return f"{identifier}:{json_key}::"

    arn = secret_arns.get(identifier)
    if not arn:
        raise SecretReferenceError(identifier, entity=entity, field=field, kind=kind)
    if json_key:
        return f"{arn}:{json_key}::"
    return arn


def _toggle_variables(
    entity: NormalizedEntity, *, project: ProjectSpec, bucket_id: Optional[str]
) -> Dict[str, str]:
    values: Dict[str, str] = {}

    # Lambda gets AWS_REGION from the runtime.
    if not entity.is_lambda and entity.region not in (None, False):
        name = DEFAULT_REGION_VARIABLE if entity.region is True else str(entity.region)
        values[name] = project.region

    if entity.node not in (None, False):
        values[NODE_ENV_VARIABLE] = project.environment if entity.node is True else str(entity.node)

    if project.s3 and bucket_id and entity.s3 not in (None, False):
        name = DEFAULT_BUCKET_VARIABLE if entity.s3 is True else str(entity.s3)
        values[name] = bucket_id

    return values


def resolve_variables(
    entity: NormalizedEntity, *, project: ProjectSpec, bucket_id: Optional[str] = None
) -> Tuple[EnvironmentVariable, ...]:
    """Plain environment variables: toggles first, then custom variables by name."""
    values = _toggle_variables(entity, project=project, bucket_id=bucket_id)
    for name in sorted(entity.variables):
        values[name] = entity.variables[name]
    return tuple(EnvironmentVariable(name, value) for name, value in values.items())


def resolve_secrets(
    entity: NormalizedEntity,
    secret_arns: Mapping[str, str],
    *,
    project: ProjectSpec,
) -> Tuple[SecretReference, ...]:
    """Secret-backed variables: declared secrets by name, then the database URL."""
    qualified: Dict[str, str] = {}
    for name in sorted(entity.secrets):
        qualified[name] = qualify_secret_reference(
            entity.secrets[name], secret_arns, entity=entity.name, field=f"secrets.{name}", kind=entity.kind
        )

    binding = canonical_database(entity.database, default_secret=default_database_secret(project))
    if binding is not None:
        value_from = qualify_secret_reference(
            binding.secret, secret_arns, entity=entity.name, field="environment.database", kind=entity.kind
        )
        if binding.name in qualified:
            policy = project.secret_collisions
            if policy == "error":
                raise ConfigurationError(
                    [
                        Issue(
                            entity=entity.name,
                            field=f"secrets.{binding.name}",
                            rule=IssueRules.SECRET_COLLISION,
                            message="collides with the database secret variable",
                            kind=entity.kind,
                        )
                    ]
                )
            if policy == "database_wins":
                del qualified[binding.name]
                qualified[binding.name] = value_from
        else:
            qualified[binding.name] = value_from

    return tuple(SecretReference(name, value_from) for name, value_from in qualified.items())


def resolve_environment(
    entity: NormalizedEntity,
    secret_arns: Mapping[str, str],
    *,
    project: ProjectSpec,
    bucket_id: Optional[str] = None,
) -> Tuple[Tuple[EnvironmentVariable, ...], Tuple[SecretReference, ...]]:
    """Return the entity's plain variables and secret references.

    Secrets are written after plain variables, so a plain variable with the
    same name as a secret is dropped and each name appears once.
    """
    variables = resolve_variables(entity, project=project, bucket_id=bucket_id)
    secrets = resolve_secrets(entity, secret_arns, project=project)
    secret_names = {secret.name for secret in secrets}
    return tuple(variable for variable in variables if variable.name not in secret_names), secrets
