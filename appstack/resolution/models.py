"""Input schema for stack configuration trees using Pydantic v2.

The models mirror the operator-authored configuration (the equivalent of a
parsed variables file). Per-entity overrides keep track of which keys were
actually written so that "absent" and "explicit null" can be told apart
during normalization.
"""

from __future__ import annotations

import ipaddress
import re
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from appstack.resolution.errors import Issue, IssueRules

NAME_PATTERN = re.compile(r"^[a-z][a-z0-9-]{0,39}$")
ENV_VAR_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

Port = Annotated[int, Field(ge=0, le=65535)]
ToggleValue = Optional[Union[bool, str]]


class Presence(str, Enum):
    """Three states an optional override can be in."""

    UNSET = "unset"
    NULL = "null"
    VALUE = "value"


def presence(model: Optional[BaseModel], field: str) -> Presence:
    """Return whether ``field`` was omitted, explicitly null, or set on ``model``."""
    if model is None or field not in model.model_fields_set:
        return Presence.UNSET
    if getattr(model, field) is None:
        return Presence.NULL
    return Presence.VALUE


class _Spec(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


def _stringify_mapping(v: Any) -> Any:
    if not isinstance(v, Mapping):
        return v
    result: Dict[str, Any] = {}
    for key, value in v.items():
        if isinstance(value, bool):
            result[key] = "true" if value else "false"
        elif isinstance(value, (int, float)):
            result[key] = str(value)
        else:
            result[key] = value
    return result


def _check_variable_name(v: Any) -> Any:
    """Toggle strings become variable names; booleans and nulls pass through."""
    if isinstance(v, str) and not ENV_VAR_PATTERN.fullmatch(v):
        raise ValueError(f"invalid environment variable name '{v}'")
    return v


class DatabaseSpec(_Spec):
    name: Optional[str] = None
    secret: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _check_name(cls, v: Optional[str]) -> Optional[str]:  # type: ignore[override]
        return _check_variable_name(v)


DatabaseValue = Optional[Union[bool, str, DatabaseSpec]]


class EnvironmentSpec(_Spec):
    region: ToggleValue = None
    node: ToggleValue = None
    s3: ToggleValue = None
    database: DatabaseValue = None
    variables: Dict[str, str] = Field(default_factory=dict)

    @field_validator("region", "s3", "database")
    @classmethod
    def _check_toggle_names(cls, v: Any) -> Any:  # type: ignore[override]
        return _check_variable_name(v)

    @field_validator("variables", mode="before")
    @classmethod
    def _coerce_variables(cls, v: Any) -> Any:  # type: ignore[override]
        if v is None:
            return {}
        return _stringify_mapping(v)

    @field_validator("variables")
    @classmethod
    def _check_variable_names(cls, v: Dict[str, str]) -> Dict[str, str]:  # type: ignore[override]
        for key in v:
            if not ENV_VAR_PATTERN.fullmatch(key):
                raise ValueError(f"invalid environment variable name '{key}'")
        return v


class StatementSpec(_Spec):
    effect: Literal["Allow", "Deny"] = "Allow"
    actions: List[str] = Field(min_length=1)
    resources: List[str] = Field(default_factory=lambda: ["*"])
    conditions: Optional[Dict[str, Dict[str, Any]]] = None


class PermissionsSpec(_Spec):
    """Project-wide permission defaults."""

    s3: bool = False
    ses: bool = False
    fargate: bool = False
    statements: List[StatementSpec] = Field(default_factory=list)


class PermissionsOverride(_Spec):
    """Per-entity permission override; unset booleans inherit."""

    s3: Optional[bool] = None
    ses: Optional[bool] = None
    fargate: Optional[bool] = None
    statements: List[StatementSpec] = Field(default_factory=list)


class NetworkRuleSpec(_Spec):
    protocol: Literal["tcp", "udp", "icmp", "-1"] = "tcp"
    ports: List[Port] = Field(default_factory=list)
    cidrs: List[str] = Field(min_length=1)

    @field_validator("protocol", mode="before")
    @classmethod
    def _normalize_protocol(cls, v: Any) -> Any:  # type: ignore[override]
        if isinstance(v, str):
            text = v.strip().lower()
            return "-1" if text in ("all", "any") else text
        return v

    @field_validator("cidrs")
    @classmethod
    def _check_cidrs(cls, v: List[str]) -> List[str]:  # type: ignore[override]
        normalized: List[str] = []
        for cidr in v:
            try:
                normalized.append(str(ipaddress.ip_network(cidr.strip(), strict=False)))
            except ValueError as exc:
                raise ValueError(f"invalid CIDR '{cidr}'") from exc
        return normalized


NetworkAccessValue = Optional[Union[bool, List[NetworkRuleSpec]]]


def _check_secret_keys(v: Dict[str, str]) -> Dict[str, str]:
    for key, ref in v.items():
        if not ENV_VAR_PATTERN.fullmatch(key):
            raise ValueError(f"invalid environment variable name '{key}'")
        if not str(ref or "").strip():
            raise ValueError(f"secret reference for '{key}' must be a non-empty string")
    return v


def _check_kms(v: Any) -> Any:
    if isinstance(v, str):
        text = v.strip()
        if text.upper() == "AES256":
            return "AES256"
        if text.startswith("arn:") or text.startswith("alias/"):
            return text
        raise ValueError("kms must be null, a boolean, \"AES256\", a key ARN or an alias")
    return v


class DefaultsSpec(_Spec):
    """Global defaults every entity inherits from."""

    runtime: str = "nodejs22.x"
    timeout: int = Field(default=30, ge=1, le=900)
    memory_size: int = Field(default=128, ge=128, le=10240)
    layers: List[str] = Field(default_factory=list)
    kms: ToggleValue = None
    environment: EnvironmentSpec = Field(default_factory=EnvironmentSpec)
    secrets: Dict[str, str] = Field(default_factory=dict)
    permissions: PermissionsSpec = Field(default_factory=PermissionsSpec)
    network_access: NetworkAccessValue = None

    @field_validator("kms")
    @classmethod
    def _validate_kms(cls, v: Any) -> Any:  # type: ignore[override]
        return _check_kms(v)

    @field_validator("secrets")
    @classmethod
    def _check_secrets(cls, v: Dict[str, str]) -> Dict[str, str]:  # type: ignore[override]
        return _check_secret_keys(v)


class HttpSpec(_Spec):
    port: Port = 3000
    subdomain: Optional[str] = None
    path_pattern: Optional[str] = None
    cors: bool = False
    health_check_path: str = "/"

    @field_validator("subdomain", "path_pattern", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:  # type: ignore[override]
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v


class SqsTriggerSpec(_Spec):
    queue: Optional[str] = None
    batch_size: int = Field(default=10, ge=1, le=10000)


class S3TriggerSpec(_Spec):
    events: List[str] = Field(default_factory=lambda: ["s3:ObjectCreated:*"])
    prefix: Optional[str] = None
    suffix: Optional[str] = None


class TriggersSpec(_Spec):
    schedule: Optional[str] = None
    sqs: Optional[SqsTriggerSpec] = None
    s3: Optional[S3TriggerSpec] = None
    http: Optional[HttpSpec] = None


class _EntitySpec(_Spec):
    environment: Optional[EnvironmentSpec] = None
    secrets: Dict[str, str] = Field(default_factory=dict)
    permissions: Optional[PermissionsOverride] = None
    network_access: NetworkAccessValue = None
    kms: ToggleValue = None

    @field_validator("kms")
    @classmethod
    def _validate_kms(cls, v: Any) -> Any:  # type: ignore[override]
        return _check_kms(v)

    @field_validator("secrets", mode="before")
    @classmethod
    def _none_secrets(cls, v: Any) -> Any:  # type: ignore[override]
        return {} if v is None else v

    @field_validator("secrets")
    @classmethod
    def _check_secrets(cls, v: Dict[str, str]) -> Dict[str, str]:  # type: ignore[override]
        return _check_secret_keys(v)


class ServiceSpec(_EntitySpec):
    source: Optional[str] = None
    image: Optional[str] = None
    cpu: int = Field(default=256, ge=256)
    memory: int = Field(default=512, ge=512)
    desired_count: int = Field(default=1, ge=0)
    http: Optional[HttpSpec] = None


class LambdaSpec(_EntitySpec):
    runtime: Optional[str] = None
    timeout: Optional[int] = Field(default=None, ge=1, le=900)
    memory_size: Optional[int] = Field(default=None, ge=128, le=10240)
    layers: Optional[List[str]] = None
    handler: str = "index.handler"
    source: Optional[str] = None
    triggers: TriggersSpec = Field(default_factory=TriggersSpec)

    @field_validator("triggers", mode="before")
    @classmethod
    def _none_triggers(cls, v: Any) -> Any:  # type: ignore[override]
        return {} if v is None else v


class ProjectSpec(_Spec):
    name: str
    environment: str
    region: str
    account_id: Optional[str] = None
    domain: Optional[str] = None
    alb: bool = False
    cloudfront: bool = False
    bastion: bool = False
    s3: bool = False
    database_secret: str = "database"
    port_mode: Literal["range", "discrete"] = "range"
    secret_collisions: Literal["error", "database_wins", "user_wins"] = "error"
    alarm_email: Optional[str] = None
    tags: Dict[str, str] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def _check_name(cls, v: str) -> str:  # type: ignore[override]
        if not NAME_PATTERN.fullmatch(v):
            raise ValueError("name must be lowercase alphanumeric with hyphens")
        return v

    @field_validator("domain", mode="before")
    @classmethod
    def _normalize_domain(cls, v: Any) -> Any:  # type: ignore[override]
        if isinstance(v, str):
            text = v.strip().lower().rstrip(".")
            return text or None
        return v


class ParsedConfig(BaseModel):
    """Typed view of a whole configuration tree."""

    model_config = ConfigDict(frozen=True)

    project: ProjectSpec
    defaults: DefaultsSpec
    services: Dict[str, ServiceSpec]
    lambdas: Dict[str, LambdaSpec]


def _issues_from_validation(
    exc: ValidationError, *, entity: Optional[str], kind: Optional[str], prefix: str = ""
) -> List[Issue]:
    issues: List[Issue] = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        field = ".".join(part for part in (prefix, loc) if part) or "<root>"
        issues.append(
            Issue(
                entity=entity,
                field=field,
                rule=IssueRules.SCHEMA,
                message=str(err.get("msg", "invalid value")),
                kind=kind,
            )
        )
    return issues


def _parse_entities(
    raw: Any, model: type, kind: str, issues: List[Issue]
) -> Dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        issues.append(Issue(None, f"{kind}s", IssueRules.SCHEMA, "must be a mapping of name to settings"))
        return {}
    parsed: Dict[str, Any] = {}
    for name in sorted(raw, key=str):
        if not isinstance(name, str) or not NAME_PATTERN.fullmatch(name):
            issues.append(
                Issue(
                    str(name), "name", IssueRules.SCHEMA, "name must be lowercase alphanumeric with hyphens", kind=kind
                )
            )
            continue
        body = raw[name]
        try:
            parsed[name] = model.model_validate({} if body is None else body)
        except ValidationError as exc:
            issues.extend(_issues_from_validation(exc, entity=name, kind=kind))
    return parsed


def parse_stack_config(raw: Mapping[str, Any]) -> Tuple[Optional[ParsedConfig], List[Issue]]:
    """Parse a raw configuration tree, collecting every schema problem.

    Each service and Lambda function is parsed on its own so failures are
    attributed to the entity that caused them. Entities that fail are left out
    of the returned config; it is ``None`` only when the project or defaults
    block cannot be parsed.
    """
    issues: List[Issue] = []
    if not isinstance(raw, Mapping):
        return None, [Issue(None, "<root>", IssueRules.SCHEMA, "configuration must be a mapping")]

    project: Optional[ProjectSpec] = None
    try:
        project = ProjectSpec.model_validate(raw.get("project") or {})
    except ValidationError as exc:
        issues.extend(_issues_from_validation(exc, entity=None, kind=None, prefix="project"))

    defaults: Optional[DefaultsSpec] = None
    try:
        defaults = DefaultsSpec.model_validate(raw.get("defaults") or {})
    except ValidationError as exc:
        issues.extend(_issues_from_validation(exc, entity=None, kind=None, prefix="defaults"))

    services = _parse_entities(raw.get("services"), ServiceSpec, "service", issues)
    lambdas = _parse_entities(raw.get("lambdas"), LambdaSpec, "lambda", issues)

    unknown = sorted(set(raw) - {"project", "defaults", "services", "lambdas"}, key=str)
    for key in unknown:
        issues.append(Issue(None, str(key), IssueRules.SCHEMA, "unknown top-level key"))

    if project is None or defaults is None:
        return None, issues
    return ParsedConfig(project=project, defaults=defaults, services=services, lambdas=lambdas), issues
