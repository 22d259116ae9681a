"""Apply global defaults to per-entity overrides, field by field."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from appstack.resolution.models import (
    DatabaseValue,
    DefaultsSpec,
    EnvironmentSpec,
    HttpSpec,
    LambdaSpec,
    NetworkAccessValue,
    PermissionsOverride,
    Presence,
    ServiceSpec,
    ToggleValue,
    TriggersSpec,
    presence,
)

SERVICE = "service"
LAMBDA = "lambda"


class KmsMode(str, Enum):
    DISABLED = "disabled"
    AWS_MANAGED = "aws_managed"
    S3_MANAGED = "s3_managed"
    CUSTOMER_MANAGED = "customer_managed"


@dataclass(frozen=True)
class KmsSetting:
    """Tagged encryption setting parsed from ``null | bool | "AES256" | arn``."""

    mode: KmsMode
    key_arn: Optional[str] = None

    @classmethod
    def parse(cls, raw: ToggleValue) -> "KmsSetting":
        if raw is None or raw is False:
            return cls(KmsMode.DISABLED)
        if raw is True:
            return cls(KmsMode.AWS_MANAGED)
        text = str(raw).strip()
        if text.upper() == "AES256":
            return cls(KmsMode.S3_MANAGED)
        if text.startswith("arn:") or text.startswith("alias/"):
            return cls(KmsMode.CUSTOMER_MANAGED, key_arn=text)
        raise ValueError(f"Unsupported kms value: {raw!r}")

    @property
    def enabled(self) -> bool:
        return self.mode is not KmsMode.DISABLED


@dataclass(frozen=True)
class NormalizedEntity:
    """An entity with every inheritable field resolved to a concrete value."""

    name: str
    kind: str
    region: ToggleValue
    node: ToggleValue
    s3: ToggleValue
    database: DatabaseValue
    variables: Mapping[str, str]
    secrets: Mapping[str, str]
    permissions: Optional[PermissionsOverride]
    network_access: NetworkAccessValue
    kms: KmsSetting
    http: Optional[HttpSpec] = None
    runtime: Optional[str] = None
    timeout: Optional[int] = None
    memory_size: Optional[int] = None
    layers: Tuple[str, ...] = ()
    handler: Optional[str] = None
    source: Optional[str] = None
    image: Optional[str] = None
    cpu: Optional[int] = None
    memory: Optional[int] = None
    desired_count: Optional[int] = None
    triggers: Optional[TriggersSpec] = None

    @property
    def is_lambda(self) -> bool:
        return self.kind == LAMBDA

    @property
    def has_database(self) -> bool:
        return self.database is not None and self.database is not False

    @property
    def has_http(self) -> bool:
        return self.http is not None


def inherit_scalar(spec: Any, name: str, default: Any) -> Any:
    """Unset and null both inherit; any other value overrides."""
    if presence(spec, name) is Presence.VALUE:
        return getattr(spec, name)
    return default


def inherit_toggle(spec: Any, name: str, default: Any) -> Any:
    """Unset inherits; explicit null disables; any other value overrides."""
    state = presence(spec, name)
    if state is Presence.UNSET:
        return default
    if state is Presence.NULL:
        return None
    return getattr(spec, name)


def _merge_maps(base: Mapping[str, str], override: Mapping[str, str]) -> Mapping[str, str]:
    merged: Dict[str, str] = dict(base)
    merged.update(override)
    return MappingProxyType(merged)


def _normalize_common(defaults: DefaultsSpec, spec: Any) -> Dict[str, Any]:
    global_env = defaults.environment
    entity_env: Optional[EnvironmentSpec] = spec.environment
    entity_vars = entity_env.variables if entity_env is not None else {}
    return {
        "region": inherit_toggle(entity_env, "region", global_env.region),
        "node": inherit_toggle(entity_env, "node", global_env.node),
        "s3": inherit_toggle(entity_env, "s3", global_env.s3),
        "database": inherit_toggle(entity_env, "database", global_env.database),
        "variables": _merge_maps(global_env.variables, entity_vars),
        "secrets": _merge_maps(defaults.secrets, spec.secrets),
        "permissions": spec.permissions,
        "network_access": inherit_toggle(spec, "network_access", defaults.network_access),
        "kms": KmsSetting.parse(inherit_toggle(spec, "kms", defaults.kms)),
    }


def normalize_service(defaults: DefaultsSpec, name: str, spec: ServiceSpec) -> NormalizedEntity:
    return NormalizedEntity(
        name=name,
        kind=SERVICE,
        http=spec.http,
        source=spec.source,
        image=spec.image,
        cpu=spec.cpu,
        memory=spec.memory,
        desired_count=spec.desired_count,
        **_normalize_common(defaults, spec),
    )


def normalize_lambda(defaults: DefaultsSpec, name: str, spec: LambdaSpec) -> NormalizedEntity:
    layers = inherit_scalar(spec, "layers", defaults.layers)
    return NormalizedEntity(
        name=name,
        kind=LAMBDA,
        http=spec.triggers.http,
        runtime=inherit_scalar(spec, "runtime", defaults.runtime),
        timeout=inherit_scalar(spec, "timeout", defaults.timeout),
        memory_size=inherit_scalar(spec, "memory_size", defaults.memory_size),
        layers=tuple(layers),
        handler=spec.handler,
        source=spec.source,
        triggers=spec.triggers,
        **_normalize_common(defaults, spec),
    )


def normalize(
    defaults: DefaultsSpec,
    services: Mapping[str, ServiceSpec],
    lambdas: Mapping[str, LambdaSpec],
) -> Tuple[Mapping[str, NormalizedEntity], Mapping[str, NormalizedEntity]]:
    """Return normalized services and Lambda functions keyed by name, in name order."""
    normalized_services = {name: normalize_service(defaults, name, services[name]) for name in sorted(services)}
    normalized_lambdas = {name: normalize_lambda(defaults, name, lambdas[name]) for name in sorted(lambdas)}
    return MappingProxyType(normalized_services), MappingProxyType(normalized_lambdas)
