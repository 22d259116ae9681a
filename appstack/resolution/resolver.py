"""Top-level configuration resolution.

``resolve()`` runs the whole pipeline on a raw configuration tree:

1. schema parsing (``models.parse_stack_config``)
2. default inheritance (``normalizer.normalize``)
3. semantic validation (``validation.validate``)
4. per-entity resolution of environment, secrets, permissions, network
   access and routing, then feature detection and network planning

Any error aborts the pass with a single ``ConfigurationError`` listing every
problem. The returned ``ResolvedConfig`` is immutable and a pure function of
the input tree and the ``ProvisioningContext``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel

from appstack.resolution.environment import EnvironmentVariable, SecretReference, resolve_environment
from appstack.resolution.errors import ConfigurationError, Issue
from appstack.resolution.features import FeatureFlags, detect_features, needs_vpc
from appstack.resolution.models import PermissionsSpec, ProjectSpec, TriggersSpec, parse_stack_config
from appstack.resolution.network import NetworkAccess, NetworkPlan, build_network_plan, resolve_network_access
from appstack.resolution.normalizer import KmsSetting, NormalizedEntity, normalize
from appstack.resolution.permissions import ResolvedPermissions, merge_permissions
from appstack.resolution.routing import (
    LAMBDA_PRIORITY_START,
    SERVICE_PRIORITY_START,
    RoutingDecision,
    assign_priorities,
    classify_routing,
)
from appstack.resolution.validation import validate
from appstack.utils.logger import get_logger

DEFAULT_VPC_CIDR = "10.0.0.0/16"
DEFAULT_DATABASE_PORT = 5432


@dataclass(frozen=True)
class ProvisioningContext:
    """Read-only data supplied by the provisioning layer."""

    secret_arns: Mapping[str, str] = field(default_factory=dict)
    bucket_id: Optional[str] = None
    vpc_cidr: str = DEFAULT_VPC_CIDR
    database_port: int = DEFAULT_DATABASE_PORT

    def bucket_for(self, project: ProjectSpec) -> Optional[str]:
        if not project.s3:
            return None
        return self.bucket_id or f"{project.name}-{project.environment}-assets"


@dataclass(frozen=True)
class ResolvedEntity:
    name: str
    kind: str
    environment: Tuple[EnvironmentVariable, ...]
    secrets: Tuple[SecretReference, ...]
    permissions: ResolvedPermissions
    network: NetworkAccess
    routing: RoutingDecision
    kms: KmsSetting
    vpc_attached: bool
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
    port: Optional[int] = None
    triggers: Optional[TriggersSpec] = None

    @property
    def environment_map(self) -> Dict[str, str]:
        return {item.name: item.value for item in self.environment}

    @property
    def secret_map(self) -> Dict[str, str]:
        return {item.name: item.value_from for item in self.secrets}

    @property
    def secret_arns(self) -> Tuple[str, ...]:
        seen: Dict[str, None] = {}
        for item in self.secrets:
            seen.setdefault(item.secret_arn, None)
        return tuple(seen)


@dataclass(frozen=True)
class ResolvedConfig:
    project: ProjectSpec
    features: FeatureFlags
    services: Mapping[str, ResolvedEntity]
    lambdas: Mapping[str, ResolvedEntity]
    network: NetworkPlan
    warnings: Tuple[Issue, ...] = ()

    @property
    def entities(self) -> Tuple[ResolvedEntity, ...]:
        return tuple(self.services.values()) + tuple(self.lambdas.values())

    def entity(self, name: str) -> ResolvedEntity:
        if name in self.services:
            return self.services[name]
        if name in self.lambdas:
            return self.lambdas[name]
        raise KeyError(name)

    def shared_role_entities(self, kind: Optional[str] = None) -> Tuple[str, ...]:
        return tuple(
            e.name for e in self.entities if not e.permissions.custom_role and (kind is None or e.kind == kind)
        )

    def custom_role_entities(self, kind: Optional[str] = None) -> Tuple[str, ...]:
        return tuple(e.name for e in self.entities if e.permissions.custom_role and (kind is None or e.kind == kind))

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view for debugging and documentation."""
        return {
            "project": self.project.model_dump(),
            "features": self.features.to_dict(),
            "services": {name: _plain(entity) for name, entity in self.services.items()},
            "lambdas": {name: _plain(entity) for name, entity in self.lambdas.items()},
            "network": {
                "port_mode": self.network.port_mode,
                "shared_lambda_members": list(self.network.shared_lambda_members),
                "shared_lambda_rules": [_plain(rule) for rule in self.network.shared_lambda_rules],
            },
            "warnings": [issue.format() for issue in self.warnings],
        }


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def resolve_entity(
    entity: NormalizedEntity,
    *,
    project: ProjectSpec,
    permissions: PermissionsSpec,
    context: ProvisioningContext,
) -> ResolvedEntity:
    """Resolve one normalized entity; priorities are assigned afterwards."""
    environment, secrets = resolve_environment(
        entity, context.secret_arns, project=project, bucket_id=context.bucket_for(project)
    )
    merged = merge_permissions(permissions, entity.permissions)
    network = resolve_network_access(
        entity,
        vpc_cidr=context.vpc_cidr,
        database_port=context.database_port,
        s3=merged.s3,
        ses=merged.ses,
    )
    return ResolvedEntity(
        name=entity.name,
        kind=entity.kind,
        environment=environment,
        secrets=secrets,
        permissions=merged,
        network=network,
        routing=classify_routing(entity, project),
        kms=entity.kms,
        vpc_attached=needs_vpc(entity),
        runtime=entity.runtime,
        timeout=entity.timeout,
        memory_size=entity.memory_size,
        layers=entity.layers,
        handler=entity.handler,
        source=entity.source,
        image=entity.image,
        cpu=entity.cpu,
        memory=entity.memory,
        desired_count=entity.desired_count,
        port=entity.http.port if entity.http is not None and not entity.is_lambda else None,
        triggers=entity.triggers,
    )


def _with_priorities(entities: Dict[str, ResolvedEntity], start: int) -> Dict[str, ResolvedEntity]:
    decisions = assign_priorities({name: e.routing for name, e in entities.items()}, start)
    return {name: replace(entities[name], routing=decisions[name]) for name in sorted(entities)}


def resolve(
    raw: Mapping[str, Any],
    context: Optional[ProvisioningContext] = None,
    *,
    correlation_id: Optional[str] = None,
) -> ResolvedConfig:
    """Resolve a raw configuration tree into a ``ResolvedConfig``.

    Raises ``ConfigurationError`` with every detected error when the tree is
    invalid; no partial result is produced.
    """
    context = context or ProvisioningContext()
    parsed, issues = parse_stack_config(raw)
    if parsed is None:
        raise ConfigurationError([issue for issue in issues if issue.is_error])

    project = parsed.project
    log = get_logger(__name__, correlation_id=correlation_id, environment=project.environment)

    services, lambdas = normalize(parsed.defaults, parsed.services, parsed.lambdas)
    issues.extend(
        validate(
            services,
            lambdas,
            project=project,
            permissions=parsed.defaults.permissions,
            secret_arns=context.secret_arns,
        )
    )
    errors = [issue for issue in issues if issue.is_error]
    warnings = tuple(issue for issue in issues if not issue.is_error)
    if errors:
        log.error(
            "Configuration rejected",
            extra={"error_count": len(errors), "entities": sorted({e.entity for e in errors if e.entity})},
        )
        raise ConfigurationError(errors)

    for warning in warnings:
        log.warning(warning.format(), extra={"entity": warning.entity})

    resolved_services = {
        name: resolve_entity(entity, project=project, permissions=parsed.defaults.permissions, context=context)
        for name, entity in services.items()
    }
    resolved_lambdas = {
        name: resolve_entity(entity, project=project, permissions=parsed.defaults.permissions, context=context)
        for name, entity in lambdas.items()
    }
    resolved_services = _with_priorities(resolved_services, SERVICE_PRIORITY_START)
    resolved_lambdas = _with_priorities(resolved_lambdas, LAMBDA_PRIORITY_START)

    features = detect_features(services, lambdas, project=project, permissions=parsed.defaults.permissions)
    network = build_network_plan(
        {name: entity.network for name, entity in resolved_services.items()},
        {name: entity.network for name, entity in resolved_lambdas.items()},
        vpc_lambdas=[name for name, entity in resolved_lambdas.items() if entity.vpc_attached],
        port_mode=project.port_mode,
    )

    log.info(
        "Configuration resolved",
        extra={
            "project": project.name,
            "services": len(resolved_services),
            "lambdas": len(resolved_lambdas),
            "features": features.enabled(),
            "warning_count": len(warnings),
        },
    )
    return ResolvedConfig(
        project=project,
        features=features,
        services=MappingProxyType(resolved_services),
        lambdas=MappingProxyType(resolved_lambdas),
        network=network,
        warnings=warnings,
    )
