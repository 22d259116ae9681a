"""Feature flags derived from the normalized entity collection.

Every flag is an OR over the entities, so entity order never changes the
result and an empty configuration only enables what the project forces on.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Iterable, Mapping

from appstack.resolution.models import PermissionsSpec, ProjectSpec
from appstack.resolution.network import NetworkMode, normalize_network_access
from appstack.resolution.normalizer import KmsMode, NormalizedEntity
from appstack.resolution.permissions import merge_permissions
from appstack.resolution.routing import RoutingKind, classify_routing, subdomain_allowed


@dataclass(frozen=True)
class FeatureFlags:
    ecr: bool = False
    fargate: bool = False
    rds: bool = False
    lambda_vpc: bool = False
    alb: bool = False
    api_gateway: bool = False
    cloudfront: bool = False
    dns: bool = False
    s3: bool = False
    ses: bool = False
    sqs: bool = False
    scheduler: bool = False
    s3_notifications: bool = False
    bastion: bool = False
    monitoring: bool = False
    customer_kms: bool = False
    shared_role: bool = False
    custom_roles: bool = False

    def enabled(self) -> list[str]:
        return [name for name, value in asdict(self).items() if value]

    def to_dict(self) -> Dict[str, bool]:
        return asdict(self)


def needs_vpc(entity: NormalizedEntity) -> bool:
    """Lambda functions join the VPC to reach the database or enforce egress rules."""
    if not entity.is_lambda:
        return True
    if entity.has_database:
        return True
    return normalize_network_access(entity.network_access).mode is NetworkMode.EXPLICIT


def _routing_kind(entity: NormalizedEntity, project: ProjectSpec) -> RoutingKind:
    if entity.http is not None and entity.http.subdomain and not subdomain_allowed(project):
        return RoutingKind.NONE
    return classify_routing(entity, project).kind


def _any(entities: Iterable[NormalizedEntity], predicate) -> bool:
    return any(predicate(entity) for entity in entities)


def detect_features(
    services: Mapping[str, NormalizedEntity],
    lambdas: Mapping[str, NormalizedEntity],
    *,
    project: ProjectSpec,
    permissions: PermissionsSpec,
) -> FeatureFlags:
    """Reduce the normalized entities into provisioning feature flags."""
    everything = list(services.values()) + list(lambdas.values())
    functions = list(lambdas.values())
    merged = [merge_permissions(permissions, entity.permissions) for entity in everything]
    kinds = [_routing_kind(entity, project) for entity in everything]

    rds = _any(everything, lambda e: e.has_database)
    return FeatureFlags(
        ecr=_any(services.values(), lambda e: bool(e.source) and not e.image),
        fargate=bool(services),
        rds=rds,
        lambda_vpc=_any(functions, needs_vpc),
        alb=project.alb or _any(services.values(), lambda e: e.has_http),
        api_gateway=any(kind in (RoutingKind.APIGW_PATH, RoutingKind.APIGW_SUBDOMAIN) for kind in kinds),
        cloudfront=any(kind is RoutingKind.CLOUDFRONT_PATH for kind in kinds),
        dns=any(kind in (RoutingKind.ALB_HOST, RoutingKind.APIGW_SUBDOMAIN) for kind in kinds),
        s3=project.s3 or any(p.s3 for p in merged),
        ses=any(p.ses for p in merged),
        sqs=_any(functions, lambda e: e.triggers is not None and e.triggers.sqs is not None),
        scheduler=_any(functions, lambda e: e.triggers is not None and bool(e.triggers.schedule)),
        s3_notifications=_any(functions, lambda e: e.triggers is not None and e.triggers.s3 is not None),
        bastion=project.bastion and rds,
        monitoring=bool(project.alarm_email),
        customer_kms=_any(everything, lambda e: e.kms.mode is KmsMode.CUSTOMER_MANAGED),
        shared_role=any(not p.custom_role for p in merged),
        custom_roles=any(p.custom_role for p in merged),
    )
