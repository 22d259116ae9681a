"""HTTP routing classification and listener priority assignment."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Mapping, Optional

from appstack.resolution.models import ProjectSpec
from appstack.resolution.normalizer import NormalizedEntity

CATCH_ALL_PATH = "/*"
SERVICE_PRIORITY_START = 100
LAMBDA_PRIORITY_START = 1000

# Subdomains are only placed directly under an apex domain.
MAX_ROUTABLE_DOMAIN_LABELS = 2


class RoutingKind(str, Enum):
    NONE = "none"
    ALB_PATH = "alb-path"
    ALB_HOST = "alb-host"
    APIGW_SUBDOMAIN = "apigw-subdomain"
    APIGW_PATH = "apigw-path"
    CLOUDFRONT_PATH = "cloudfront-path"


HOST_KINDS = (RoutingKind.ALB_HOST, RoutingKind.APIGW_SUBDOMAIN)


@dataclass(frozen=True)
class RoutingDecision:
    kind: RoutingKind
    host: Optional[str] = None
    path_pattern: Optional[str] = None
    catch_all: bool = False
    priority: Optional[int] = None

    @property
    def routed(self) -> bool:
        return self.kind is not RoutingKind.NONE

    @property
    def host_based(self) -> bool:
        return self.kind in HOST_KINDS


NOT_ROUTED = RoutingDecision(RoutingKind.NONE)


def domain_labels(domain: Optional[str]) -> int:
    if not domain:
        return 0
    return len([label for label in domain.split(".") if label])


def subdomain_allowed(project: ProjectSpec) -> bool:
    """Subdomain routing needs a root domain no deeper than an apex."""
    labels = domain_labels(project.domain)
    return 0 < labels <= MAX_ROUTABLE_DOMAIN_LABELS


def classify_routing(entity: NormalizedEntity, project: ProjectSpec) -> RoutingDecision:
    """Decide how an entity is reached over HTTP; the first matching rule wins.

    Callers validate the subdomain depth beforehand, so an unroutable
    subdomain raises ``ValueError`` here.
    """
    http = entity.http
    if http is None:
        return NOT_ROUTED

    if http.subdomain:
        if not subdomain_allowed(project):
            raise ValueError(
                f"{entity.kind} '{entity.name}' requests subdomain '{http.subdomain}' "
                f"but domain '{project.domain}' does not allow subdomain routing"
            )
        host = f"{http.subdomain}.{project.domain}"
        kind = RoutingKind.APIGW_SUBDOMAIN if entity.is_lambda else RoutingKind.ALB_HOST
        return RoutingDecision(kind, host=host)

    if http.path_pattern:
        if not entity.is_lambda:
            kind = RoutingKind.ALB_PATH
        elif project.cloudfront:
            kind = RoutingKind.CLOUDFRONT_PATH
        else:
            kind = RoutingKind.APIGW_PATH
        return RoutingDecision(kind, path_pattern=http.path_pattern)

    kind = RoutingKind.APIGW_PATH if entity.is_lambda else RoutingKind.ALB_PATH
    return RoutingDecision(kind, path_pattern=CATCH_ALL_PATH, catch_all=True)


def assign_priorities(decisions: Mapping[str, RoutingDecision], start: int) -> Dict[str, RoutingDecision]:
    """Number routed entities by name, specific rules before catch-all ones."""
    routed = sorted(name for name, decision in decisions.items() if decision.routed)
    ordered = [name for name in routed if not decisions[name].catch_all]
    ordered += [name for name in routed if decisions[name].catch_all]

    result = {name: decisions[name] for name in sorted(decisions)}
    for offset, name in enumerate(ordered):
        result[name] = replace(decisions[name], priority=start + offset)
    return result
