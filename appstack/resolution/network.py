"""Network access normalization and shared security-group rule planning.

Entities declare egress as ``null`` (blocked), ``true`` (allow all) or a list
of ``{protocol, ports, cidrs}`` rules. Rules are keyed by
``(protocol, sorted(ports), sorted(cidrs))`` so identical declarations from
different Lambda functions collapse into one rule on the shared security
group.

Multiple ports on one rule are rendered as the contiguous range
``[min(ports), max(ports)]`` in ``range`` mode. ``discrete`` mode renders one
entry per port instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from appstack.resolution.models import NetworkAccessValue, NetworkRuleSpec
from appstack.resolution.normalizer import NormalizedEntity

ALL_PORTS = (0, 65535)
HTTPS_PORT = 443
ANYWHERE = "0.0.0.0/0"
_ECR_HOST = ".dkr.ecr."
PORT_MODES = ("range", "discrete")

RuleKey = Tuple[str, Tuple[int, ...], Tuple[str, ...]]


class NetworkMode(str, Enum):
    BLOCKED = "blocked"
    ALLOW_ALL = "allow_all"
    EXPLICIT = "explicit"


@dataclass(frozen=True)
class NetworkRule:
    protocol: str
    ports: Tuple[int, ...]
    cidrs: Tuple[str, ...]

    @classmethod
    def create(cls, protocol: str, ports: Iterable[int], cidrs: Iterable[str]) -> "NetworkRule":
        return cls(protocol=protocol, ports=tuple(sorted(set(ports))), cidrs=tuple(sorted(set(cidrs))))

    @classmethod
    def from_spec(cls, spec: NetworkRuleSpec) -> "NetworkRule":
        return cls.create(spec.protocol, spec.ports, spec.cidrs)

    @property
    def key(self) -> RuleKey:
        return (self.protocol, self.ports, self.cidrs)

    @property
    def is_contiguous(self) -> bool:
        if len(self.ports) <= 1:
            return True
        return self.ports[-1] - self.ports[0] + 1 == len(self.ports)

    def port_ranges(self, mode: str = "range") -> Tuple[Tuple[int, int], ...]:
        """Return inclusive ``(from, to)`` port ranges for provisioning."""
        if mode not in PORT_MODES:
            raise ValueError(f"Unknown port mode: {mode}")
        if not self.ports:
            return (ALL_PORTS,)
        if mode == "discrete":
            return tuple((port, port) for port in self.ports)
        return ((self.ports[0], self.ports[-1]),)


ALLOW_ALL_RULE = NetworkRule(protocol="-1", ports=(), cidrs=(ANYWHERE,))


@dataclass(frozen=True)
class NetworkAccess:
    mode: NetworkMode
    rules: Tuple[NetworkRule, ...] = ()
    implicit: Tuple[NetworkRule, ...] = ()

    @property
    def egress(self) -> Tuple[NetworkRule, ...]:
        return dedupe_rules(list(self.rules) + list(self.implicit))


def normalize_network_access(spec: NetworkAccessValue) -> NetworkAccess:
    """Convert a raw ``null | bool | [rule]`` declaration into canonical form."""
    if spec is None or spec is False:
        return NetworkAccess(NetworkMode.BLOCKED)
    if spec is True:
        return NetworkAccess(NetworkMode.ALLOW_ALL, rules=(ALLOW_ALL_RULE,))
    return NetworkAccess(NetworkMode.EXPLICIT, rules=tuple(NetworkRule.from_spec(rule) for rule in spec))


def dedupe_rules(rules: Iterable[NetworkRule]) -> Tuple[NetworkRule, ...]:
    """Return rules without duplicate keys, keeping first-seen order."""
    seen = set()
    result: List[NetworkRule] = []
    for rule in rules:
        if rule.key in seen:
            continue
        seen.add(rule.key)
        result.append(rule)
    return tuple(result)


def uses_aws_endpoints(entity: NormalizedEntity, *, s3: bool, ses: bool) -> bool:
    return bool(entity.secrets) or entity.has_database or s3 or ses


def pulls_from_ecr(entity: NormalizedEntity) -> bool:
    """Built sources are pushed to ECR; a prebuilt image names its own registry."""
    return entity.image is None or _ECR_HOST in entity.image


def minimum_egress(
    entity: NormalizedEntity,
    *,
    vpc_cidr: str,
    database_port: int,
    s3: bool = False,
    ses: bool = False,
) -> Tuple[NetworkRule, ...]:
    """Egress an entity needs for its own enabled integrations.

    Service tasks always pull their image over HTTPS: through the VPC for ECR,
    from anywhere for other registries.
    """
    rules: List[NetworkRule] = []
    endpoints = uses_aws_endpoints(entity, s3=s3, ses=ses)
    public_registry = False
    if not entity.is_lambda:
        if pulls_from_ecr(entity):
            endpoints = True
        else:
            public_registry = True
    if endpoints:
        rules.append(NetworkRule.create("tcp", [HTTPS_PORT], [vpc_cidr]))
    if public_registry:
        rules.append(NetworkRule.create("tcp", [HTTPS_PORT], [ANYWHERE]))
    if entity.has_database:
        rules.append(NetworkRule.create("tcp", [database_port], [vpc_cidr]))
    return tuple(rules)


def resolve_network_access(
    entity: NormalizedEntity,
    *,
    vpc_cidr: str,
    database_port: int,
    s3: bool = False,
    ses: bool = False,
) -> NetworkAccess:
    access = normalize_network_access(entity.network_access)
    if access.mode is NetworkMode.ALLOW_ALL:
        return access
    implicit = minimum_egress(entity, vpc_cidr=vpc_cidr, database_port=database_port, s3=s3, ses=ses)
    return NetworkAccess(access.mode, rules=access.rules, implicit=implicit)


@dataclass(frozen=True)
class NetworkPlan:
    """Per-entity egress plus the deduplicated rules of the shared Lambda group."""

    per_entity: Mapping[str, NetworkAccess]
    shared_lambda_rules: Tuple[NetworkRule, ...]
    shared_lambda_members: Tuple[str, ...]
    port_mode: str = "range"

    def rules_for(self, name: str) -> Optional[NetworkAccess]:
        return self.per_entity.get(name)


def build_network_plan(
    services: Mapping[str, NetworkAccess],
    lambdas: Mapping[str, NetworkAccess],
    *,
    vpc_lambdas: Sequence[str],
    port_mode: str = "range",
) -> NetworkPlan:
    """Combine per-entity access into a plan.

    Only runs once every entity has produced its own rules.
    """
    if port_mode not in PORT_MODES:
        raise ValueError(f"Unknown port mode: {port_mode}")
    per_entity = {name: services[name] for name in sorted(services)}
    per_entity.update({name: lambdas[name] for name in sorted(lambdas)})

    members = tuple(name for name in sorted(lambdas) if name in set(vpc_lambdas))
    shared: List[NetworkRule] = []
    for name in members:
        shared.extend(lambdas[name].egress)

    return NetworkPlan(
        per_entity=MappingProxyType(per_entity),
        shared_lambda_rules=dedupe_rules(shared),
        shared_lambda_members=members,
        port_mode=port_mode,
    )
