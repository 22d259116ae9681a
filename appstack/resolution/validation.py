"""Semantic validation of a normalized configuration.

Runs after schema parsing and normalization and before any resolution step,
collecting every problem in one pass. Errors abort resolution; warnings flag
configurations that are accepted but may surprise the operator.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from appstack.resolution.environment import canonical_database, default_database_secret, split_secret_reference
from appstack.resolution.errors import WARNING, Issue, IssueRules
from appstack.resolution.models import PermissionsSpec, ProjectSpec
from appstack.resolution.network import NetworkMode, normalize_network_access
from appstack.resolution.normalizer import NormalizedEntity
from appstack.resolution.permissions import global_permissions, merge_permissions
from appstack.resolution.routing import RoutingDecision, RoutingKind, classify_routing, subdomain_allowed

SCHEDULE_PATTERN = re.compile(
    r"^(rate\(\s*\d+\s+(minute|minutes|hour|hours|day|days)\s*\)|cron\(.+\)|at\(.+\))$"
)


def _issue(entity: NormalizedEntity, field: str, rule: str, message: str, severity: str = "error") -> Issue:
    return Issue(entity=entity.name, field=field, rule=rule, message=message, severity=severity, kind=entity.kind)


def check_names(services: Iterable[str], lambdas: Iterable[str]) -> List[Issue]:
    issues: List[Issue] = []
    for name in sorted(set(services) & set(lambdas)):
        issues.append(
            Issue(name, "name", IssueRules.DUPLICATE_NAME, "name is used by both a service and a Lambda function")
        )
    return issues


def check_source(entity: NormalizedEntity) -> List[Issue]:
    if entity.is_lambda:
        return []
    if entity.source and entity.image:
        return [_issue(entity, "source", IssueRules.SOURCE_IMAGE_EXCLUSIVE, "set either 'source' or 'image', not both")]
    if not entity.source and not entity.image:
        return [_issue(entity, "source", IssueRules.SOURCE_IMAGE_EXCLUSIVE, "one of 'source' or 'image' is required")]
    return []


def check_http(entity: NormalizedEntity, project: ProjectSpec) -> List[Issue]:
    http = entity.http
    if http is None:
        return []
    field = "triggers.http" if entity.is_lambda else "http"
    issues: List[Issue] = []
    if http.subdomain and http.path_pattern:
        issues.append(
            _issue(
                entity,
                f"{field}.subdomain",
                IssueRules.HTTP_ROUTING_EXCLUSIVE,
                "'subdomain' and 'path_pattern' are mutually exclusive",
            )
        )
    if http.path_pattern and not http.path_pattern.startswith("/"):
        issues.append(_issue(entity, f"{field}.path_pattern", IssueRules.SCHEMA, "path_pattern must start with '/'"))
    if http.subdomain and not http.path_pattern:
        if not project.domain:
            issues.append(
                _issue(
                    entity,
                    f"{field}.subdomain",
                    IssueRules.DOMAIN_REQUIRED,
                    "subdomain routing requires 'project.domain'",
                )
            )
        elif not subdomain_allowed(project):
            issues.append(
                _issue(
                    entity,
                    f"{field}.subdomain",
                    IssueRules.SUBDOMAIN_DEPTH,
                    f"domain '{project.domain}' is too deep for subdomain routing; use path_pattern instead",
                )
            )
    return issues


def check_routes(entities: Iterable[NormalizedEntity], project: ProjectSpec) -> List[Issue]:
    """Reject hosts and paths claimed twice and more than one catch-all per router."""
    issues: List[Issue] = []
    hosts: Dict[str, str] = {}
    paths: Dict[Tuple[str, str], str] = {}
    catch_all: Dict[str, str] = {}

    for entity in sorted(entities, key=lambda e: (e.kind, e.name)):
        if check_http(entity, project):
            continue
        decision: RoutingDecision = classify_routing(entity, project)
        if not decision.routed:
            continue
        field = "triggers.http" if entity.is_lambda else "http"
        if decision.host_based and decision.host:
            owner = hosts.setdefault(decision.host, entity.name)
            if owner != entity.name:
                issues.append(
                    _issue(
                        entity,
                        f"{field}.subdomain",
                        IssueRules.DUPLICATE_ROUTE,
                        f"host '{decision.host}' is already routed to '{owner}'",
                    )
                )
            continue
        if decision.catch_all:
            owner = catch_all.setdefault(entity.kind, entity.name)
            if owner != entity.name:
                issues.append(
                    _issue(
                        entity,
                        field,
                        IssueRules.MULTIPLE_CATCH_ALL,
                        f"'{owner}' already receives unmatched requests; set subdomain or path_pattern",
                    )
                )
            continue
        router = "alb" if decision.kind is RoutingKind.ALB_PATH else entity.kind
        key = (router, str(decision.path_pattern))
        owner = paths.setdefault(key, entity.name)
        if owner != entity.name:
            issues.append(
                _issue(
                    entity,
                    f"{field}.path_pattern",
                    IssueRules.DUPLICATE_ROUTE,
                    f"path '{decision.path_pattern}' is already routed to '{owner}'",
                )
            )
    return issues


def _secret_missing(reference: str, secret_arns: Mapping[str, str]) -> Optional[str]:
    identifier, _, is_arn = split_secret_reference(reference)
    if is_arn or secret_arns.get(identifier):
        return None
    return identifier


def check_secrets(entity: NormalizedEntity, project: ProjectSpec, secret_arns: Mapping[str, str]) -> List[Issue]:
    issues: List[Issue] = []
    for name in sorted(entity.secrets):
        missing = _secret_missing(entity.secrets[name], secret_arns)
        if missing:
            issues.append(
                _issue(entity, f"secrets.{name}", IssueRules.MISSING_SECRET, f"secret '{missing}' does not exist")
            )

    binding = canonical_database(entity.database, default_secret=default_database_secret(project))
    if binding is None:
        return issues
    missing = _secret_missing(binding.secret, secret_arns)
    if missing:
        issues.append(
            _issue(entity, "environment.database", IssueRules.MISSING_SECRET, f"secret '{missing}' does not exist")
        )
    if binding.name in entity.secrets and project.secret_collisions == "error":
        issues.append(
            _issue(
                entity,
                f"secrets.{binding.name}",
                IssueRules.SECRET_COLLISION,
                f"'{binding.name}' is also the database secret variable; rename it or set project.secret_collisions",
            )
        )
    return issues


def check_triggers(entity: NormalizedEntity) -> List[Issue]:
    if entity.triggers is None or not entity.triggers.schedule:
        return []
    if SCHEDULE_PATTERN.fullmatch(entity.triggers.schedule.strip()):
        return []
    return [
        _issue(
            entity,
            "triggers.schedule",
            IssueRules.SCHEDULE_EXPRESSION,
            f"'{entity.triggers.schedule}' is not a rate(), cron() or at() expression",
        )
    ]


def check_warnings(entity: NormalizedEntity, project: ProjectSpec, permissions: PermissionsSpec) -> List[Issue]:
    issues: List[Issue] = []

    if project.port_mode == "range":
        access = normalize_network_access(entity.network_access)
        if access.mode is NetworkMode.EXPLICIT:
            for index, rule in enumerate(access.rules):
                if rule.is_contiguous:
                    continue
                issues.append(
                    _issue(
                        entity,
                        f"network_access.{index}.ports",
                        IssueRules.SPARSE_PORT_RANGE,
                        f"ports {list(rule.ports)} open the whole range {rule.ports[0]}-{rule.ports[-1]}",
                        WARNING,
                    )
                )

    override = entity.permissions
    if override is not None and not override.statements:
        merged = merge_permissions(permissions, override)
        if merged.same_grants(global_permissions(permissions)):
            issues.append(
                _issue(
                    entity,
                    "permissions",
                    IssueRules.REDUNDANT_PERMISSIONS_OVERRIDE,
                    "override matches the global permissions but still creates a dedicated role",
                    WARNING,
                )
            )

    if entity.s3 not in (None, False) and not project.s3:
        issues.append(
            _issue(
                entity,
                "environment.s3",
                IssueRules.S3_DISABLED,
                "bucket variable skipped because project.s3 is disabled",
                WARNING,
            )
        )

    secret_names = set(entity.secrets)
    binding = canonical_database(entity.database, default_secret=default_database_secret(project))
    if binding is not None:
        secret_names.add(binding.name)
    for name in sorted(secret_names & set(entity.variables)):
        issues.append(
            _issue(
                entity,
                f"environment.variables.{name}",
                IssueRules.VARIABLE_SHADOWED,
                "also declared as a secret; the plain variable is dropped",
                WARNING,
            )
        )
    return issues


def validate(
    services: Mapping[str, NormalizedEntity],
    lambdas: Mapping[str, NormalizedEntity],
    *,
    project: ProjectSpec,
    permissions: PermissionsSpec,
    secret_arns: Mapping[str, str],
) -> List[Issue]:
    """Return every error and warning for the normalized configuration."""
    issues = check_names(services, lambdas)
    entities = list(services.values()) + list(lambdas.values())
    for entity in entities:
        issues.extend(check_source(entity))
        issues.extend(check_http(entity, project))
        issues.extend(check_secrets(entity, project, secret_arns))
        issues.extend(check_triggers(entity))
    issues.extend(check_routes(entities, project))
    for entity in entities:
        issues.extend(check_warnings(entity, project, permissions))
    return issues
