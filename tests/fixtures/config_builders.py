"""Reusable builders for stack configuration trees.

Keep builders small and explicit so each test states only the settings it
cares about.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Optional

from appstack.resolution import ProvisioningContext

ACCOUNT_ID = "123456789012"
REGION = "us-east-1"


def secret_arn(name: str, suffix: str = "AbCdEf") -> str:
    return f"arn:aws:secretsmanager:{REGION}:{ACCOUNT_ID}:secret:{name}-{suffix}"


SECRET_ARNS: Dict[str, str] = {
    "database": secret_arn("database"),
    "sentry": secret_arn("sentry", "Xy12Zw"),
    "stripe": secret_arn("stripe", "Qw34Er"),
    "api-keys": secret_arn("api-keys", "Mn56Op"),
}


def build_project(**overrides: Any) -> Dict[str, Any]:
    project: Dict[str, Any] = {
        "name": "acme-app",
        "environment": "dev",
        "region": REGION,
    }
    project.update(overrides)
    return project


def build_stack_config(
    *,
    project: Optional[Dict[str, Any]] = None,
    defaults: Optional[Dict[str, Any]] = None,
    services: Optional[Dict[str, Any]] = None,
    lambdas: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build a configuration tree; omitted blocks are left out entirely."""
    config: Dict[str, Any] = {"project": project or build_project()}
    if defaults is not None:
        config["defaults"] = copy.deepcopy(defaults)
    if services is not None:
        config["services"] = copy.deepcopy(services)
    if lambdas is not None:
        config["lambdas"] = copy.deepcopy(lambdas)
    return config


def build_context(**overrides: Any) -> ProvisioningContext:
    params: Dict[str, Any] = {"secret_arns": dict(SECRET_ARNS)}
    params.update(overrides)
    return ProvisioningContext(**params)
