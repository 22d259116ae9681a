"""Typed configuration contracts for environment-specific stack settings."""

from __future__ import annotations

from typing import Any, Dict, List, NotRequired, Required, TypedDict, Union


class DatabaseConfig(TypedDict, total=False):
    name: str
    secret: str


ToggleConfig = Union[None, bool, str]
DatabaseToggleConfig = Union[None, bool, str, DatabaseConfig]


class EnvironmentTogglesConfig(TypedDict, total=False):
    """Shorthand environment variables; ``None`` disables, ``True`` uses the default name."""

    region: ToggleConfig
    node: ToggleConfig
    s3: ToggleConfig
    database: DatabaseToggleConfig
    variables: Dict[str, str]


class StatementConfig(TypedDict, total=False):
    effect: str
    actions: Required[List[str]]
    resources: List[str]
    conditions: Dict[str, Dict[str, Any]]


class PermissionsConfig(TypedDict, total=False):
    s3: bool
    ses: bool
    fargate: bool
    statements: List[StatementConfig]


class NetworkRuleConfig(TypedDict, total=False):
    protocol: str
    ports: List[int]
    cidrs: Required[List[str]]


NetworkAccessConfig = Union[None, bool, List[NetworkRuleConfig]]


class HttpConfig(TypedDict, total=False):
    port: int
    subdomain: str
    path_pattern: str
    cors: bool
    health_check_path: str


class TriggersConfig(TypedDict, total=False):
    schedule: str
    sqs: Dict[str, Any]
    s3: Dict[str, Any]
    http: HttpConfig


class ServiceConfig(TypedDict, total=False):
    source: str
    image: str
    cpu: int
    memory: int
    desired_count: int
    http: HttpConfig
    environment: EnvironmentTogglesConfig
    secrets: Dict[str, str]
    permissions: PermissionsConfig
    network_access: NetworkAccessConfig
    kms: ToggleConfig


class LambdaConfig(TypedDict, total=False):
    runtime: str
    timeout: int
    memory_size: int
    layers: List[str]
    handler: str
    source: str
    triggers: TriggersConfig
    environment: EnvironmentTogglesConfig
    secrets: Dict[str, str]
    permissions: PermissionsConfig
    network_access: NetworkAccessConfig
    kms: ToggleConfig


class DefaultsConfig(TypedDict, total=False):
    runtime: str
    timeout: int
    memory_size: int
    layers: List[str]
    kms: ToggleConfig
    environment: EnvironmentTogglesConfig
    secrets: Dict[str, str]
    permissions: PermissionsConfig
    network_access: NetworkAccessConfig


class ProjectConfig(TypedDict, total=False):
    name: Required[str]
    environment: Required[str]
    region: Required[str]
    account_id: NotRequired[str | None]
    domain: NotRequired[str | None]
    alb: NotRequired[bool]
    cloudfront: NotRequired[bool]
    bastion: NotRequired[bool]
    s3: NotRequired[bool]
    database_secret: NotRequired[str]
    port_mode: NotRequired[str]
    secret_collisions: NotRequired[str]
    alarm_email: NotRequired[str | None]
    tags: NotRequired[Dict[str, str]]


class StackConfig(TypedDict, total=False):
    """Strongly-typed stack configuration contract."""

    project: Required[ProjectConfig]
    defaults: NotRequired[DefaultsConfig]
    services: NotRequired[Dict[str, ServiceConfig]]
    lambdas: NotRequired[Dict[str, LambdaConfig]]
