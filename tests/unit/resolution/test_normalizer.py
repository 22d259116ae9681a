from __future__ import annotations

import pytest

from appstack.resolution.models import DefaultsSpec, LambdaSpec, Presence, ServiceSpec, presence
from appstack.resolution.normalizer import (
    KmsMode,
    KmsSetting,
    inherit_scalar,
    inherit_toggle,
    normalize,
    normalize_lambda,
    normalize_service,
)

pytestmark = [pytest.mark.unit]


def _defaults(**overrides) -> DefaultsSpec:
    base = {
        "runtime": "nodejs22.x",
        "timeout": 30,
        "memory_size": 256,
        "layers": ["arn:aws:lambda:us-east-1:123456789012:layer:common:3"],
        "kms": True,
        "environment": {"region": True, "node": "production", "s3": "ASSETS", "database": True},
        "secrets": {"SENTRY_DSN": "sentry:dsn"},
        "network_access": [{"protocol": "tcp", "ports": [443], "cidrs": ["0.0.0.0/0"]}],
    }
    base.update(overrides)
    return DefaultsSpec.model_validate(base)


def test_presence_distinguishes_unset_null_and_value() -> None:
    """
    Given: timeout이 생략/null/값으로 각각 지정된 Lambda
    When: presence 확인
    Then: UNSET, NULL, VALUE 구분
    """
    assert presence(LambdaSpec.model_validate({}), "timeout") is Presence.UNSET
    assert presence(LambdaSpec.model_validate({"timeout": None}), "timeout") is Presence.NULL
    assert presence(LambdaSpec.model_validate({"timeout": 60}), "timeout") is Presence.VALUE
    assert presence(None, "timeout") is Presence.UNSET


def test_scalar_null_inherits_but_toggle_null_disables() -> None:
    spec = LambdaSpec.model_validate({"timeout": None, "kms": None})
    assert inherit_scalar(spec, "timeout", 30) == 30
    assert inherit_toggle(spec, "kms", True) is None
    assert inherit_toggle(LambdaSpec.model_validate({}), "kms", True) is True


@pytest.mark.parametrize("field", ["region", "node", "s3", "database"])
def test_environment_toggles_inherit_when_unset(field: str) -> None:
    """
    Given: 엔티티 environment 블록에 토글이 없음
    When: 정규화
    Then: 글로벌 값 상속
    """
    defaults = _defaults()
    entity = normalize_service(defaults, "web", ServiceSpec.model_validate({"environment": {}}))
    assert getattr(entity, field) == getattr(defaults.environment, field)

    entity = normalize_service(defaults, "web", ServiceSpec.model_validate({}))
    assert getattr(entity, field) == getattr(defaults.environment, field)


@pytest.mark.parametrize(
    "field,value",
    [("region", "REGION_NAME"), ("node", "staging"), ("s3", False), ("database", "PRIMARY_DB_URL")],
)
def test_environment_toggles_use_explicit_value(field: str, value) -> None:
    entity = normalize_service(_defaults(), "web", ServiceSpec.model_validate({"environment": {field: value}}))
    assert getattr(entity, field) == value


@pytest.mark.parametrize("field", ["region", "node", "s3", "database"])
def test_environment_toggle_explicit_null_disables(field: str) -> None:
    entity = normalize_service(_defaults(), "web", ServiceSpec.model_validate({"environment": {field: None}}))
    assert getattr(entity, field) is None


def test_kms_inherits_and_overrides() -> None:
    """
    Given: 글로벌 kms=true
    When: 엔티티가 kms를 생략/false/AES256/ARN으로 지정
    Then: 각각 AWS 관리/비활성/S3 관리/고객 관리 키
    """
    defaults = _defaults()
    arn = "arn:aws:kms:us-east-1:123456789012:key/1234abcd-12ab-34cd-56ef-1234567890ab"

    assert normalize_service(defaults, "a", ServiceSpec()).kms.mode is KmsMode.AWS_MANAGED
    assert normalize_service(defaults, "a", ServiceSpec(kms=False)).kms.mode is KmsMode.DISABLED
    assert normalize_service(defaults, "a", ServiceSpec(kms="aes256")).kms.mode is KmsMode.S3_MANAGED
    custom = normalize_service(defaults, "a", ServiceSpec(kms=arn)).kms
    assert custom.mode is KmsMode.CUSTOMER_MANAGED
    assert custom.key_arn == arn


def test_kms_setting_parse_rejects_unknown_strings() -> None:
    with pytest.raises(ValueError, match="Unsupported kms value"):
        KmsSetting.parse("yes please")
    assert not KmsSetting.parse(None).enabled
    assert KmsSetting.parse("alias/app").enabled


def test_lambda_scalars_inherit_and_override() -> None:
    defaults = _defaults()
    inherited = normalize_lambda(defaults, "webhook", LambdaSpec.model_validate({"timeout": None}))
    assert inherited.runtime == "nodejs22.x"
    assert inherited.timeout == 30
    assert inherited.memory_size == 256
    assert inherited.layers == tuple(defaults.layers)

    explicit = normalize_lambda(
        defaults, "cron", LambdaSpec.model_validate({"timeout": 300, "runtime": "python3.12", "layers": []})
    )
    assert explicit.timeout == 300
    assert explicit.runtime == "python3.12"
    assert explicit.layers == ()


def test_network_access_three_states() -> None:
    defaults = _defaults()
    assert normalize_lambda(defaults, "a", LambdaSpec()).network_access == defaults.network_access
    assert normalize_lambda(defaults, "a", LambdaSpec(network_access=None)).network_access is None
    assert normalize_lambda(defaults, "a", LambdaSpec(network_access=True)).network_access is True


def test_variables_and_secrets_merge_with_entity_precedence() -> None:
    defaults = _defaults(environment={"variables": {"LOG_LEVEL": "info", "FEATURE_X": "on"}})
    spec = ServiceSpec.model_validate(
        {"environment": {"variables": {"LOG_LEVEL": "debug"}}, "secrets": {"STRIPE_KEY": "stripe:secretKey"}}
    )
    entity = normalize_service(defaults, "api", spec)
    assert dict(entity.variables) == {"LOG_LEVEL": "debug", "FEATURE_X": "on"}
    assert dict(entity.secrets) == {"SENTRY_DSN": "sentry:dsn", "STRIPE_KEY": "stripe:secretKey"}


def test_normalize_orders_entities_by_name() -> None:
    services, lambdas = normalize(
        _defaults(),
        {"web": ServiceSpec(), "api": ServiceSpec()},
        {"worker": LambdaSpec(), "cron": LambdaSpec()},
    )
    assert list(services) == ["api", "web"]
    assert list(lambdas) == ["cron", "worker"]
    assert lambdas["cron"].is_lambda
    assert not services["api"].is_lambda
