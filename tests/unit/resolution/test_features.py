from __future__ import annotations

import pytest

from appstack.resolution import resolve
from appstack.resolution.features import FeatureFlags
from tests.fixtures.config_builders import build_context, build_project, build_stack_config

pytestmark = [pytest.mark.unit]


def test_empty_configuration_enables_nothing() -> None:
    """
    Given: 서비스/Lambda가 없는 구성
    When: 해석
    Then: 모든 기능 플래그 비활성
    """
    resolved = resolve(build_stack_config(), build_context())
    assert resolved.features == FeatureFlags()
    assert resolved.features.enabled() == []
    assert resolved.entities == ()


def test_project_switches_force_features() -> None:
    raw = build_stack_config(project=build_project(alb=True, s3=True, alarm_email="ops@example.com"))
    features = resolve(raw, build_context()).features
    assert features.enabled() == ["alb", "s3", "monitoring"]


def test_features_follow_entities() -> None:
    """
    Given: source 빌드 서비스, DB 사용 Lambda, SQS/S3/스케줄 트리거, 고객 관리 KMS
    When: 해석
    Then: 관련 기능 플래그 활성
    """
    raw = build_stack_config(
        project=build_project(bastion=True),
        services={"api": {"source": "apps/api", "permissions": {"ses": True}}},
        lambdas={
            "cron": {"environment": {"database": True}, "triggers": {"schedule": "cron(0 3 * * ? *)"}},
            "ingest": {"triggers": {"sqs": {"batch_size": 5}, "s3": {"prefix": "uploads/"}}},
            "vault": {"kms": "arn:aws:kms:us-east-1:123456789012:key/abcd"},
        },
    )
    features = resolve(raw, build_context()).features

    assert features.ecr and features.fargate
    assert features.rds and features.bastion and features.lambda_vpc
    assert features.sqs and features.scheduler and features.s3_notifications
    assert features.ses and features.customer_kms
    assert features.shared_role and features.custom_roles
    assert not features.alb and not features.api_gateway and not features.dns


def test_prebuilt_image_does_not_need_registry() -> None:
    raw = build_stack_config(services={"web": {"image": "public.ecr.aws/nginx/nginx:latest"}})
    features = resolve(raw, build_context()).features
    assert features.fargate
    assert not features.ecr


def test_features_do_not_depend_on_entity_order() -> None:
    lambdas = {
        "b": {"triggers": {"schedule": "rate(1 hour)"}},
        "a": {"environment": {"database": True}},
    }
    forward = resolve(build_stack_config(lambdas=lambdas), build_context()).features
    backward = resolve(
        build_stack_config(lambdas=dict(reversed(list(lambdas.items())))), build_context()
    ).features
    assert forward == backward
    assert forward.to_dict()["scheduler"] is True
