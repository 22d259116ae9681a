from __future__ import annotations

import pytest

from appstack.resolution import ConfigurationError, SecretReferenceError, resolve
from appstack.resolution.environment import (
    canonical_database,
    qualify_secret_reference,
    split_secret_reference,
)
from appstack.resolution.errors import IssueRules
from tests.fixtures.config_builders import SECRET_ARNS, build_context, build_project, build_stack_config

pytestmark = [pytest.mark.unit]

MY_SECRET_ARN = "arn:aws:secretsmanager:us-west-2:111:secret:my-secret-AbCdEf"


def test_json_key_reference_gets_version_suffix() -> None:
    """
    Given: name:jsonKey 형식의 시크릿 참조와 조회 테이블
    When: 참조 정규화
    Then: <arn>:<jsonKey>:: 형식으로 변환
    """
    value = qualify_secret_reference("my-secret:apiKey", {"my-secret": MY_SECRET_ARN})
    assert value == f"{MY_SECRET_ARN}:apiKey::"


def test_plain_name_reference_resolves_to_arn() -> None:
    assert qualify_secret_reference("my-secret", {"my-secret": MY_SECRET_ARN}) == MY_SECRET_ARN


def test_arn_reference_passes_through() -> None:
    assert qualify_secret_reference(MY_SECRET_ARN, {}) == MY_SECRET_ARN
    assert qualify_secret_reference(f"{MY_SECRET_ARN}:apiKey", {}) == f"{MY_SECRET_ARN}:apiKey::"
    assert qualify_secret_reference(f"{MY_SECRET_ARN}:apiKey:AWSCURRENT:", {}) == f"{MY_SECRET_ARN}:apiKey:AWSCURRENT:"


def test_split_secret_reference() -> None:
    assert split_secret_reference("db:url") == ("db", "url", False)
    assert split_secret_reference("db") == ("db", None, False)
    assert split_secret_reference(f"{MY_SECRET_ARN}:apiKey") == (MY_SECRET_ARN, "apiKey", True)


def test_missing_secret_raises_secret_reference_error() -> None:
    with pytest.raises(SecretReferenceError) as exc_info:
        qualify_secret_reference("nope:key", {}, entity="api", field="secrets.API_KEY", kind="service")
    assert exc_info.value.secret_name == "nope"
    assert exc_info.value.issues[0].rule == IssueRules.MISSING_SECRET
    assert isinstance(exc_info.value, ConfigurationError)


def test_scenario_b_secret_reference_end_to_end() -> None:
    """
    Given: API_KEY=my-secret:apiKey 시크릿과 my-secret 조회 테이블
    When: 전체 구성 해석
    Then: ARN + JSON 키 + 버전 접미사로 정규화된 참조
    """
    raw = build_stack_config(
        project=build_project(region="us-west-2"),
        lambdas={"api": {"secrets": {"API_KEY": "my-secret:apiKey"}}},
    )
    resolved = resolve(raw, build_context(secret_arns={"my-secret": MY_SECRET_ARN}))

    assert resolved.entity("api").secret_map == {"API_KEY": f"{MY_SECRET_ARN}:apiKey::"}
    assert resolved.entity("api").secret_arns == (MY_SECRET_ARN,)


@pytest.mark.parametrize(
    "database",
    [
        True,
        "DATABASE_URL",
        {"name": "DATABASE_URL", "secret": "database:DATABASE_URL_ACTIVE"},
        {"name": "DATABASE_URL"},
        {},
    ],
)
def test_database_shorthand_forms_are_equivalent(database) -> None:
    """
    Given: database 단축 표기(true / 이름 문자열 / 객체)
    When: 해석
    Then: 동일한 시크릿 및 환경 변수 결과
    """
    baseline = resolve(
        build_stack_config(services={"api": {"image": "nginx", "environment": {"database": True}}}),
        build_context(),
    ).entity("api")
    entity = resolve(
        build_stack_config(services={"api": {"image": "nginx", "environment": {"database": database}}}),
        build_context(),
    ).entity("api")

    assert entity.secrets == baseline.secrets
    assert entity.environment == baseline.environment
    assert entity.secret_map == {"DATABASE_URL": f"{SECRET_ARNS['database']}:DATABASE_URL_ACTIVE::"}


def test_database_binding_uses_project_secret_name() -> None:
    binding = canonical_database(True, default_secret="main-db:DATABASE_URL_ACTIVE")
    assert binding is not None
    assert binding.name == "DATABASE_URL"
    assert binding.secret == "main-db:DATABASE_URL_ACTIVE"
    assert canonical_database(False, default_secret="x") is None
    assert canonical_database(None, default_secret="x") is None


def test_toggle_variables_and_ordering() -> None:
    """
    Given: region/node/s3 토글과 사용자 변수
    When: 서비스 해석
    Then: 토글 변수 먼저, 사용자 변수는 이름순
    """
    raw = build_stack_config(
        project=build_project(s3=True),
        defaults={"environment": {"region": True, "node": True, "s3": True, "variables": {"ZETA": "1", "ALPHA": 2}}},
        services={"web": {"image": "nginx"}},
        lambdas={"worker": {}},
    )
    resolved = resolve(raw, build_context(bucket_id="acme-assets"))

    web = resolved.entity("web")
    assert [item.name for item in web.environment] == ["AWS_REGION", "NODE_ENV", "S3_BUCKET", "ALPHA", "ZETA"]
    assert web.environment_map["AWS_REGION"] == "us-east-1"
    assert web.environment_map["NODE_ENV"] == "dev"
    assert web.environment_map["S3_BUCKET"] == "acme-assets"
    assert web.environment_map["ALPHA"] == "2"

    # Lambda runtime already provides AWS_REGION
    assert "AWS_REGION" not in resolved.entity("worker").environment_map


def test_s3_variable_skipped_when_project_bucket_disabled() -> None:
    raw = build_stack_config(
        project=build_project(s3=False),
        defaults={"environment": {"s3": True}},
        services={"web": {"image": "nginx"}},
    )
    resolved = resolve(raw, build_context())
    assert "S3_BUCKET" not in resolved.entity("web").environment_map
    assert [w.rule for w in resolved.warnings] == [IssueRules.S3_DISABLED]


def test_custom_toggle_names() -> None:
    raw = build_stack_config(
        project=build_project(s3=True),
        services={"web": {"image": "nginx", "environment": {"region": "REGION", "node": "staging", "s3": "BUCKET"}}},
    )
    env = resolve(raw, build_context()).entity("web").environment_map
    assert env == {"REGION": "us-east-1", "NODE_ENV": "staging", "BUCKET": "acme-app-dev-assets"}


def _collision_config(policy: str):
    return build_stack_config(
        project=build_project(secret_collisions=policy),
        services={
            "api": {
                "image": "nginx",
                "environment": {"database": True},
                "secrets": {"DATABASE_URL": "api-keys:replicaUrl"},
            }
        },
    )


def test_secret_collision_rejected_by_default() -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        resolve(_collision_config("error"), build_context())
    assert [issue.rule for issue in exc_info.value.issues] == [IssueRules.SECRET_COLLISION]


def test_secret_collision_policies() -> None:
    database_wins = resolve(_collision_config("database_wins"), build_context()).entity("api")
    assert database_wins.secret_map["DATABASE_URL"] == f"{SECRET_ARNS['database']}:DATABASE_URL_ACTIVE::"

    user_wins = resolve(_collision_config("user_wins"), build_context()).entity("api")
    assert user_wins.secret_map["DATABASE_URL"] == f"{SECRET_ARNS['api-keys']}:replicaUrl::"


def test_database_binding_replaces_custom_variable_of_same_name() -> None:
    """
    Given: database=true와 같은 이름(DATABASE_URL)의 사용자 변수
    When: 해석
    Then: DATABASE_URL은 시크릿으로만 한 번 노출
    """
    raw = build_stack_config(
        services={
            "api": {
                "image": "nginx",
                "environment": {"database": True, "variables": {"DATABASE_URL": "postgres://x", "PORT": 3000}},
            }
        }
    )
    entity = resolve(raw, build_context()).entity("api")

    assert entity.environment_map == {"PORT": "3000"}
    assert list(entity.secret_map) == ["DATABASE_URL"]
    names = [item.name for item in entity.environment] + [item.name for item in entity.secrets]
    assert len(names) == len(set(names))
