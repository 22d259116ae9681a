from __future__ import annotations

import pytest

from appstack.resolution import resolve
from appstack.resolution.errors import IssueRules
from appstack.resolution.network import (
    ALLOW_ALL_RULE,
    NetworkMode,
    NetworkRule,
    build_network_plan,
    dedupe_rules,
    normalize_network_access,
)
from tests.fixtures.config_builders import build_context, build_project, build_stack_config

pytestmark = [pytest.mark.unit]

HTTPS_ANYWHERE = {"protocol": "tcp", "ports": [443], "cidrs": ["0.0.0.0/0"]}


def test_scenario_c_identical_rules_collapse_in_shared_view() -> None:
    """
    Given: 두 Lambda가 동일한 tcp/443/0.0.0.0/0 규칙 선언
    When: 전체 해석
    Then: 공유 보안 그룹 규칙은 1개, 엔티티별 뷰는 각각 1개(총 2개)
    """
    raw = build_stack_config(
        lambdas={
            "alpha": {"network_access": [HTTPS_ANYWHERE]},
            "beta": {"network_access": [HTTPS_ANYWHERE]},
        }
    )
    resolved = resolve(raw, build_context())

    expected = NetworkRule("tcp", (443,), ("0.0.0.0/0",))
    assert resolved.network.shared_lambda_rules == (expected,)
    assert resolved.network.shared_lambda_members == ("alpha", "beta")
    per_entity = [resolved.network.rules_for(name).rules for name in ("alpha", "beta")]
    assert per_entity == [(expected,), (expected,)]


def test_rule_key_ignores_port_and_cidr_order() -> None:
    first = NetworkRule.create("tcp", [443, 80], ["10.0.0.0/8", "0.0.0.0/0"])
    second = NetworkRule.create("tcp", [80, 443, 80], ["0.0.0.0/0", "10.0.0.0/8"])
    assert first.key == second.key
    assert dedupe_rules([first, second]) == (first,)


def test_normalize_network_access_modes() -> None:
    assert normalize_network_access(None).mode is NetworkMode.BLOCKED
    assert normalize_network_access(False).mode is NetworkMode.BLOCKED
    allow_all = normalize_network_access(True)
    assert allow_all.mode is NetworkMode.ALLOW_ALL
    assert allow_all.rules == (ALLOW_ALL_RULE,)


def test_port_ranges_by_mode() -> None:
    rule = NetworkRule.create("tcp", [8080, 80, 443], ["0.0.0.0/0"])
    assert rule.port_ranges("range") == ((80, 8080),)
    assert rule.port_ranges("discrete") == ((80, 80), (443, 443), (8080, 8080))
    assert NetworkRule.create("tcp", [], ["0.0.0.0/0"]).port_ranges() == ((0, 65535),)
    with pytest.raises(ValueError, match="Unknown port mode"):
        rule.port_ranges("sparse")


def test_sparse_ports_warn_in_range_mode_only() -> None:
    """
    Given: 연속되지 않은 포트 목록
    When: range 모드 / discrete 모드로 해석
    Then: range 모드에서만 경고
    """
    lambdas = {"worker": {"network_access": [{"protocol": "tcp", "ports": [80, 443], "cidrs": ["0.0.0.0/0"]}]}}

    ranged = resolve(build_stack_config(lambdas=lambdas), build_context())
    assert [w.rule for w in ranged.warnings] == [IssueRules.SPARSE_PORT_RANGE]
    assert ranged.network.port_mode == "range"

    discrete = resolve(
        build_stack_config(project=build_project(port_mode="discrete"), lambdas=lambdas), build_context()
    )
    assert discrete.warnings == ()
    assert discrete.network.port_mode == "discrete"


def test_minimum_egress_added_for_database_and_secrets() -> None:
    """
    Given: 네트워크 차단 상태에서 DB와 시크릿을 사용하는 Lambda
    When: 해석
    Then: VPC CIDR로 443과 DB 포트 암묵 규칙 추가
    """
    raw = build_stack_config(
        lambdas={"cron": {"environment": {"database": True}, "secrets": {"SENTRY_DSN": "sentry:dsn"}}}
    )
    resolved = resolve(raw, build_context(vpc_cidr="10.20.0.0/16", database_port=3306))

    access = resolved.network.rules_for("cron")
    assert access.mode is NetworkMode.BLOCKED
    assert access.rules == ()
    assert access.implicit == (
        NetworkRule("tcp", (443,), ("10.20.0.0/16",)),
        NetworkRule("tcp", (3306,), ("10.20.0.0/16",)),
    )
    assert resolved.entity("cron").vpc_attached
    assert resolved.network.shared_lambda_rules == access.implicit


def test_allow_all_skips_implicit_rules() -> None:
    raw = build_stack_config(
        services={"web": {"image": "nginx", "network_access": True, "environment": {"database": True}}}
    )
    access = resolve(raw, build_context()).network.rules_for("web")
    assert access.mode is NetworkMode.ALLOW_ALL
    assert access.egress == (ALLOW_ALL_RULE,)


def test_lambdas_outside_vpc_do_not_join_shared_group() -> None:
    raw = build_stack_config(lambdas={"edge": {}, "worker": {"network_access": [HTTPS_ANYWHERE]}})
    plan = resolve(raw, build_context()).network
    assert plan.shared_lambda_members == ("worker",)


def test_build_network_plan_rejects_unknown_port_mode() -> None:
    with pytest.raises(ValueError, match="Unknown port mode"):
        build_network_plan({}, {}, vpc_lambdas=[], port_mode="sparse")


def test_blocked_service_gets_image_pull_egress() -> None:
    """
    Given: 이미지만 지정한 차단 모드 서비스
    When: 해석
    Then: 레지스트리 이미지 풀을 위한 0.0.0.0/0:443 암묵 규칙
    """
    raw = build_stack_config(services={"web": {"image": "nginx"}})
    access = resolve(raw, build_context()).network.rules_for("web")

    assert access.mode is NetworkMode.BLOCKED
    assert access.egress == (NetworkRule("tcp", (443,), ("0.0.0.0/0",)),)
