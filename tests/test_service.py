import json
from contextlib import closing

import pytest

from netfence.db import apply_all, connect
from netfence.model import Defaults, Rule
from netfence.repo import AuditRepo, DefaultsRepo, RuleRepo
from netfence.service import (
    AuditService,
    DefaultsService,
    InvalidPolicyError,
    InvalidRuleError,
    RulesService,
    valid_policy,
    validate_rule,
)
from netfence.util import InterfaceNotFoundError


@pytest.fixture
def conn():
    with closing(connect(":memory:")) as c:
        apply_all(c)
        yield c


def _no_check(name):
    return None


def _missing(name):
    raise InterfaceNotFoundError(name)


def _service(conn, check=_no_check):
    return RulesService(RuleRepo(conn), AuditService(AuditRepo(conn)), check)


def _audit_rows(conn):
    return conn.execute("SELECT actor, action, object, details FROM audit_log ORDER BY id").fetchall()


def _rule(**kwargs):
    base = dict(chain="input", proto="tcp", action="accept", enabled=True)
    base.update(kwargs)
    return Rule(**base)


@pytest.mark.parametrize("policy,expected", [
    ("accept", True), ("drop", True), ("ACCEPT", True), ("Drop", True), ("reject", False), ("", False),
])
def test_valid_policy(policy, expected):
    assert valid_policy(policy) is expected


@pytest.mark.parametrize("changes,field", [
    ({"chain": "prerouting"}, "chain"),
    ({"proto": "sctp"}, "proto"),
    ({"action": "reject"}, "action"),
    ({"ports": [0]}, "port"),
    ({"ports": [65536]}, "port"),
    ({"src_cidrs": ["10.0.0.1"]}, "src_cidr"),
    ({"src_cidrs": ["not-a-cidr/8"]}, "src_cidr"),
    ({"dst_cidrs": ["10.0.0.0/33"]}, "dst_cidr"),
    ({"icmp_types": [256]}, "icmp_type"),
    ({"icmp_types": [-1]}, "icmp_type"),
    ({"in_if": "  "}, "in_if"),
    ({"out_if": ""}, "out_if"),
])
def test_validate_rule_rejects(changes, field):
    with pytest.raises(InvalidRuleError) as info:
        validate_rule(_rule(**changes))
    assert info.value.field == field
    assert str(info.value) == f"invalid rule: {field}"


def test_validate_rule_accepts_full_rule():
    rule = _rule(
        ports=[1, 65535],
        src_cidrs=["10.0.0.0/8", "2001:db8::/32"],
        dst_cidrs=["192.168.0.1/32"],
        icmp_types=[0, 255],
        in_if="eth0",
    )
    validate_rule(rule)
    assert rule.ports == [1, 65535]


def test_defaults_service_set_and_get(conn):
    service = DefaultsService(DefaultsRepo(conn))
    wanted = Defaults("ACCEPT", "drop", "accept", "nf")
    service.set(wanted)
    assert service.get() == wanted


def test_defaults_service_rejects_bad_policy(conn):
    service = DefaultsService(DefaultsRepo(conn))
    before = service.get()
    with pytest.raises(InvalidPolicyError):
        service.set(Defaults("accept", "reject", "drop", ""))
    assert service.get() == before


def test_add_stores_rule_and_audits(conn):
    service = _service(conn)
    rule = _rule(ports=[22], in_if="eth0")
    rule_id = service.add("root", rule)
    (stored,) = service.list()
    assert stored.id == rule_id
    assert stored.ports == [22]
    ((actor, action, obj, details),) = _audit_rows(conn)
    assert (actor, action, obj) == ("root", "add_rule", f"rule:{rule_id}")
    assert json.loads(details)["ports"] == [22]


def test_add_invalid_rule_stores_nothing(conn):
    service = _service(conn)
    with pytest.raises(InvalidRuleError):
        service.add("root", _rule(action="reject"))
    assert service.list() == []
    assert _audit_rows(conn) == []


def test_add_with_missing_interface_stores_nothing(conn):
    service = _service(conn, _missing)
    with pytest.raises(InterfaceNotFoundError):
        service.add("root", _rule(out_if="wlan9"))
    assert service.list() == []


def test_list_enabled_only(conn):
    service = _service(conn)
    on = service.add("root", _rule(enabled=True))
    service.add("root", _rule(enabled=False))
    assert [r.id for r in service.list(True)] == [on]


def test_delete_removes_and_audits(conn):
    service = _service(conn)
    rule_id = service.add("operator", _rule())
    service.delete("operator", rule_id)
    assert service.list() == []
    assert _audit_rows(conn)[-1] == ("operator", "del_rule", f"rule:{rule_id}", "{}")


def test_audit_log_mapping_details_round_trip(conn):
    details = {"input": "drop", "forward": "drop", "output": "accept", "log": ""}
    AuditService(AuditRepo(conn)).log("root", "set_defaults", "defaults:1", details)
    ((actor, action, obj, stored),) = _audit_rows(conn)
    assert (actor, action, obj) == ("root", "set_defaults", "defaults:1")
    assert json.loads(stored) == details


def test_audit_log_without_details(conn):
    AuditService(AuditRepo(conn)).log("root", "apply", "ruleset")
    assert _audit_rows(conn)[0][3] == "{}"