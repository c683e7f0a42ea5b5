from contextlib import closing

import pytest

from netfence.db import apply_all, connect
from netfence.model import Defaults, Rule
from netfence.repo import AuditRepo, DefaultsRepo, RuleRepo, UserNotFoundError, UserRepo


@pytest.fixture
def conn():
    with closing(connect(":memory:")) as c:
        apply_all(c)
        with c:
            c.execute("INSERT INTO users(name, role) VALUES('root','admin'),('operator','operator')")
        yield c


def _rule(**kwargs):
    base = dict(chain="input", proto="tcp", action="accept", enabled=True)
    base.update(kwargs)
    return Rule(**base)


def test_defaults_after_migration(conn):
    assert DefaultsRepo(conn).get() == Defaults("drop", "drop", "accept", "")


def test_defaults_set_round_trip(conn):
    repo = DefaultsRepo(conn)
    wanted = Defaults("accept", "drop", "drop", "fw:")
    repo.set(wanted)
    assert repo.get() == wanted


def test_defaults_missing_row_raises(conn):
    with conn:
        conn.execute("DELETE FROM defaults")
    with pytest.raises(LookupError):
        DefaultsRepo(conn).get()


def test_create_and_list_round_trip(conn):
    repo = RuleRepo(conn)
    rule = _rule(
        in_if="eth0",
        out_if="eth1",
        ports=[22, 80, 443],
        src_cidrs=["10.0.0.0/8"],
        dst_cidrs=["192.168.1.0/24", "172.16.0.0/12"],
        icmp_types=[8],
        comment="ssh and web",
    )
    rule_id = repo.create(rule)
    rule.id = rule_id
    assert repo.list() == [rule]


def test_optional_fields_stay_none(conn):
    repo = RuleRepo(conn)
    repo.create(_rule())
    (stored,) = repo.list()
    assert (stored.in_if, stored.out_if, stored.comment) == (None, None, None)
    assert stored.ports == []


def test_list_ordered_by_id(conn):
    repo = RuleRepo(conn)
    ids = [repo.create(_rule(ports=[p])) for p in (10, 20, 30)]
    listed = repo.list()
    assert [r.id for r in listed] == sorted(ids)
    assert [r.ports for r in listed] == [[10], [20], [30]]


def test_list_only_enabled(conn):
    repo = RuleRepo(conn)
    on = repo.create(_rule(enabled=True))
    off = repo.create(_rule(enabled=False))
    assert [r.id for r in repo.list(True)] == [on]
    assert {r.id for r in repo.list(False)} == {on, off}


def test_delete_removes_rule_and_parts(conn):
    repo = RuleRepo(conn)
    keep = repo.create(_rule(ports=[1]))
    gone = repo.create(_rule(ports=[2], src_cidrs=["10.0.0.0/8"]))
    repo.delete(gone)
    assert [r.id for r in repo.list()] == [keep]
    (count,) = conn.execute("SELECT COUNT(*) FROM rule_port WHERE rule_id=?", (gone,)).fetchone()
    assert count == 0


def test_delete_missing_id_is_silent(conn):
    repo = RuleRepo(conn)
    kept = repo.create(_rule())
    repo.delete(kept + 100)
    assert [r.id for r in repo.list()] == [kept]


def test_role_of_known_users(conn):
    users = UserRepo(conn)
    assert users.role_of("root") == "admin"
    assert users.role_of("operator") == "operator"


def test_role_of_unknown_user(conn):
    with pytest.raises(UserNotFoundError) as info:
        UserRepo(conn).role_of("nobody")
    assert info.value.name == "nobody"
    assert '"nobody"' in str(info.value)


def test_audit_write_stores_entry(conn):
    AuditRepo(conn).write("root", "apply", "ruleset", '{"rules":0}')
    rows = conn.execute("SELECT actor, action, object, details FROM audit_log").fetchall()
    assert rows == [("root", "apply", "ruleset", '{"rules":0}')]