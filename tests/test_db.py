import stat
from contextlib import closing

from netfence.db import apply_all, connect, current_version, ensure_db


def _tables(conn):
    return {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}


def test_current_version_of_fresh_database_is_zero():
    with closing(connect(":memory:")) as conn:
        assert current_version(conn) == 0


def test_apply_all_creates_schema_and_defaults():
    with closing(connect(":memory:")) as conn:
        apply_all(conn)
        tables = _tables(conn)
        for name in ("defaults", "rules", "rule_port", "rule_src_cidr", "rule_dst_cidr", "rule_icmp_type", "audit_log"):
            assert name in tables
        row = conn.execute(
            "SELECT input_policy, forward_policy, output_policy, log_prefix FROM defaults WHERE id=1"
        ).fetchone()
        assert row == ("drop", "drop", "accept", "")
        assert current_version(conn) >= 1


def test_apply_all_is_idempotent():
    with closing(connect(":memory:")) as conn:
        apply_all(conn)
        version = current_version(conn)
        apply_all(conn)
        assert current_version(conn) == version
        assert conn.execute("SELECT COUNT(*) FROM defaults").fetchone() == (1,)


def test_deleting_rule_cascades_to_child_rows():
    with closing(connect(":memory:")) as conn:
        apply_all(conn)
        with conn:
            conn.execute("INSERT INTO rules(id, chain, proto, action, enabled) VALUES(5, 'input', 'tcp', 'accept', 1)")
            conn.execute("INSERT INTO rule_port(rule_id, port) VALUES(5, 22)")
            conn.execute("INSERT INTO rule_src_cidr(rule_id, cidr) VALUES(5, '10.0.0.0/8')")
        with conn:
            conn.execute("DELETE FROM rules WHERE id=5")
        assert conn.execute("SELECT COUNT(*) FROM rule_port").fetchone() == (0,)
        assert conn.execute("SELECT COUNT(*) FROM rule_src_cidr").fetchone() == (0,)


def test_ensure_db_creates_file_directories_and_users(tmp_path):
    path = tmp_path / "etc" / "nested" / "firewall.db"
    ensure_db(str(path))
    assert path.exists()
    assert stat.S_IMODE(path.stat().st_mode) & 0o077 == 0
    with closing(connect(str(path))) as conn:
        roles = dict(conn.execute("SELECT name, role FROM users"))
        assert roles == {"root": "admin", "operator": "operator"}
        assert "rules" in _tables(conn)


def test_ensure_db_twice_keeps_single_seed(tmp_path):
    path = str(tmp_path / "firewall.db")
    ensure_db(path)
    ensure_db(path)
    with closing(connect(path)) as conn:
        assert conn.execute("SELECT COUNT(*) FROM users").fetchone() == (2,)
        assert conn.execute("SELECT COUNT(*) FROM defaults").fetchone() == (1,)


def test_ensure_db_with_uri(tmp_path):
    uri = f"file:{tmp_path / 'uri.db'}"
    ensure_db(uri)
    with closing(connect(uri)) as conn:
        assert conn.execute("SELECT role FROM users WHERE name='root'").fetchone() == ("admin",)
        assert current_version(conn) >= 1