import os
import stat

import pytest

from netfence.cli import format_defaults_table, format_rules_table, main, parse_ports, split_csv
from netfence.db import connect
from netfence.model import Defaults, Rule
from netfence.util import read_yaml


@pytest.fixture
def base(tmp_path):
    db = tmp_path / "data" / "fw.db"
    lock = tmp_path / "netfence.lock"
    return ["--db", str(db), "--lock-file", str(lock)]


def _rule_ids(output):
    lines = output.splitlines()[1:]
    return [int(line.split()[0]) for line in lines]


def test_split_csv():
    assert split_csv(" a , ,b,") == ["a", "b"]
    assert split_csv("   ") == []


def test_parse_ports():
    assert parse_ports("22, 80,443") == [22, 80, 443]
    assert parse_ports("") == []
    with pytest.raises(ValueError):
        parse_ports("22,abc")


def test_format_defaults_table():
    text = format_defaults_table(Defaults("drop", "drop", "accept", ""))
    lines = text.splitlines()
    assert lines[0] == "DEFAULT POLICIES"
    assert lines[1].split() == ["INPUT", "FORWARD", "OUTPUT", "LOG_PREFIX"]
    assert lines[2].split() == ["drop", "drop", "accept"]


def test_format_rules_table():
    rule = Rule(id=7, chain="input", proto="tcp", action="accept", ports=[22, 80],
                src_cidrs=["10.0.0.0/8"], enabled=True)
    lines = format_rules_table([rule]).splitlines()
    assert lines[0].startswith("ID  CHAIN    PROTO  ACTION  EN")
    cells = lines[1].split()
    assert cells[:5] == ["7", "input", "tcp", "accept", "✓"]
    assert "[22,80]" in cells
    assert "[10.0.0.0/8]" in cells
    assert cells[-1] == "-"


def test_add_and_list(base, capsys):
    assert main(base + ["add-rule", "--proto", "tcp", "--ports", "22,80"]) == 0
    assert capsys.readouterr().out == "created id=1\n"
    assert main(base + ["add-rule", "--no-enabled", "--action", "drop"]) == 0
    capsys.readouterr()
    assert main(base + ["list"]) == 0
    assert _rule_ids(capsys.readouterr().out) == [1, 2]
    assert main(base + ["list", "--enabled"]) == 0
    assert _rule_ids(capsys.readouterr().out) == [1]


def test_add_rule_invalid(base, capsys):
    assert main(base + ["add-rule", "--chain", "bogus"]) == 1
    assert "invalid rule: chain" in capsys.readouterr().err


def test_add_rule_bad_port(base, capsys):
    assert main(base + ["add-rule", "--ports", "x"]) == 1
    assert "bad port" in capsys.readouterr().err


def test_unknown_user(base, capsys):
    assert main(base + ["--as", "nobody", "add-rule"]) == 1
    assert 'user "nobody" not found' in capsys.readouterr().err


def test_del_rule(base, capsys):
    main(base + ["add-rule"])
    main(base + ["add-rule"])
    assert main(base + ["del-rule", "1"]) == 0
    capsys.readouterr()
    main(base + ["list"])
    assert _rule_ids(capsys.readouterr().out) == [2]


def test_defaults_show_and_set(base, capsys):
    assert main(base + ["defaults"]) == 0
    assert capsys.readouterr().out.splitlines()[2].split() == ["drop", "drop", "accept"]
    assert main(base + ["set-defaults", "--input", "accept", "--log-prefix", "fw"]) == 0
    assert capsys.readouterr().out == "ok\n"
    main(base + ["defaults"])
    assert capsys.readouterr().out.splitlines()[2].split() == ["accept", "drop", "accept", "fw"]


def test_set_defaults_needs_admin(base, capsys):
    assert main(base + ["--as", "operator", "set-defaults"]) == 1
    assert "rbac: need admin, got operator" in capsys.readouterr().err


def test_set_defaults_invalid_policy(base, capsys):
    assert main(base + ["set-defaults", "--input", "reject"]) == 1
    assert "invalid policy" in capsys.readouterr().err


def test_export_import_round_trip(base, tmp_path, capsys):
    snap = tmp_path / "snap.yaml"
    main(base + ["add-rule", "--proto", "udp", "--ports", "53", "--src", "10.0.0.0/8", "--comment", "dns"])
    main(base + ["set-defaults", "--output", "drop"])
    assert main(base + ["export", "--file", str(snap)]) == 0
    data = read_yaml(snap)
    assert data["defaults"]["outputpolicy"] == "drop"
    assert data["rules"][0]["ports"] == [53]

    other = ["--db", str(tmp_path / "other.db"), "--lock-file", str(tmp_path / "l2")]
    main(other + ["add-rule"])
    main(other + ["add-rule"])
    capsys.readouterr()
    assert main(other + ["import", "--file", str(snap)]) == 0
    assert capsys.readouterr().out == "imported\n"
    main(other + ["list"])
    out = capsys.readouterr().out
    assert _rule_ids(out) == [1]
    assert "dns" in out
    main(other + ["defaults"])
    assert capsys.readouterr().out.splitlines()[2].split()[2] == "drop"

    conn = connect(str(tmp_path / "other.db"))
    actions = [a for (a,) in conn.execute("SELECT action FROM audit_log ORDER BY id")]
    conn.close()
    assert actions[-1] == "import_yaml"


def test_import_needs_admin(base, tmp_path, capsys):
    snap = tmp_path / "snap.yaml"
    main(base + ["export", "--file", str(snap)])
    capsys.readouterr()
    assert main(base + ["--as", "operator", "import", "--file", str(snap)]) == 1
    assert "rbac: need admin" in capsys.readouterr().err


def test_dryrun_shows_only_enabled(base, capsys):
    main(base + ["add-rule"])
    main(base + ["add-rule", "--no-enabled"])
    capsys.readouterr()
    assert main(base + ["dryrun"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("DEFAULT POLICIES\n")
    tables = out.split("\n\n")
    assert _rule_ids(tables[1]) == [1]


def _fake_nft(directory, body):
    script = directory / "nft"
    script.write_text("#!/bin/sh\n" + body)
    script.chmod(script.stat().st_mode | stat.S_IXUSR)


def test_apply_runs_nft(base, tmp_path, monkeypatch, capsys):
    bindir = tmp_path / "bin"
    bindir.mkdir()
    out_file = tmp_path / "script.nft"
    _fake_nft(bindir, f"cat > '{out_file}'\n")
    monkeypatch.setenv("PATH", str(bindir) + os.pathsep + os.environ.get("PATH", ""))
    main(base + ["add-rule", "--proto", "tcp", "--ports", "22"])
    capsys.readouterr()
    assert main(base + ["apply"]) == 0
    assert capsys.readouterr().out == "applied\n"
    script = out_file.read_text()
    assert script.startswith("flush ruleset\n")
    assert "tcp dport { 22 } accept" in script


def test_apply_reports_nft_failure(base, tmp_path, monkeypatch, capsys):
    bindir = tmp_path / "bin"
    bindir.mkdir()
    _fake_nft(bindir, "echo broken >&2\nexit 1\n")
    monkeypatch.setenv("PATH", str(bindir) + os.pathsep + os.environ.get("PATH", ""))
    assert main(base + ["apply"]) == 1
    err = capsys.readouterr().err
    assert "nft failed" in err
    assert "broken" in err