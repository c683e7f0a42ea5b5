"""Command-line interface of the firewall manager."""

from __future__ import annotations

import argparse
import sqlite3
import sys
from contextlib import closing, contextmanager, nullcontext
from typing import Iterable, Iterator, Sequence

from netfence.db import MigrationError, apply_all, connect, ensure_db
from netfence.model import Defaults, Rule
from netfence.render import render
from netfence.repo import AuditRepo, DefaultsRepo, RuleRepo, UserRepo
from netfence.service import AuditService, DefaultsService, RulesService
from netfence.util import CommandError, ShellRunner, acquire, read_yaml, write_yaml

DEFAULT_DB = "/etc/firewall.db"
DEFAULT_LOCK_FILE = "/var/lock/netfence.lock"

_RULES_HEADER = (
    "ID  CHAIN    PROTO  ACTION  EN  IN_IF     OUT_IF    PORTS        SRC               DST"
    "               ICMP     COMMENT"
)

_ERRORS = (
    sqlite3.Error,
    OSError,
    ValueError,
    LookupError,
    CommandError,
    MigrationError,
    RuntimeError,
)


def split_csv(text: str) -> list[str]:
    """Split comma-separated text into trimmed, non-empty items."""
    if not text.strip():
        return []
    return [part.strip() for part in text.split(",") if part.strip()]


def parse_ports(text: str) -> list[int]:
    """Parse comma-separated port numbers; an empty string gives no ports."""
    if not text:
        return []
    ports = []
    for piece in text.split(","):
        piece = piece.strip()
        try:
            ports.append(int(piece))
        except ValueError:
            raise ValueError(f"bad port: {piece!r}") from None
    return ports


def _int_cells(values: Iterable[int]) -> str:
    return "[" + ",".join(str(v) for v in values) + "]"


def _str_cells(values: Iterable[str]) -> str:
    return "[" + ",".join(values) + "]"


def format_rules_table(rules: Iterable[Rule]) -> str:
    """Return the rules as a plain-text table with a header line."""
    lines = [_RULES_HEADER]
    for rule in rules:
        in_if = rule.in_if or "-"
        out_if = rule.out_if or "-"
        comment = rule.comment or "-"
        enabled = "✓" if rule.enabled else "-"
        lines.append(
            f"{rule.id:<3} {rule.chain:<8} {rule.proto:<6} {rule.action:<7} {enabled:<3} "
            f"{in_if:<9} {out_if:<9} {_int_cells(rule.ports):<12} "
            f"{_str_cells(rule.src_cidrs):<16} {_str_cells(rule.dst_cidrs):<16} "
            f"{_int_cells(rule.icmp_types):<8} {comment}"
        )
    return "\n".join(lines) + "\n"


def format_defaults_table(defaults: Defaults) -> str:
    """Return the default policies as a plain-text table."""
    return (
        "DEFAULT POLICIES\n"
        f"{'INPUT':<8} {'FORWARD':<8} {'OUTPUT':<8} LOG_PREFIX\n"
        f"{defaults.input_policy:<8} {defaults.forward_policy:<8} "
        f"{defaults.output_policy:<8} {defaults.log_prefix}\n"
    )


@contextmanager
def _session(args: argparse.Namespace, locked: bool = False) -> Iterator[sqlite3.Connection]:
    ensure_db(args.db)
    lock = acquire(args.lock_file) if locked else nullcontext()
    with lock, closing(connect(args.db)) as conn:
        apply_all(conn)
        yield conn


def _require_role(conn: sqlite3.Connection, actor: str, roles: tuple[str, ...], message: str) -> None:
    role = UserRepo(conn).role_of(actor)
    if role not in roles:
        raise PermissionError(message.format(role=role))


def _audit(conn: sqlite3.Connection, actor: str, action: str, obj: str, details: object) -> None:
    try:
        AuditService(AuditRepo(conn)).log(actor, action, obj, details)
    except sqlite3.Error:
        pass


def _safe_defaults(conn: sqlite3.Connection) -> Defaults:
    try:
        return DefaultsRepo(conn).get()
    except (sqlite3.Error, LookupError):
        return Defaults()


def _safe_rules(conn: sqlite3.Connection, only_enabled: bool) -> list[Rule]:
    try:
        return RuleRepo(conn).list(only_enabled)
    except sqlite3.Error:
        return []


def _rules_service(conn: sqlite3.Connection) -> RulesService:
    return RulesService(RuleRepo(conn), AuditService(AuditRepo(conn)))


def _cmd_list(args: argparse.Namespace) -> None:
    with _session(args) as conn:
        rules = RuleRepo(conn).list(args.enabled)
    print(format_rules_table(rules), end="")


def _cmd_defaults(args: argparse.Namespace) -> None:
    with _session(args) as conn:
        defaults = DefaultsRepo(conn).get()
    print(format_defaults_table(defaults), end="")


def _cmd_set_defaults(args: argparse.Namespace) -> None:
    with _session(args, locked=True) as conn:
        _require_role(conn, args.actor, ("admin",), "rbac: need admin, got {role}")
        DefaultsService(DefaultsRepo(conn)).set(
            Defaults(args.input, args.forward, args.output, args.log_prefix)
        )
        _audit(
            conn,
            args.actor,
            "set_defaults",
            "defaults:1",
            {"input": args.input, "forward": args.forward, "output": args.output, "log": args.log_prefix},
        )
    print("ok")


def _cmd_add_rule(args: argparse.Namespace) -> None:
    with _session(args, locked=True) as conn:
        _require_role(
            conn, args.actor, ("admin", "operator"), "rbac: need operator or admin, got {role}"
        )
        rule = Rule(
            chain=args.chain,
            proto=args.proto,
            action=args.action,
            ports=parse_ports(args.ports),
            enabled=args.enabled,
            src_cidrs=split_csv(args.src),
            dst_cidrs=split_csv(args.dst),
            in_if=args.in_if or None,
            out_if=args.out_if or None,
            comment=args.comment or None,
        )
        rule_id = _rules_service(conn).add(args.actor, rule)
    print(f"created id={rule_id}")


def _cmd_del_rule(args: argparse.Namespace) -> None:
    with _session(args, locked=True) as conn:
        _require_role(
            conn, args.actor, ("admin", "operator"), "rbac: need operator or admin, got {role}"
        )
        try:
            rule_id = int(args.id.strip())
        except ValueError:
            rule_id = 0
        _rules_service(conn).delete(args.actor, rule_id)


def _cmd_export(args: argparse.Namespace) -> None:
    with _session(args) as conn:
        defaults = _safe_defaults(conn)
        rules = _safe_rules(conn, False)
    write_yaml(
        args.file,
        {"defaults": defaults.to_dict(), "rules": [rule.to_dict() for rule in rules]},
    )


def _cmd_import(args: argparse.Namespace) -> None:
    with _session(args, locked=True) as conn:
        _require_role(conn, args.actor, ("admin",), "rbac: need admin")
        snapshot = read_yaml(args.file) or {}
        if not isinstance(snapshot, dict):
            raise ValueError(f"{args.file}: snapshot must be a mapping")
        defaults = Defaults.from_dict(snapshot.get("defaults"))
        rules = [Rule.from_dict(item) for item in snapshot.get("rules") or []]
        with conn:
            conn.execute("DELETE FROM rules")
        DefaultsRepo(conn).set(defaults)
        repo = RuleRepo(conn)
        for rule in rules:
            repo.create(rule)
        _audit(conn, args.actor, "import_yaml", "snapshot", {"count": len(rules)})
    print("imported")


def _cmd_dryrun(args: argparse.Namespace) -> None:
    with _session(args) as conn:
        defaults = _safe_defaults(conn)
        rules = _safe_rules(conn, True)
    print(format_defaults_table(defaults))
    print(format_rules_table(rules), end="")


def _cmd_apply(args: argparse.Namespace) -> None:
    with _session(args, locked=True) as conn:
        _require_role(
            conn, args.actor, ("admin", "operator"), "rbac: need operator or admin, got {role}"
        )
        defaults = _safe_defaults(conn)
        rules = _safe_rules(conn, True)
        script = render(defaults, rules)
        try:
            ShellRunner().run("nft", script.encode("utf-8"), "-f", "-")
        except CommandError as exc:
            raise CommandError(
                f"nft failed: {exc}\n{exc.stderr}", exc.stdout, exc.stderr, exc.returncode
            ) from exc
        _audit(conn, args.actor, "apply", "ruleset", {"rules": len(rules)})
    print("applied")


def _run_tui(db_path: str, actor: str) -> None:
    from netfence.tui import run

    ensure_db(db_path)
    run(db_path, actor)


def _cmd_tui(args: argparse.Namespace) -> None:
    _run_tui(args.db, args.actor)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="netfence", description="netfence - firewall/NFT manager with SQLite and TUI"
    )
    parser.add_argument("--db", default=DEFAULT_DB, help="path to firewall sqlite db")
    parser.add_argument("--as", dest="actor", default="root", help="actor (RBAC user)")
    parser.add_argument("--lock-file", default=DEFAULT_LOCK_FILE, help="path of the lock file")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="List firewall rules")
    p.add_argument("--enabled", action="store_true", help="show only enabled rules")
    p.set_defaults(handler=_cmd_list)

    p = sub.add_parser("defaults", help="Show default policies")
    p.set_defaults(handler=_cmd_defaults)

    p = sub.add_parser("set-defaults", help="Set default policies")
    p.add_argument("--input", default="drop", help="policy for input (accept|drop)")
    p.add_argument("--forward", default="drop", help="policy for forward (accept|drop)")
    p.add_argument("--output", default="accept", help="policy for output (accept|drop)")
    p.add_argument("--log-prefix", default="", help="log prefix or empty")
    p.set_defaults(handler=_cmd_set_defaults)

    p = sub.add_parser("add-rule", help="Create a rule")
    p.add_argument("--chain", default="input", help="input|forward|output")
    p.add_argument("--proto", default="all", help="all|tcp|udp|icmp")
    p.add_argument("--action", default="accept", help="accept|drop")
    p.add_argument("--in-if", default="", help="incoming interface")
    p.add_argument("--out-if", default="", help="outgoing interface")
    p.add_argument("--ports", default="", help="csv ports e.g. 22,80,443")
    p.add_argument("--src", default="", help="csv src CIDRs")
    p.add_argument("--dst", default="", help="csv dst CIDRs")
    p.add_argument("--comment", default="", help="comment")
    p.add_argument("--enabled", action=argparse.BooleanOptionalAction, default=True, help="enabled")
    p.set_defaults(handler=_cmd_add_rule)

    p = sub.add_parser("del-rule", help="Delete rule by ID")
    p.add_argument("id")
    p.set_defaults(handler=_cmd_del_rule)

    p = sub.add_parser("export", help="Export snapshot to YAML")
    p.add_argument("--file", default="netfence.yaml", help="output yaml file")
    p.set_defaults(handler=_cmd_export)

    p = sub.add_parser("import", help="Import snapshot from YAML")
    p.add_argument("--file", default="netfence.yaml", help="input yaml file")
    p.set_defaults(handler=_cmd_import)

    p = sub.add_parser("dryrun", help="Preview ruleset (tables)")
    p.set_defaults(handler=_cmd_dryrun)

    p = sub.add_parser("apply", help="Apply rules to nftables")
    p.set_defaults(handler=_cmd_apply)

    p = sub.add_parser("tui", help="Interactive terminal UI")
    p.set_defaults(handler=_cmd_tui)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; with no arguments the terminal UI starts."""
    argv = list(sys.argv[1:] if argv is None else argv)
    try:
        if not argv:
            _run_tui(DEFAULT_DB, "root")
            return 0
        args = _build_parser().parse_args(argv)
        args.handler(args)
    except _ERRORS as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())