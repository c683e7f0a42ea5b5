"""Storage access for defaults, rules, users and the audit log."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, Iterable

from netfence.model import Defaults, Rule


class UserNotFoundError(LookupError):
    """Raised when a user has no entry in the users table."""

    def __init__(self, name: str) -> None:
        super().__init__(f'user "{name}" not found')
        self.name = name


@dataclass(frozen=True)
class AuditRepo:
    """Appends entries to the audit log."""

    conn: sqlite3.Connection

    def write(self, actor: str, action: str, obj: str, details: str) -> None:
        """Store one audit entry."""
        with self.conn:
            self.conn.execute(
                "INSERT INTO audit_log(actor,action,object,details) VALUES(?,?,?,?)",
                (actor, action, obj, details),
            )


@dataclass(frozen=True)
class DefaultsRepo:
    """Reads and writes the single row of default policies."""

    conn: sqlite3.Connection

    def get(self) -> Defaults:
        """Return the stored default policies."""
        row = self.conn.execute(
            "SELECT input_policy,forward_policy,output_policy,log_prefix FROM defaults WHERE id=1"
        ).fetchone()
        if row is None:
            raise LookupError("defaults row not found")
        return Defaults(*("" if value is None else str(value) for value in row))

    def set(self, defaults: Defaults) -> None:
        """Overwrite the stored default policies."""
        with self.conn:
            self.conn.execute(
                "UPDATE defaults SET input_policy=?,forward_policy=?,output_policy=?,log_prefix=? WHERE id=1",
                (
                    defaults.input_policy,
                    defaults.forward_policy,
                    defaults.output_policy,
                    defaults.log_prefix,
                ),
            )


_CHILD_TABLES = (
    ("rule_port", "port", "ports"),
    ("rule_src_cidr", "cidr", "src_cidrs"),
    ("rule_dst_cidr", "cidr", "dst_cidrs"),
    ("rule_icmp_type", "itype", "icmp_types"),
)


@dataclass(frozen=True)
class RuleRepo:
    """Stores firewall rules and their ports, addresses and ICMP types."""

    conn: sqlite3.Connection

    def _children(self, table: str, column: str, rule_id: int) -> list[Any]:
        try:
            rows = self.conn.execute(
                f"SELECT {column} FROM {table} WHERE rule_id=? ORDER BY rowid", (rule_id,)
            ).fetchall()
        except sqlite3.Error:
            return []
        return [value for (value,) in rows]

    def list(self, only_enabled: bool = False) -> list[Rule]:
        """Return the rules ordered by id, optionally only the enabled ones."""
        query = "SELECT id,chain,proto,action,in_if,out_if,comment,enabled FROM rules"
        if only_enabled:
            query += " WHERE enabled=1"
        query += " ORDER BY id"
        rules = []
        for rule_id, chain, proto, action, in_if, out_if, comment, enabled in self.conn.execute(query).fetchall():
            rule = Rule(
                id=int(rule_id),
                chain=chain or "",
                proto=proto or "",
                action=action or "",
                in_if=in_if,
                out_if=out_if,
                comment=comment,
                enabled=enabled == 1,
            )
            rule.ports = [int(v) for v in self._children("rule_port", "port", rule.id)]
            rule.src_cidrs = [str(v) for v in self._children("rule_src_cidr", "cidr", rule.id)]
            rule.dst_cidrs = [str(v) for v in self._children("rule_dst_cidr", "cidr", rule.id)]
            rule.icmp_types = [int(v) for v in self._children("rule_icmp_type", "itype", rule.id)]
            rules.append(rule)
        return rules

    def create(self, rule: Rule) -> int:
        """Insert a rule with all its parts in one transaction; return its id."""
        with self.conn:
            cursor = self.conn.execute(
                "INSERT INTO rules(chain,proto,action,in_if,out_if,comment,enabled) VALUES(?,?,?,?,?,?,?)",
                (
                    rule.chain,
                    rule.proto,
                    rule.action,
                    rule.in_if,
                    rule.out_if,
                    rule.comment,
                    1 if rule.enabled else 0,
                ),
            )
            rule_id = int(cursor.lastrowid)
            for table, column, attr in _CHILD_TABLES:
                values: Iterable[Any] = getattr(rule, attr)
                self.conn.executemany(
                    f"INSERT INTO {table}(rule_id,{column}) VALUES(?,?)",
                    [(rule_id, value) for value in values],
                )
        return rule_id

    def delete(self, rule_id: int) -> None:
        """Remove the rule with the given id; a missing id is not an error."""
        with self.conn:
            self.conn.execute("DELETE FROM rules WHERE id=?", (rule_id,))


@dataclass(frozen=True)
class UserRepo:
    """Looks up users and their roles."""

    conn: sqlite3.Connection

    def role_of(self, name: str) -> str:
        """Return the role of the named user."""
        row = self.conn.execute("SELECT role FROM users WHERE name=?", (name,)).fetchone()
        if row is None:
            raise UserNotFoundError(name)
        return "" if row[0] is None else str(row[0])