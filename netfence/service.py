"""Business rules on top of the repositories: validation and auditing."""

from __future__ import annotations

import ipaddress
import json
import sqlite3
from dataclasses import dataclass
from typing import Any, Callable

from netfence.model import Defaults, Rule
from netfence.repo import AuditRepo, DefaultsRepo, RuleRepo
from netfence.util import if_exists


class InvalidRuleError(ValueError):
    """Raised when a rule has an invalid field."""

    def __init__(self, field: str) -> None:
        super().__init__(f"invalid rule: {field}")
        self.field = field


class InvalidPolicyError(ValueError):
    """Raised when a default policy is neither accept nor drop."""

    def __init__(self) -> None:
        super().__init__("invalid policy")


def _encode_details(details: Any) -> str:
    if details is None:
        return "{}"
    try:
        if hasattr(details, "to_dict"):
            return json.dumps(details.to_dict(), separators=(",", ":"), ensure_ascii=False)
        return json.dumps(details, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    except (TypeError, ValueError):
        return ""


@dataclass(frozen=True)
class AuditService:
    """Records actions in the audit log with JSON details."""

    repo: AuditRepo

    def log(self, actor: str, action: str, obj: str, details: Any = None) -> None:
        """Write an audit entry; no details are stored as an empty JSON object."""
        self.repo.write(actor, action, obj, _encode_details(details))


def valid_policy(policy: str) -> bool:
    """Tell whether a policy is accept or drop, ignoring case."""
    return policy.lower() in ("accept", "drop")


@dataclass(frozen=True)
class DefaultsService:
    """Validated access to the default policies."""

    repo: DefaultsRepo

    def get(self) -> Defaults:
        """Return the stored default policies."""
        return self.repo.get()

    def set(self, defaults: Defaults) -> None:
        """Store default policies after checking each chain policy."""
        policies = (defaults.input_policy, defaults.forward_policy, defaults.output_policy)
        if not all(valid_policy(p) for p in policies):
            raise InvalidPolicyError()
        self.repo.set(defaults)


def _is_cidr(text: str) -> bool:
    address, sep, prefix = text.partition("/")
    if not sep or not prefix.isdigit() or not prefix.isascii():
        return False
    try:
        ipaddress.ip_network(f"{address}/{prefix}", strict=False)
    except ValueError:
        return False
    return True


def validate_rule(rule: Rule) -> None:
    """Raise InvalidRuleError naming the first field of the rule that is invalid."""
    if rule.chain not in ("input", "forward", "output"):
        raise InvalidRuleError("chain")
    if rule.proto not in ("all", "tcp", "udp", "icmp"):
        raise InvalidRuleError("proto")
    if rule.action not in ("accept", "drop"):
        raise InvalidRuleError("action")
    if any(not 0 < port <= 65535 for port in rule.ports):
        raise InvalidRuleError("port")
    if not all(_is_cidr(c) for c in rule.src_cidrs):
        raise InvalidRuleError("src_cidr")
    if not all(_is_cidr(c) for c in rule.dst_cidrs):
        raise InvalidRuleError("dst_cidr")
    if any(not 0 <= t <= 255 for t in rule.icmp_types):
        raise InvalidRuleError("icmp_type")
    if rule.in_if is not None and not rule.in_if.strip():
        raise InvalidRuleError("in_if")
    if rule.out_if is not None and not rule.out_if.strip():
        raise InvalidRuleError("out_if")


@dataclass(frozen=True)
class RulesService:
    """Validated, audited management of firewall rules."""

    repo: RuleRepo
    audit: AuditService
    check_interface: Callable[[str], None] = if_exists

    def list(self, enabled_only: bool = False) -> list[Rule]:
        """Return stored rules, optionally only the enabled ones."""
        return self.repo.list(enabled_only)

    def add(self, actor: str, rule: Rule) -> int:
        """Validate and store a rule, record it in the audit log and return its id."""
        validate_rule(rule)
        if rule.in_if is not None:
            self.check_interface(rule.in_if)
        if rule.out_if is not None:
            self.check_interface(rule.out_if)
        rule_id = self.repo.create(rule)
        try:
            self.audit.log(actor, "add_rule", f"rule:{rule_id}", rule)
        except sqlite3.Error:
            pass
        return rule_id

    def delete(self, actor: str, rule_id: int) -> None:
        """Delete a rule and record it in the audit log."""
        self.repo.delete(rule_id)
        try:
            self.audit.log(actor, "del_rule", f"rule:{rule_id}", None)
        except sqlite3.Error:
            pass