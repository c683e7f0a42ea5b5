"""Rendering of defaults and rules into an nftables script."""

from __future__ import annotations

from typing import Iterable

from netfence.model import Defaults, Rule


def render(defaults: Defaults, rules: Iterable[Rule]) -> str:
    """Build a complete nftables ruleset script."""
    rules = list(rules)
    chains = (
        ("input", defaults.input_policy),
        ("forward", defaults.forward_policy),
        ("output", defaults.output_policy),
    )
    body = "".join(_render_chain(name, policy, rules) for name, policy in chains)
    return "flush ruleset\n\ntable inet netfence {\n" + body + "}\n"


def _render_chain(name: str, policy: str, rules: list[Rule]) -> str:
    lines = [
        f"  chain {name} {{\n",
        f"    type filter hook {name} priority 0; policy {policy};\n",
        "    ct state established,related accept\n",
    ]
    for rule in rules:
        if rule.chain != name or not rule.enabled:
            continue
        line = render_rule(rule)
        if line:
            lines.append(f"    {line}\n")
    lines.append("  }\n\n")
    return "".join(lines)


def render_rule(rule: Rule) -> str:
    """Turn one rule into a single nftables statement."""
    parts: list[str] = []
    if rule.in_if is not None:
        parts.append(f'iifname "{rule.in_if}"')
    if rule.out_if is not None:
        parts.append(f'oifname "{rule.out_if}"')
    if rule.proto in ("tcp", "udp", "icmp"):
        parts.append(f"ip protocol {rule.proto}")
    if rule.ports and rule.proto in ("tcp", "udp"):
        ports = ",".join(str(p) for p in rule.ports)
        parts.append(f"{rule.proto} dport {{ {ports} }}")
    parts.extend(f"ip saddr {cidr}" for cidr in rule.src_cidrs)
    parts.extend(f"ip daddr {cidr}" for cidr in rule.dst_cidrs)
    if rule.icmp_types and rule.proto == "icmp":
        types = ",".join(str(t) for t in rule.icmp_types)
        parts.append(f"icmp type {{ {types} }}")
    parts.append(rule.action)
    return " ".join(parts)