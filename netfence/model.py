"""Firewall data model: default chain policies and filter rules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _optional_text(value: Any) -> str | None:
    return None if value is None else str(value)


def _ints(values: Any) -> list[int]:
    return [int(v) for v in values or ()]


def _texts(values: Any) -> list[str]:
    return [str(v) for v in values or ()]


@dataclass
class Defaults:
    """Default policies of the input, forward and output chains."""

    input_policy: str = ""
    forward_policy: str = ""
    output_policy: str = ""
    log_prefix: str = ""

    def to_dict(self) -> dict[str, str]:
        """Return the snapshot mapping of these defaults."""
        return {
            "inputpolicy": self.input_policy,
            "forwardpolicy": self.forward_policy,
            "outputpolicy": self.output_policy,
            "logprefix": self.log_prefix,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Defaults":
        """Build defaults from a snapshot mapping; missing keys become empty."""
        data = data or {}
        return cls(
            input_policy=_text(data.get("inputpolicy")),
            forward_policy=_text(data.get("forwardpolicy")),
            output_policy=_text(data.get("outputpolicy")),
            log_prefix=_text(data.get("logprefix")),
        )


@dataclass
class Rule:
    """A single filter rule attached to one chain."""

    id: int = 0
    chain: str = ""
    proto: str = ""
    action: str = ""
    in_if: str | None = None
    out_if: str | None = None
    ports: list[int] = field(default_factory=list)
    src_cidrs: list[str] = field(default_factory=list)
    dst_cidrs: list[str] = field(default_factory=list)
    icmp_types: list[int] = field(default_factory=list)
    comment: str | None = None
    enabled: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return the snapshot mapping of this rule."""
        return {
            "id": self.id,
            "chain": self.chain,
            "proto": self.proto,
            "action": self.action,
            "inif": self.in_if,
            "outif": self.out_if,
            "ports": list(self.ports),
            "srccidrs": list(self.src_cidrs),
            "dstcidrs": list(self.dst_cidrs),
            "icmptypes": list(self.icmp_types),
            "comment": self.comment,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Rule":
        """Build a rule from a snapshot mapping; missing keys take zero values."""
        data = data or {}
        return cls(
            id=int(data.get("id") or 0),
            chain=_text(data.get("chain")),
            proto=_text(data.get("proto")),
            action=_text(data.get("action")),
            in_if=_optional_text(data.get("inif")),
            out_if=_optional_text(data.get("outif")),
            ports=_ints(data.get("ports")),
            src_cidrs=_texts(data.get("srccidrs")),
            dst_cidrs=_texts(data.get("dstcidrs")),
            icmp_types=_ints(data.get("icmptypes")),
            comment=_optional_text(data.get("comment")),
            enabled=bool(data.get("enabled", False)),
        )