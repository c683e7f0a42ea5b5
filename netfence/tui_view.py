"""Text building blocks for the terminal UI: cell formatting, tables and styled rows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from netfence.model import Defaults, Rule

_RESET = "\x1b[0m"


@dataclass(frozen=True)
class _Style:
    bold: bool = False
    foreground: int | None = None
    background: int | None = None
    padding_left: int = 0
    padding_right: int = 0

    def render(self, text: str) -> str:
        body = " " * self.padding_left + text + " " * self.padding_right
        codes = []
        if self.bold:
            codes.append("1")
        if self.foreground is not None:
            codes.append(f"38;5;{self.foreground}")
        if self.background is not None:
            codes.append(f"48;5;{self.background}")
        if not codes:
            return body
        return f"\x1b[{';'.join(codes)}m{body}{_RESET}"


TITLE_STYLE = _Style(bold=True, foreground=213)
TAB_ACTIVE_STYLE = _Style(bold=True, foreground=212, padding_left=1, padding_right=1)
TAB_INACTIVE_STYLE = _Style(foreground=245, padding_left=1, padding_right=1)
HEADER_STYLE = _Style(bold=True, foreground=36)
ERROR_STYLE = _Style(foreground=9)
OK_STYLE = _Style(foreground=10)
ITEM_STYLE = _Style(padding_left=2)
ITEM_SELECTED_STYLE = _Style(bold=True, foreground=219, background=60, padding_left=1, padding_right=1)
BUTTON_STYLE = _Style(foreground=245, padding_left=1, padding_right=1)
BUTTON_SELECTED_STYLE = _Style(bold=True, foreground=219, background=60, padding_left=1, padding_right=1)
FIELD_TITLE_STYLE = _Style(bold=True, foreground=39)

RULE_COLUMNS: tuple[tuple[str, int], ...] = (
    ("ID", 4),
    ("CHAIN", 8),
    ("PROTO", 6),
    ("ACTION", 7),
    ("EN", 3),
    ("IN_IF", 9),
    ("OUT_IF", 9),
    ("PORTS", 12),
    ("SRC", 16),
    ("DST", 16),
    ("ICMP", 8),
    ("COMMENT", 18),
)

_FLAG_MARKS = {True: "✓", False: "-"}


def int_list(values: Iterable[int]) -> str:
    """Join integers with commas, or '-' when there are none."""
    items = [str(v) for v in values]
    return ",".join(items) if items else "-"


def str_list(values: Iterable[str]) -> str:
    """Bracket and comma-join strings, or '-' when there are none."""
    items = list(values)
    return "[" + ",".join(items) + "]" if items else "-"


def bool_flag(value: bool) -> str:
    """Return a check mark for a truthy value and '-' otherwise."""
    return _FLAG_MARKS[bool(value)]


def ptr_or_dash(value: str | None) -> str:
    """Return the value, or '-' when it is missing or empty."""
    return value if value else "-"


def rule_row(rule: Rule) -> list[str]:
    """Return the table cells shown for one rule."""
    return [
        str(rule.id),
        rule.chain,
        rule.proto,
        rule.action,
        bool_flag(rule.enabled),
        ptr_or_dash(rule.in_if),
        ptr_or_dash(rule.out_if),
        int_list(rule.ports),
        str_list(rule.src_cidrs),
        str_list(rule.dst_cidrs),
        int_list(rule.icmp_types),
        ptr_or_dash(rule.comment),
    ]


def _rules_line(cells: Sequence[str]) -> str:
    (id_cell, chain, proto, action, en, in_if, out_if, ports, src, dst, icmp, comment) = cells
    return (
        f"{id_cell:<4} {chain:<8} {proto:<6} {action:<7} {en:<2} {in_if:<9} {out_if:<9} "
        f"{ports:<12} {src:<16} {dst:<16} {icmp:<8} {comment:<18}\n"
    )


def build_preview_tables(defaults: Defaults, rules: Iterable[Rule]) -> str:
    """Build the plain-text preview of default policies and enabled rules."""
    lines = [
        "DEFAULT POLICIES\n",
        f"{'INPUT':<8} {'FORWARD':<8} {'OUTPUT':<8} {'LOG_PREFIX'}\n",
        f"{defaults.input_policy:<8} {defaults.forward_policy:<8} "
        f"{defaults.output_policy:<8} {defaults.log_prefix}\n\n",
        "RULES\n",
        _rules_line([title for title, _ in RULE_COLUMNS]),
    ]
    rules = list(rules)
    if not rules:
        lines.append("(no enabled rules)\n")
        return "".join(lines)
    lines.extend(_rules_line(rule_row(rule)) for rule in rules)
    return "".join(lines)


def button_row(buttons: Iterable[str], selected: int) -> str:
    """Render a row of buttons, highlighting the one at the selected index."""
    return " ".join(
        (BUTTON_SELECTED_STYLE if i == selected else BUTTON_STYLE).render(label)
        for i, label in enumerate(buttons)
    )


def render_default_line(name: str, value: str, focused: bool) -> str:
    """Render one policy line with ACCEPT/DROP radio marks, ending in a newline."""
    if value.lower() == "accept":
        accept, drop = "(*) ACCEPT", "( ) DROP"
    else:
        accept, drop = "( ) ACCEPT", "(*) DROP"
    line = f"{name:<8} {accept}    {drop}"
    style = ITEM_SELECTED_STYLE if focused else ITEM_STYLE
    return style.render(line) + "\n"