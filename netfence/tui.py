"""Interactive terminal UI for browsing rules, editing default policies and applying the ruleset."""

from __future__ import annotations

import codecs
import enum
import os
import shutil
import sqlite3
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Sequence

from netfence.db import MigrationError, apply_all, connect
from netfence.model import Defaults, Rule
from netfence.render import render
from netfence.repo import AuditRepo, DefaultsRepo, RuleRepo, UserRepo
from netfence.service import AuditService, DefaultsService, RulesService
from netfence.tui_view import (
    ERROR_STYLE,
    FIELD_TITLE_STYLE,
    HEADER_STYLE,
    ITEM_SELECTED_STYLE,
    ITEM_STYLE,
    OK_STYLE,
    RULE_COLUMNS,
    TAB_ACTIVE_STYLE,
    TAB_INACTIVE_STYLE,
    TITLE_STYLE,
    build_preview_tables,
    button_row,
    render_default_line,
    rule_row,
)
from netfence.util import CommandError, ShellRunner, acquire

DEFAULT_LOCK_FILE = "/var/lock/netfence.lock"

_ACTION_ERRORS = (sqlite3.Error, OSError, ValueError, LookupError, CommandError, MigrationError)

_MAIN_ITEMS = ("Manage Rules", "Set Default Policies", "Preview & Apply", "Quit")
_RULES_BUTTONS = ("[Add]", "[Delete]", "[Reload]", "[Back]")
_DEFAULTS_BUTTONS = ("[Save]",)
_PREVIEW_BUTTONS = ("[Apply]", "[Back]")
_ADD_BUTTONS = ("[Save]", "[Cancel]")
_ADD_LABELS = (
    "chain(input/forward/output)",
    "proto(all/tcp/udp/icmp)",
    "action(accept/drop)",
    "in-if(Optional)",
    "out-if(Optional)",
    "ports(csv)",
    "src(csv CIDR)",
    "dst(csv CIDR)",
    "comment(Optional)",
)
_ADD_PRESETS = {0: "input", 1: "all", 2: "accept"}
_POLICY_FIELDS = ("input_policy", "forward_policy", "output_policy")


class Screen(enum.Enum):
    """The screens of the terminal UI."""

    MAIN = 0
    RULES = 1
    DEFAULTS = 2
    PREVIEW = 3
    ADD_RULE = 4


class TextField:
    """A single-line text input with a cursor and an optional length limit."""

    def __init__(self, placeholder: str = "", char_limit: int = 0, value: str = "") -> None:
        self.placeholder = placeholder
        self.char_limit = char_limit
        self.prompt = "> "
        self.focused = False
        self.cursor = 0
        self._value = ""
        self.value = value

    @property
    def value(self) -> str:
        return self._value

    @value.setter
    def value(self, text: str) -> None:
        if self.char_limit > 0:
            text = text[: self.char_limit]
        self._value = text
        self.cursor = len(text)

    def handle_key(self, key: str) -> None:
        """Edit the text for one key press; ignored while not focused."""
        if not self.focused:
            return
        text, pos = self._value, self.cursor
        if key in ("left", "ctrl+b"):
            self.cursor = max(0, pos - 1)
        elif key in ("right", "ctrl+f"):
            self.cursor = min(len(text), pos + 1)
        elif key in ("home", "ctrl+a"):
            self.cursor = 0
        elif key in ("end", "ctrl+e"):
            self.cursor = len(text)
        elif key in ("backspace", "ctrl+h"):
            if pos > 0:
                self._value = text[: pos - 1] + text[pos:]
                self.cursor = pos - 1
        elif key in ("delete", "ctrl+d"):
            self._value = text[:pos] + text[pos + 1 :]
        elif key == "ctrl+k":
            self._value = text[:pos]
        elif key == "ctrl+u":
            self._value = text[pos:]
            self.cursor = 0
        elif len(key) == 1 and key.isprintable():
            if self.char_limit > 0 and len(text) >= self.char_limit:
                return
            self._value = text[:pos] + key + text[pos:]
            self.cursor = pos + 1


def _field_view(field: TextField) -> str:
    if not field.value and field.placeholder:
        if field.focused:
            first, rest = field.placeholder[0], field.placeholder[1:]
            return f"{field.prompt}\x1b[7m{first}\x1b[0m\x1b[2m{rest}\x1b[0m"
        return f"{field.prompt}\x1b[2m{field.placeholder}\x1b[0m"
    text = field.value
    if field.focused:
        pos = field.cursor
        char = text[pos] if pos < len(text) else " "
        text = f"{text[:pos]}\x1b[7m{char}\x1b[0m{text[pos + 1:]}"
    return field.prompt + text


def _cell(text: str, width: int) -> str:
    if len(text) > width:
        text = text[: max(width - 1, 0)] + "…"
    return f" {text:<{width}} "


class _RulesTable:
    def __init__(self, columns: Sequence[tuple[str, int]], height: int = 12) -> None:
        self.columns = tuple(columns)
        self.height = height
        self.rows: list[list[str]] = []
        self.cursor = 0

    def set_rows(self, rows: list[list[str]]) -> None:
        self.rows = rows
        self.cursor = min(self.cursor, max(len(rows) - 1, 0))

    def _move(self, delta: int) -> None:
        if self.rows:
            self.cursor = min(max(self.cursor + delta, 0), len(self.rows) - 1)

    def handle_key(self, key: str) -> None:
        half = max(self.height // 2, 1)
        moves = {
            "up": -1, "k": -1, "down": 1, "j": 1,
            "pgup": -self.height, "b": -self.height,
            "pgdown": self.height, "f": self.height, " ": self.height,
            "u": -half, "ctrl+u": -half, "d": half, "ctrl+d": half,
        }
        if key in moves:
            self._move(moves[key])
        elif key in ("home", "g"):
            self.cursor = 0
        elif key in ("end", "G") and self.rows:
            self.cursor = len(self.rows) - 1

    def view(self) -> str:
        header = "".join(_cell(title, width) for title, width in self.columns)
        lines = [HEADER_STYLE.render(header)]
        start = max(0, self.cursor - self.height + 1)
        for index, row in enumerate(self.rows[start : start + self.height], start):
            line = "".join(_cell(value, width) for value, (_, width) in zip(row, self.columns))
            lines.append(ITEM_SELECTED_STYLE.render(line) if index == self.cursor else line)
        return "\n".join(lines)


@dataclass
class _Viewport:
    width: int = 0
    height: int = 0
    content: str = ""

    def view(self) -> str:
        height = max(self.height, 0)
        lines = self.content.split("\n")[:height]
        if self.width > 0:
            lines = [line[: self.width] for line in lines]
        lines.extend([""] * (height - len(lines)))
        return "\n".join(lines)


def toggle_policy(value: str) -> str:
    """Flip a policy between accept and drop."""
    return "drop" if value.lower() == "accept" else "accept"


def or_default(value: str, default: str) -> str:
    """Return the value, or the default when it is blank."""
    return default if not value.strip() else value


def csv_split(text: str) -> list[str]:
    """Split comma-separated text into trimmed, non-empty items."""
    return [part.strip() for part in text.split(",") if part.strip()]


class App:
    """State and key handling of the terminal UI."""

    def __init__(self, db_path: str, actor: str, lock_path: str = DEFAULT_LOCK_FILE) -> None:
        self.db_path = db_path
        self.actor = actor
        self.lock_path = lock_path
        self.conn = connect(db_path)
        self.runner: Any = ShellRunner()
        self.width = 0
        self.height = 0
        self.err_msg = ""
        self.ok_msg = ""
        self.screen = Screen.MAIN
        self.quit = False

        self.main_items = list(_MAIN_ITEMS)
        self.main_cursor = 0

        self.rules_table = _RulesTable(RULE_COLUMNS)
        self.bottom_idx = 0

        self.policies = Defaults()
        self.defaults_focus = 0
        self.defaults_buttons = list(_DEFAULTS_BUTTONS)
        self.defaults_button = 0
        self.defaults_section = "fields"
        self.log_field = TextField("LOG_PREFIX (optional)", char_limit=60)

        self.preview = _Viewport()
        self.preview_buttons: list[str] = []
        self.preview_button = 0

        self.add_fields: list[TextField] = []
        self.add_step = 0
        self.add_focus = "fields"
        self.add_button = 0

        try:
            self.reload_all()
        except _ACTION_ERRORS as exc:
            self.err_msg = str(exc)

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()

    def _resize(self, width: int, height: int) -> None:
        self.width, self.height = width, height
        self.preview = _Viewport(width - 4, height - 12, self.preview.content)

    # ---------- data ----------

    def reload_all(self) -> None:
        """Migrate the database and reload defaults and rules from it."""
        apply_all(self.conn)
        self.policies = DefaultsRepo(self.conn).get()
        self.log_field.value = self.policies.log_prefix
        rules = RuleRepo(self.conn).list(False)
        self.rules_table.set_rows([rule_row(rule) for rule in rules])

    def _current_defaults(self) -> Defaults:
        try:
            return DefaultsRepo(self.conn).get()
        except (sqlite3.Error, LookupError):
            return Defaults()

    def _current_rules(self, only_enabled: bool) -> list[Rule]:
        try:
            return RuleRepo(self.conn).list(only_enabled)
        except sqlite3.Error:
            return []

    def _require_role(self, roles: tuple[str, ...], needed: str) -> None:
        role = UserRepo(self.conn).role_of(self.actor)
        if role not in roles:
            raise PermissionError(f"rbac: need {needed}, got {role}")

    def _audit(self, action: str, obj: str, details: Any) -> None:
        try:
            AuditService(AuditRepo(self.conn)).log(self.actor, action, obj, details)
        except sqlite3.Error:
            pass

    def _rules_service(self) -> RulesService:
        return RulesService(RuleRepo(self.conn), AuditService(AuditRepo(self.conn)))

    # ---------- keys ----------

    def handle_key(self, key: str) -> None:
        """Process one key press."""
        if key == "f10":
            self.quit = True
            return
        if key == "esc":
            if self.screen is Screen.MAIN:
                self.quit = True
            else:
                self.screen = Screen.MAIN
            return
        handlers = {
            Screen.MAIN: self._update_main,
            Screen.RULES: self._update_rules,
            Screen.DEFAULTS: self._update_defaults,
            Screen.PREVIEW: self._update_preview,
            Screen.ADD_RULE: self._update_add_rule,
        }
        handlers[self.screen](key)

    def _update_main(self, key: str) -> None:
        if key in ("up", "k"):
            self.main_cursor = max(0, self.main_cursor - 1)
        elif key in ("down", "j"):
            self.main_cursor = min(len(self.main_items) - 1, self.main_cursor + 1)
        elif key == "enter":
            if self.main_cursor == 0:
                self.screen = Screen.RULES
            elif self.main_cursor == 1:
                self.screen = Screen.DEFAULTS
            elif self.main_cursor == 2:
                try:
                    self.prepare_preview()
                except _ACTION_ERRORS as exc:
                    self.err_msg = str(exc)
                else:
                    self.screen = Screen.PREVIEW
            else:
                self.quit = True

    def _reload_with_status(self) -> None:
        self.err_msg, self.ok_msg = "", ""
        try:
            self.reload_all()
        except _ACTION_ERRORS as exc:
            self.err_msg = str(exc)
        else:
            self.ok_msg = "reloaded"

    def _update_rules(self, key: str) -> None:
        count = len(_RULES_BUTTONS)
        if key == "tab":
            self.bottom_idx = (self.bottom_idx + 1) % count
        elif key == "left":
            self.bottom_idx = max(0, self.bottom_idx - 1)
        elif key == "right":
            self.bottom_idx = min(count - 1, self.bottom_idx + 1)
        elif key == "enter":
            self._exec_rules_button()
            return
        elif key == "r":
            self._reload_with_status()
        self.rules_table.handle_key(key)

    def _exec_rules_button(self) -> None:
        if self.bottom_idx == 0:
            self.start_add_rule_wizard()
            self.screen = Screen.ADD_RULE
        elif self.bottom_idx == 1:
            try:
                self.delete_selected()
            except _ACTION_ERRORS as exc:
                self.err_msg = str(exc)
            else:
                self.ok_msg = "deleted"
                try:
                    self.reload_all()
                except _ACTION_ERRORS:
                    pass
        elif self.bottom_idx == 2:
            self._reload_with_status()
        else:
            self.screen = Screen.MAIN

    def _update_defaults(self, key: str) -> None:
        if key in ("up", "k"):
            if self.defaults_section == "buttons":
                self.defaults_section = "fields"
                self.defaults_focus = 3
                self.log_field.focused = True
                return
            self.defaults_focus = max(0, self.defaults_focus - 1)
        elif key in ("down", "j"):
            if self.defaults_section == "buttons":
                return
            self.defaults_focus = min(3, self.defaults_focus + 1)
            self.log_field.focused = self.defaults_focus == 3
        elif key in ("left", "right", " "):
            if self.defaults_section == "fields" and 0 <= self.defaults_focus <= 2:
                attr = _POLICY_FIELDS[self.defaults_focus]
                setattr(self.policies, attr, toggle_policy(getattr(self.policies, attr)))
        elif key == "tab":
            if self.defaults_section == "fields":
                self.defaults_section = "buttons"
                self.log_field.focused = False
            self.defaults_button = 0
        elif key == "lefttab":
            if self.defaults_section == "buttons":
                self.defaults_section = "fields"
                if self.defaults_focus == 3:
                    self.log_field.focused = True
        elif key == "enter":
            if self.defaults_section == "buttons":
                self._exec_defaults_button()
                return
        self.log_field.focused = self.defaults_focus == 3 and self.defaults_section == "fields"
        self.log_field.handle_key(key)

    def _exec_defaults_button(self) -> None:
        self.policies.log_prefix = self.log_field.value
        try:
            self.save_defaults()
        except _ACTION_ERRORS as exc:
            self.err_msg = str(exc)
        else:
            self.ok_msg = "defaults saved"
            self.screen = Screen.MAIN

    def _update_preview(self, key: str) -> None:
        count = len(self.preview_buttons)
        if key == "tab" and count:
            self.preview_button = (self.preview_button + 1) % count
        elif key == "left":
            self.preview_button = max(0, self.preview_button - 1)
        elif key == "right":
            self.preview_button = min(max(count - 1, 0), self.preview_button + 1)
        elif key == "enter":
            if self.preview_button == 0:
                try:
                    self.apply()
                except _ACTION_ERRORS as exc:
                    self.err_msg = str(exc)
                else:
                    self.ok_msg = "applied"
                    self.screen = Screen.MAIN
            else:
                self.screen = Screen.MAIN
        elif key == "q":
            self.screen = Screen.MAIN

    def _focus_field(self, step: int) -> None:
        self.add_step = step
        for index, field in enumerate(self.add_fields):
            field.focused = index == step

    def _next_field(self) -> None:
        if self.add_step < len(self.add_fields) - 1:
            self._focus_field(self.add_step + 1)
        else:
            self.add_focus = "buttons"
            self.add_button = 0
            self.add_fields[self.add_step].focused = False

    def _update_add_rule(self, key: str) -> None:
        if key in ("up", "k"):
            if self.add_focus == "fields" and self.add_step > 0:
                self._focus_field(self.add_step - 1)
        elif key in ("down", "j"):
            if self.add_focus == "fields":
                self._next_field()
        elif key == "lefttab":
            if self.add_focus == "buttons":
                self.add_focus = "fields"
                self.add_step = len(self.add_fields) - 1
                self.add_fields[self.add_step].focused = True
            elif self.add_step > 0:
                self._focus_field(self.add_step - 1)
        elif key == "tab":
            if self.add_focus == "fields":
                self._next_field()
            else:
                self.add_button = (self.add_button + 1) % len(_ADD_BUTTONS)
        elif key == "left":
            if self.add_focus == "buttons" and self.add_button > 0:
                self.add_button -= 1
        elif key == "right":
            if self.add_focus == "buttons" and self.add_button < len(_ADD_BUTTONS) - 1:
                self.add_button += 1
        elif key == "enter":
            if self.add_focus == "fields":
                self._next_field()
            elif self.add_button == 0:
                try:
                    self.save_new_rule()
                except _ACTION_ERRORS as exc:
                    self.err_msg = str(exc)
                else:
                    self.ok_msg = "rule added"
                    try:
                        self.reload_all()
                    except _ACTION_ERRORS:
                        pass
                    self.screen = Screen.RULES
            else:
                self.screen = Screen.RULES
        if self.add_focus == "fields" and 0 <= self.add_step < len(self.add_fields):
            self.add_fields[self.add_step].handle_key(key)

    # ---------- screens ----------

    def start_add_rule_wizard(self) -> None:
        """Reset the add-rule form to its preset values with the first field focused."""
        self.add_fields = [
            TextField(label, value=_ADD_PRESETS.get(index, "")) for index, label in enumerate(_ADD_LABELS)
        ]
        self.add_focus = "fields"
        self.add_button = 0
        self._focus_field(0)

    def prepare_preview(self) -> None:
        """Build the preview of defaults and enabled rules."""
        content = build_preview_tables(self._current_defaults(), self._current_rules(True))
        self.preview = _Viewport(self.width - 4, self.height - 12, content)
        self.preview_buttons = list(_PREVIEW_BUTTONS)
        self.preview_button = 0

    def view(self) -> str:
        """Render the current screen as text."""
        tabs = (
            (Screen.MAIN, "Main"),
            (Screen.RULES, "Rules"),
            (Screen.DEFAULTS, "Defaults"),
            (Screen.PREVIEW, "Preview"),
        )
        parts = [TITLE_STYLE.render("NetFence"), "   "]
        parts.extend(
            (TAB_ACTIVE_STYLE if screen is self.screen else TAB_INACTIVE_STYLE).render(label)
            for screen, label in tabs
        )
        parts.append("\n")
        if self.err_msg:
            parts.append(ERROR_STYLE.render("ERROR: " + self.err_msg) + "\n")
        if self.ok_msg:
            parts.append(OK_STYLE.render(self.ok_msg) + "\n")

        if self.screen is Screen.MAIN:
            parts.append(HEADER_STYLE.render("Select an action:") + "\n\n")
            for index, item in enumerate(self.main_items):
                if index == self.main_cursor:
                    parts.append(ITEM_SELECTED_STYLE.render("► " + item) + "\n")
                else:
                    parts.append(ITEM_STYLE.render("  " + item) + "\n")
            parts.append("\n" + button_row(["[Enter] OK", "[ESC/F10] Quit"], -1))
        elif self.screen is Screen.RULES:
            parts.append(HEADER_STYLE.render("Rules") + "\n")
            parts.append(self.rules_table.view() + "\n\n")
            parts.append(button_row(_RULES_BUTTONS, self.bottom_idx))
        elif self.screen is Screen.DEFAULTS:
            in_fields = self.defaults_section == "fields"
            parts.append(HEADER_STYLE.render("Default Policies") + "\n\n")
            names = ("INPUT   ", "FORWARD ", "OUTPUT  ")
            for index, (name, attr) in enumerate(zip(names, _POLICY_FIELDS)):
                focused = in_fields and self.defaults_focus == index
                parts.append(render_default_line(name, getattr(self.policies, attr), focused))
            parts.append("\n" + FIELD_TITLE_STYLE.render("LOG_PREFIX") + "\n")
            parts.append(_field_view(self.log_field) + "\n\n")
            selected = -1 if in_fields else self.defaults_button
            parts.append(button_row(self.defaults_buttons, selected))
        elif self.screen is Screen.PREVIEW:
            parts.append(HEADER_STYLE.render("Preview (tables)") + "\n")
            if self.preview.width <= 0:
                self.preview = _Viewport(80, 20, self.preview.content)
            parts.append(self.preview.view() + "\n\n")
            parts.append(button_row(self.preview_buttons, self.preview_button))
        else:
            parts.append(HEADER_STYLE.render("Add Rule") + "\n\n")
            for index, field in enumerate(self.add_fields):
                prefix = "> " if self.add_focus == "fields" and index == self.add_step else "  "
                parts.append(prefix + _field_view(field) + "\n")
            selected = self.add_button if self.add_focus == "buttons" else -1
            parts.append("\n" + button_row(_ADD_BUTTONS, selected))
        parts.append("\n")
        return "".join(parts)

    # ---------- actions ----------

    def apply(self) -> None:
        """Render the enabled rules and load them with nft."""
        with acquire(self.lock_path):
            self._require_role(("admin", "operator"), "operator or admin")
            defaults = self._current_defaults()
            rules = self._current_rules(True)
            script = render(defaults, rules)
            try:
                self.runner.run("nft", script.encode("utf-8"), "-f", "-")
            except CommandError as exc:
                raise CommandError(
                    f"nft failed: {exc}\n{exc.stderr}", exc.stdout, exc.stderr, exc.returncode
                ) from exc
            self._audit("apply", "ruleset", {"rules": len(rules)})

    def delete_selected(self) -> None:
        """Delete the rule under the table cursor."""
        rows = self.rules_table.rows
        cursor = self.rules_table.cursor
        if not 0 <= cursor < len(rows):
            return
        try:
            rule_id = int(rows[cursor][0])
        except ValueError:
            rule_id = 0
        with acquire(self.lock_path):
            self._require_role(("admin", "operator"), "operator or admin")
            self._rules_service().delete(self.actor, rule_id)

    def save_defaults(self) -> None:
        """Store the edited default policies; needs the admin role."""
        with acquire(self.lock_path):
            self._require_role(("admin",), "admin")
            self.policies.log_prefix = self.log_field.value
            DefaultsService(DefaultsRepo(self.conn)).set(self.policies)
            self._audit(
                "set_defaults",
                "defaults:1",
                {
                    "input": self.policies.input_policy,
                    "forward": self.policies.forward_policy,
                    "output": self.policies.output_policy,
                    "log": self.policies.log_prefix,
                },
            )

    def save_new_rule(self) -> None:
        """Validate the add-rule form and store the new rule."""
        values = [field.value.strip() for field in self.add_fields]
        chain = or_default(values[0], "input").lower()
        proto = or_default(values[1], "all").lower()
        action = or_default(values[2], "accept").lower()
        in_if, out_if, ports, src, dst, comment = values[3:9]

        if chain not in ("input", "forward", "output"):
            raise ValueError(f"invalid chain: {or_default(values[0], 'input')} (use: input|forward|output)")
        if proto not in ("all", "tcp", "udp", "icmp"):
            raise ValueError(f"invalid proto: {or_default(values[1], 'all')} (use: all|tcp|udp|icmp)")
        if action not in ("accept", "drop"):
            raise ValueError(f"invalid action: {or_default(values[2], 'accept')} (use: accept|drop)")

        port_numbers: list[int] = []
        if ports:
            for piece in ports.split(","):
                try:
                    port_numbers.append(int(piece.strip()))
                except ValueError as exc:
                    raise ValueError(f"bad port: {exc}") from exc

        rule = Rule(
            chain=chain,
            proto=proto,
            action=action,
            ports=port_numbers,
            enabled=True,
            src_cidrs=csv_split(src),
            dst_cidrs=csv_split(dst),
            in_if=in_if or None,
            out_if=out_if or None,
            comment=comment or None,
        )
        with acquire(self.lock_path):
            self._require_role(("admin", "operator"), "operator or admin")
            self._rules_service().add(self.actor, rule)


# ---------- terminal loop ----------

_SEQUENCES = {
    "[A": "up", "[B": "down", "[C": "right", "[D": "left",
    "OA": "up", "OB": "down", "OC": "right", "OD": "left",
    "[Z": "lefttab",
    "[H": "home", "OH": "home", "[1~": "home", "[7~": "home",
    "[F": "end", "OF": "end", "[4~": "end", "[8~": "end",
    "[3~": "delete", "[5~": "pgup", "[6~": "pgdown",
    "[21~": "f10",
}


def _parse_keys(text: str) -> list[str]:
    keys: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\x1b":
            if i + 1 >= len(text) or text[i + 1] == "\x1b":
                keys.append("esc")
                i += 1
                continue
            nxt = text[i + 1]
            if nxt in "[O":
                j = i + 2
                while j < len(text) and not ("@" <= text[j] <= "~"):
                    j += 1
                name = _SEQUENCES.get(text[i + 1 : j + 1])
                if name:
                    keys.append(name)
                i = j + 1
                continue
            keys.append("alt+" + nxt)
            i += 2
            continue
        if ch in "\r\n":
            keys.append("enter")
        elif ch == "\t":
            keys.append("tab")
        elif ch in "\x7f\x08":
            keys.append("backspace")
        elif ord(ch) < 32:
            keys.append("ctrl+" + chr(ord(ch) + 96))
        else:
            keys.append(ch)
        i += 1
    return keys


@contextmanager
def _raw_terminal() -> Iterator[int]:
    import termios
    import tty

    fd = sys.stdin.fileno()
    if not os.isatty(fd):
        raise RuntimeError("the terminal UI needs an interactive terminal")
    saved = termios.tcgetattr(fd)
    tty.setraw(fd)
    sys.stdout.write("\x1b[?1049h\x1b[?25l")
    sys.stdout.flush()
    try:
        yield fd
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)
        sys.stdout.write("\x1b[?25h\x1b[?1049l")
        sys.stdout.flush()


def run(db_path: str, actor: str) -> None:
    """Run the interactive terminal UI until the user quits."""
    app = App(db_path, actor)
    try:
        with _raw_terminal() as fd:
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            while not app.quit:
                size = shutil.get_terminal_size()
                if (size.columns, size.lines) != (app.width, app.height):
                    app._resize(size.columns, size.lines)
                sys.stdout.write("\x1b[H\x1b[2J" + app.view().replace("\n", "\r\n"))
                sys.stdout.flush()
                data = os.read(fd, 64)
                if not data:
                    break
                for key in _parse_keys(decoder.decode(data)):
                    if key == "ctrl+c":
                        app.quit = True
                    else:
                        app.handle_key(key)
                    if app.quit:
                        break
    finally:
        app.close()