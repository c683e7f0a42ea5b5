# netfence

netfence keeps firewall rules and default chain policies in a SQLite
database and turns them into an nftables ruleset. It can be used from the
command line, from an interactive terminal UI, or as a Python library.

Changes are checked against a small role model (`admin` and `operator`) and
recorded in an `audit_log` table in the same database, with their details
stored as JSON. Commands that change state hold an exclusive `flock` on a
lock file, `/var/lock/netfence.lock` by default.

## Installation

```
pip install .
```

The only runtime dependency is PyYAML. Applying rules needs the `nft`
program on `PATH` and the privileges to load a ruleset. File locking uses
`fcntl`, so the package runs on POSIX systems only.

## Database and users

The database is `/etc/firewall.db` unless `--db PATH` is given. A path of
`:memory:` or a `file:` URI is also accepted. On every command the file and
its directory are created if missing, the schema is migrated, and two users
are added if they are not already there:

- `root`, role `admin`
- `operator`, role `operator`

The acting user is chosen with `--as NAME` (default `root`). A user that is
not in the `users` table is refused.

## Commands

```
netfence [--db PATH] [--as NAME] [--lock-file PATH] COMMAND ...

netfence list [--enabled]
netfence defaults
netfence set-defaults [--input drop] [--forward drop] [--output accept] [--log-prefix ""]
netfence add-rule [--chain input] [--proto all] [--action accept] [--in-if IF] [--out-if IF]
                  [--ports 22,80,443] [--src CIDR,...] [--dst CIDR,...] [--comment TEXT]
                  [--enabled | --no-enabled]
netfence del-rule ID
netfence export [--file netfence.yaml]
netfence import [--file netfence.yaml]
netfence dryrun
netfence apply
netfence tui
```

- `list` prints every rule as a table; `--enabled` limits it to enabled rules.
- `defaults` prints the input, forward and output policies and the log prefix.
- `set-defaults` stores new default policies. It needs `admin`. Every policy
  must be `accept` or `drop` (case is ignored).
- `add-rule` creates a rule and prints `created id=N`. It needs `operator` or
  `admin`. The chain must be `input`, `forward` or `output`; the protocol
  `all`, `tcp`, `udp` or `icmp`; the action `accept` or `drop`. Ports must be
  in 1–65535, addresses must be CIDRs, and any interface named must exist on
  the host.
- `del-rule ID` deletes a rule. It needs `operator` or `admin`. Deleting an
  id that does not exist is not an error.
- `export` writes the defaults and all rules to a YAML snapshot.
- `import` deletes all rules, stores the snapshot's defaults and inserts its
  rules (with new ids). It needs `admin`. Imported rules are stored as they
  are, without the checks `add-rule` makes.
- `dryrun` prints the defaults and the enabled rules as tables.
- `apply` renders the defaults and enabled rules into a table `inet netfence`
  and loads it with `nft -f -`. It needs `operator` or `admin`.
- `tui` starts the terminal UI.

Run with no arguments, `netfence` starts the terminal UI on
`/etc/firewall.db` as `root`. Errors are printed to standard error and the
exit status is 1.

## Terminal UI

The UI needs an interactive terminal. It has a main menu (Manage Rules, Set
Default Policies, Preview & Apply, Quit), a rules table with Add, Delete,
Reload and Back buttons, an editor for the three policies and the log
prefix, an add-rule form, and a preview screen with Apply and Back buttons.

Arrow keys or `j`/`k` move, Tab and Shift+Tab switch between fields and
buttons, Left/Right/Space toggle a policy, Enter confirms, `r` reloads the
rules screen, Esc goes back to the main menu (or quits from it), and F10 or
Ctrl+C quits.

## Snapshot format

```yaml
defaults:
  inputpolicy: drop
  forwardpolicy: drop
  outputpolicy: accept
  logprefix: ''
rules:
- id: 1
  chain: input
  proto: tcp
  action: accept
  inif: null
  outif: null
  ports: [22, 443]
  srccidrs: [10.0.0.0/8]
  dstcidrs: []
  icmptypes: []
  comment: ssh
  enabled: true
```

## Library use

```python
from netfence.model import Defaults, Rule
from netfence.render import render, render_rule

rules = [Rule(chain="input", proto="tcp", action="accept", ports=[22], enabled=True)]
print(render(Defaults("drop", "drop", "accept", ""), rules))
print(render_rule(rules[0]))   # ip protocol tcp tcp dport { 22 } accept
```

The modules are:

- `netfence.model` – the `Defaults` and `Rule` dataclasses, with
  `to_dict`/`from_dict` for snapshots.
- `netfence.render` – `render` and `render_rule`.
- `netfence.db` – `connect`, `current_version`, `apply_all`, `ensure_db`.
- `netfence.repo` – `AuditRepo`, `DefaultsRepo`, `RuleRepo`, `UserRepo`.
- `netfence.service` – `AuditService`, `DefaultsService`, `RulesService`,
  `validate_rule`, `valid_policy`.
- `netfence.util` – `acquire` (file lock), `if_exists`, `ShellRunner`,
  `read_yaml`, `write_yaml`.
- `netfence.cli` and `netfence.tui` – the command line and the terminal UI.

## Limits

- Address matches are rendered as `ip saddr`/`ip daddr`, so rules written
  with IPv6 CIDRs pass validation but produce IPv4 match expressions.
- The `log_prefix` value is stored and shown but not used in the rendered
  ruleset.
- ICMP types can be stored through snapshots and the library, but
  `add-rule` and the terminal UI have no option for them.
- Rules cannot be edited in place; delete and add them again.