"""The k0sctl command line: version and completion commands, config loading and logging."""

from __future__ import annotations

import argparse
import json
import logging
import os
import queue
import re
import shutil
import sys
import threading
import time
import traceback
import urllib.error
import urllib.request
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import IO, Any

import platformdirs

from . import analytics
from .github import GithubError, Release, latest_release, select_latest_release

log = logging.getLogger(__name__)

VERSION = "dev"
GIT_COMMIT = ""
ENVIRONMENT = "development"

APP_NAME = "k0sctl"
APP_USAGE = "k0s cluster management tool"
DEFAULT_CONFIG = "k0sctl.yaml"
LOG_PATH = Path("k0sctl") / "k0sctl.log"
RELEASE_CACHE_FILE = "k0sctl.github.latest.json"
RELEASE_CACHE_TTL = 3600.0
UPGRADE_CHECK_TIMEOUT = 5.0
K0S_RELEASES_URL = "https://api.github.com/repos/k0sproject/k0s/releases?per_page=20&page=1"
COMPLETION_FLAG = "--generate-bash-completion"

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LOGO = """
⠀⣿⣿⡇⠀⠀⢀⣴⣾⣿⠟⠁⢸⣿⣿⣿⣿⣿⣿⣿⡿⠛⠁⠀⢸⣿⣿⣿⣿⣿⣿⣿⣿⣿⣿⣿⠀█████████ █████████ ███
⠀⣿⣿⡇⣠⣶⣿⡿⠋⠀⠀⠀⢸⣿⡇⠀⠀⠀⣠⠀⠀⢀⣠⡆⢸⣿⣿⠀⠀⠀⠀⠀⠀⠀⠀⠀⠀███          ███    ███
⠀⣿⣿⣿⣿⣟⠋⠀⠀⠀⠀⠀⢸⣿⡇⠀⢰⣾⣿⠀⠀⣿⣿⡇⢸⣿⣿⣿⣿⣿⣿⣿⣿⣿⣿⣿⠀███          ███    ███
⠀⣿⣿⡏⠻⣿⣷⣤⡀⠀⠀⠀⠸⠛⠁⠀⠸⠋⠁⠀⠀⣿⣿⡇⠈⠉⠉⠉⠉⠉⠉⠉⠉⢹⣿⣿⠀███          ███    ███
⠀⣿⣿⡇⠀⠀⠙⢿⣿⣦⣀⠀⠀⠀⣠⣶⣶⣶⣶⣶⣶⣿⣿⡇⢰⣶⣶⣶⣶⣶⣶⣶⣶⣾⣿⣿⠀█████████    ███    ██████████
"""

COMPLETION_DESCRIPTION = """Generates a shell auto-completion script.

   Typical locations for the generated output are:
    - Bash: /etc/bash_completion.d/k0sctl
    - Zsh: /usr/local/share/zsh/site-functions/_k0sctl
    - Fish: ~/.config/fish/completions/k0sctl.fish"""


class CLIError(Exception):
    """Raised when a command can't do what was asked."""


class ConfigError(CLIError):
    """Raised when the configuration can't be located or read."""


class UnsupportedShellError(CLIError, ValueError):
    """Raised when no completion script exists for a shell."""


@dataclass(frozen=True)
class _Flag:
    name: str
    help: str
    short: str | None = None
    hidden: bool = False
    takes_value: bool = False


@dataclass(frozen=True)
class _Command:
    name: str
    help: str
    flags: tuple[_Flag, ...] = field(default_factory=tuple)


_GLOBAL_FLAGS = (
    _Flag("debug", "Enable debug logging", short="d"),
    _Flag("trace", "Enable trace logging"),
    _Flag("no-redact", "Do not hide sensitive information in the output"),
)

_COMMANDS = (
    _Command(
        "version",
        "Output k0sctl version",
        (
            _Flag("machine-id", "", hidden=True),
            _Flag("k0s", "Retrieve the latest k0s version number"),
            _Flag(
                "pre",
                "When used in conjunction with --k0s, a pre release is accepted as the latest version",
            ),
        ),
    ),
    _Command(
        "completion",
        "Generate a shell auto-completion script",
        (_Flag("shell", "Shell to generate the script for", short="s", takes_value=True),),
    ),
)


def _env_bool(name: str) -> bool:
    value = os.environ.get(name)
    if value is None:
        return False
    return value.strip() in ("1", "t", "T", "TRUE", "true", "True")


def prog() -> str:
    """Return the name the program was started as, or "k0sctl" when it can't be told."""
    name = Path(sys.argv[0]).name if sys.argv and sys.argv[0] else ""
    if not name or name.endswith("main") or name.endswith(".py") or name == "-c":
        return APP_NAME
    return name


def bash_template(name: str) -> str:
    """Return a bash completion script for the program ``name``."""
    return f"""#! /bin/bash

_k0sctl_bash_autocomplete() {{
  if [[ "${{COMP_WORDS[0]}}" != "source" ]]; then
    local cur opts base
    COMPREPLY=()
    cur="${{COMP_WORDS[COMP_CWORD]}}"
    if [[ "$cur" == "-"* ]]; then
      opts=$( ${{COMP_WORDS[@]:0:$COMP_CWORD}} ${{cur}} --generate-bash-completion )
    else
      opts=$( ${{COMP_WORDS[@]:0:$COMP_CWORD}} --generate-bash-completion )
    fi
    COMPREPLY=( $(compgen -W "${{opts}}" -- ${{cur}}) )
    return 0
  fi
}}

complete -o bashdefault -o default -o nospace -F _k0sctl_bash_autocomplete {name}
"""


def zsh_template(name: str) -> str:
    """Return a zsh completion script for the program ``name``."""
    return f"""#compdef {name}

_k0sctl_zsh_autocomplete() {{
  local -a opts
  local cur
  cur=${{words[-1]}}
  if [[ "$cur" == "-"* ]]; then
    opts=("${{(@f)$(_CLI_ZSH_AUTOCOMPLETE_HACK=1 ${{words[@]:0:#words[@]-1}} ${{cur}} --generate-bash-completion)}}")
  else
    opts=("${{(@f)$(_CLI_ZSH_AUTOCOMPLETE_HACK=1 ${{words[@]:0:#words[@]-1}} --generate-bash-completion)}}")
  fi

  if [[ "${{opts[1]}}" != "" ]]; then
    _describe 'values' opts
  else
    _files
  fi

  return
}}

compdef _k0sctl_zsh_autocomplete {name}
"""


def _fish_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("'", "\\'")


def _fish_flag(name: str, condition: str, flag: _Flag) -> str:
    parts = [f"complete -c {name} -n '{condition}'"]
    if not flag.takes_value:
        parts.append("-f")
    parts.append(f"-l {flag.name}")
    if flag.short:
        parts.append(f"-s {flag.short}")
    if flag.takes_value:
        parts.append("-r")
    if flag.help:
        parts.append(f"-d '{_fish_escape(flag.help)}'")
    return " ".join(parts)


def _fish_template(name: str) -> str:
    commands = " ".join(c.name for c in _COMMANDS)
    no_sub = f"__fish_{name.replace('-', '_')}_no_subcommand"
    lines = [
        f"# {name} fish shell completion",
        "",
        f"function {no_sub} --description 'Test if there has been any subcommand yet'",
        "    for i in (commandline -opc)",
        f"        if contains -- $i {commands}",
        "            return 1",
        "        end",
        "    end",
        "    return 0",
        "end",
        "",
    ]
    for flag in _GLOBAL_FLAGS:
        if not flag.hidden:
            lines.append(_fish_flag(name, no_sub, flag))
    lines.append(_fish_flag(name, no_sub, _Flag("help", "show help", short="h")))
    for command in _COMMANDS:
        lines.append(
            f"complete -c {name} -n '{no_sub}' -f -a '{command.name}' "
            f"-d '{_fish_escape(command.help)}'"
        )
        condition = f"__fish_seen_subcommand_from {command.name}"
        for flag in command.flags:
            if not flag.hidden:
                lines.append(_fish_flag(name, condition, flag))
    return "\n".join(lines) + "\n"


def completion_script(shell: str) -> str:
    """Return the completion script for a shell name or path such as /bin/zsh."""
    name = prog()
    kind = os.path.basename(shell)
    if kind == "bash":
        return bash_template(name)
    if kind == "zsh":
        return zsh_template(name)
    if kind == "fish":
        return _fish_template(name)
    raise UnsupportedShellError(f"no completion script available for {shell}")


def config_reader(path: str) -> IO[str]:
    """Open the configuration; "-" reads from a piped stdin."""
    if path == "-":
        if sys.stdin is None or sys.stdin.isatty():
            raise ConfigError("can't read stdin")
        return sys.stdin

    variants = [path]
    if path == DEFAULT_CONFIG:
        variants.append("k0sctl.yml")

    for candidate in variants:
        if os.path.exists(candidate):
            return open(os.path.abspath(candidate), encoding="utf-8")

    raise ConfigError("failed to locate configuration")


_ENV_RE = re.compile(
    r"\$\$"
    r"|\$\{([A-Za-z_][A-Za-z0-9_]*)(?:(:?[-=+])([^}]*))?\}"
    r"|\$([A-Za-z_][A-Za-z0-9_]*)"
)


def _envsubst(text: str) -> str:
    def replace(match: re.Match[str]) -> str:
        if match.group(0) == "$$":
            return "$"
        if match.group(4) is not None:
            return os.environ.get(match.group(4), "")
        name, op, word = match.group(1), match.group(2), match.group(3) or ""
        value = os.environ.get(name)
        if op is None:
            return value or ""
        empty_counts = op.startswith(":")
        is_set = value is not None and (value != "" or not empty_counts)
        if op.endswith("+"):
            return word if is_set else ""
        return value if is_set else word  # type: ignore[return-value]

    return _ENV_RE.sub(replace, text)


def load_config_text(path: str) -> str:
    """Read the configuration and substitute environment variables in it."""
    reader = config_reader(path)
    try:
        content = reader.read()
    finally:
        if reader is not sys.stdin:
            reader.close()
    text = _envsubst(content)
    log.debug("Loaded configuration:\n%s", text)
    return text


def shell_editor() -> str:
    """Return the user's editor from $VISUAL, $EDITOR or a vi found on the PATH."""
    for var in ("VISUAL", "EDITOR"):
        value = os.environ.get(var)
        if value:
            return value
    found = shutil.which("vi")
    if found:
        return found
    raise CLIError("could not detect shell editor ($VISUAL, $EDITOR)")


def _cache_dir() -> Path:
    return Path(platformdirs.user_cache_path())


def log_file() -> IO[str]:
    """Open the session log file in the cache directory for appending."""
    path = _cache_dir() / LOG_PATH
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(path, "a", encoding="utf-8")
    except OSError as err:
        raise CLIError(f"Failed to open log {path}: {err}") from err
    os.chmod(path, 0o600)
    stamp = datetime.now().astimezone().strftime("%d %b %y %H:%M %Z")
    handle.write(f'time="{stamp}" level=info msg="###### New session ######"\n')
    handle.flush()
    return handle


def cached_or_latest_release(preok: bool) -> Release:
    """Return the latest k0sctl release, using a cached answer up to an hour old."""
    cached = _cache_dir() / RELEASE_CACHE_FILE
    try:
        age = time.time() - cached.stat().st_mtime
    except OSError:
        age = None
    if age is not None and age < RELEASE_CACHE_TTL:
        log.log(TRACE, "cached github release in %s is fresh enough", cached)
        try:
            data = json.loads(cached.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                return Release.from_dict(data)
        except (OSError, ValueError):
            pass

    log.log(TRACE, "starting online k0sctl upgrade check")
    latest = latest_release(preok)
    try:
        cached.parent.mkdir(parents=True, exist_ok=True)
        cached.write_text(json.dumps(latest.to_dict()), encoding="utf-8")
        log.log(TRACE, "cached github response to %s", cached)
    except OSError as err:
        log.log(TRACE, "failed to cache the response: %s", err)
    return latest


class UpgradeCheck:
    """Looks for a newer k0sctl release in the background."""

    def __init__(self, preok: bool = False, disabled: bool = False) -> None:
        self.preok = preok
        self.disabled = disabled or ENVIRONMENT == "development"
        self._results: queue.Queue[Release | None] = queue.Queue(maxsize=1)

    def start(self) -> None:
        if self.disabled:
            return

        def check() -> None:
            try:
                latest = cached_or_latest_release(self.preok)
            except (GithubError, OSError) as err:
                log.debug("upgrade check failed: %s", err)
                self._results.put(None)
                return
            self._results.put(latest if latest.is_newer(VERSION) else None)

        threading.Thread(target=check, daemon=True).start()

    def report(self, timeout: float = UPGRADE_CHECK_TIMEOUT) -> Release | None:
        """Wait for the check and print a notice when an upgrade exists."""
        if self.disabled:
            return None
        try:
            release = self._results.get(timeout=timeout)
        except queue.Empty:
            log.log(TRACE, "upgrade check timed out")
            return None
        if release is not None:
            print(f"A new version {release.tag_name} of k0sctl is available: {release.url}")
        return release


def _latest_k0s_version(preok: bool) -> str:
    try:
        with urllib.request.urlopen(K0S_RELEASES_URL, timeout=10.0) as resp:
            body = resp.read()
    except urllib.error.URLError as err:
        raise GithubError(str(err)) from err
    try:
        data = json.loads(body)
    except ValueError as err:
        raise GithubError(f"invalid response: {err}") from err
    if not isinstance(data, list):
        raise GithubError("failed to get the latest version information")
    release = select_latest_release([Release.from_dict(item) for item in data], preok)
    return release.tag_name.removeprefix("v")


def _add_flag(parser: argparse.ArgumentParser, flag: _Flag, default: Any = None) -> None:
    names = [f"--{flag.name}"]
    if flag.short:
        names.append(f"-{flag.short}")
    help_text = argparse.SUPPRESS if flag.hidden else flag.help
    dest = flag.name.replace("-", "_")
    if flag.takes_value:
        parser.add_argument(*names, dest=dest, default=default, help=help_text)
    else:
        parser.add_argument(
            *names, dest=dest, action="store_true", default=bool(default), help=help_text
        )


def _cmd_version(args: argparse.Namespace) -> int:
    if args.k0s:
        print(_latest_k0s_version(args.pre))
        return 0
    if args.machine_id:
        print(analytics.machine_id())
        return 0
    print(f"version: {VERSION}")
    print(f"commit: {GIT_COMMIT}")
    return 0


def _cmd_completion(args: argparse.Namespace) -> int:
    print(completion_script(args.shell), end="")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the program and its commands."""
    parser = argparse.ArgumentParser(prog=prog(), description=APP_USAGE)
    env_defaults = {"debug": _env_bool("DEBUG"), "trace": _env_bool("TRACE")}
    for flag in _GLOBAL_FLAGS:
        _add_flag(parser, flag, env_defaults.get(flag.name))
    parser.set_defaults(func=None)

    sub = parser.add_subparsers(dest="command", metavar="command")
    commands = {c.name: c for c in _COMMANDS}

    version = sub.add_parser("version", help=commands["version"].help)
    for flag in commands["version"].flags:
        _add_flag(version, flag)
    version.set_defaults(func=_cmd_version)

    completion = sub.add_parser(
        "completion",
        help=commands["completion"].help,
        description=COMPLETION_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    (shell_flag,) = commands["completion"].flags
    _add_flag(completion, shell_flag, os.environ.get("SHELL") or "bash")
    completion.set_defaults(func=_cmd_completion)
    return parser


def _complete(words: Sequence[str]) -> None:
    command = next((c for c in _COMMANDS if c.name in words), None)
    if words and words[-1].startswith("-"):
        flags = command.flags if command else _GLOBAL_FLAGS
        for flag in flags:
            if not flag.hidden:
                print(f"--{flag.name}")
        return
    if command is None:
        for c in _COMMANDS:
            print(c.name)


_screen_handler: logging.Handler | None = None


def _init_screen_logging(level: int) -> None:
    global _screen_handler
    root = logging.getLogger()
    if _screen_handler is not None:
        root.removeHandler(_screen_handler)
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    fmt = "%(levelname)s %(message)s" if level > logging.DEBUG else "%(asctime)s %(levelname)s %(message)s"
    handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(handler)
    root.setLevel(min(root.level or logging.WARNING, level))
    _screen_handler = handler


def _report_panic(err: BaseException) -> None:
    frames = traceback.extract_tb(err.__traceback__)
    backtrace = "\n".join(f"{f.filename}:{f.lineno} {f.name}" for f in frames)
    analytics.get_client().publish("panic", {"backtrace": backtrace})
    log.critical("PANIC: %s", err)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line and return the exit status."""
    args_list = list(sys.argv[1:] if argv is None else argv)

    if args_list and args_list[-1] == COMPLETION_FLAG:
        _complete(args_list[:-1])
        return 0

    parser = build_parser()
    try:
        args = parser.parse_args(args_list)
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else (0 if exc.code is None else 1)

    if args.trace:
        level = TRACE
    elif args.debug:
        level = logging.DEBUG
    else:
        level = logging.INFO
    _init_screen_logging(level)

    if args.func is None:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except (CLIError, GithubError, OSError) as err:
        log.error("%s", err)
        print(str(err), file=sys.stderr)
        return 1
    except Exception as err:  # anything else is a bug
        _report_panic(err)
        return 1