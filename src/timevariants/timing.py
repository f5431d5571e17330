"""Subprocess execution, wall-clock timing and benchmark records.

Timed runs are recorded in the single-iteration form benchstat reads::

    BenchmarkRelinkKubelet 1 14512345678 ns/op

Also provides the environment overlay used to pin a variant's build
parallelism.
"""

from __future__ import annotations

import os
import subprocess
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from timevariants.config import HarnessConfig
from timevariants.errors import CommandError
from timevariants.logging import get_logger

log = get_logger("timing")


# ---------------------------------------------------------------------------
# TimedResult
# ---------------------------------------------------------------------------


@dataclass
class TimedResult:
    """Result of a timed subprocess execution."""

    wall_time_ns: int
    exit_code: int
    output: str  # stdout and stderr, interleaved

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


# ---------------------------------------------------------------------------
# Core execution
# ---------------------------------------------------------------------------


def run_timed(
    command: Sequence[str],
    *,
    cwd: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> TimedResult:
    """Execute a command and measure its wall-clock duration.

    The clock starts immediately before the process is launched and
    stops as soon as it has exited.  There is no timeout.

    Raises:
        CommandError: If the process cannot be launched.
    """
    start = time.monotonic_ns()
    try:
        proc = subprocess.run(
            list(command),
            cwd=str(cwd) if cwd else None,
            env=dict(env) if env is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except OSError as exc:
        raise CommandError(" ".join(command), reason=str(exc)) from exc
    took = time.monotonic_ns() - start

    return TimedResult(wall_time_ns=took, exit_code=proc.returncode, output=proc.stdout or "")


def format_record(name: str, nanoseconds: int) -> str:
    """Format one benchstat record line (without trailing newline)."""
    return f"{name} 1 {nanoseconds} ns/op"


def run_command(
    command: Sequence[str],
    *,
    config: HarnessConfig,
    what: str,
    cwd: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> str:
    """Run an untimed command, returning its combined output.

    In dry-run mode nothing is launched.

    Raises:
        CommandError: On launch failure or non-zero exit.
    """
    if config.dry_run:
        log.info("dryrun: would run %s (%s)", " ".join(command), what)
        return ""
    log.debug("... running %s: %s", what, " ".join(command))
    result = run_timed(command, cwd=cwd, env=env)
    if not result.ok:
        raise CommandError(what, returncode=result.exit_code, output=result.output)
    if config.verbose and result.output:
        log.debug("... output: %s", result.output)
    return result.output


def time_command(
    name: str,
    command: Sequence[str],
    out: TextIO,
    *,
    config: HarnessConfig,
    cwd: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> int | None:
    """Time one invocation and append its record line to *out*.

    Args:
        name: Benchmark name for the record.
        command: Argument list to execute.
        out: Destination stream for the record line.
        config: Harness configuration (dry-run, verbosity).
        cwd: Working directory for the command.
        env: Full environment for the command, or None to inherit.

    Returns:
        The measured duration in nanoseconds, or None in dry-run mode.

    Raises:
        CommandError: If the command fails; no record is written.
    """
    if config.dry_run:
        log.info("... executing timing run: %s", " ".join(command))
        return None

    result = run_timed(command, cwd=cwd, env=env)
    if not result.ok:
        raise CommandError(f"timed run {name}", returncode=result.exit_code, output=result.output)
    if config.verbose and result.output:
        log.debug("... output: %s", result.output)
    log.debug("... timing run took %d ns", result.wall_time_ns)

    out.write(format_record(name, result.wall_time_ns) + "\n")
    out.flush()
    return result.wall_time_ns


# ---------------------------------------------------------------------------
# Environment overlay
# ---------------------------------------------------------------------------


def overlay_parallelism(
    value: int,
    env: Sequence[str] | None = None,
    var: str = "GOMAXPROCS",
) -> list[str]:
    """Return *env* with *var* replaced by ``var=value``.

    *env* is a list of ``KEY=VALUE`` strings; when it is None or empty
    the current process environment is used.  Existing *var* entries are
    dropped, the order of the rest is kept, and the new entry goes last.
    The input is never modified.

    Raises:
        ValueError: If *value* is less than 1.
    """
    if value < 1:
        raise ValueError(f"parallelism must be positive (got {value})")
    if not env:
        env = [f"{k}={v}" for k, v in os.environ.items()]
    prefix = f"{var}="
    result = [entry for entry in env if not entry.startswith(prefix)]
    result.append(f"{var}={value}")
    return result


def env_list_to_dict(entries: Sequence[str]) -> dict[str, str]:
    """Convert ``KEY=VALUE`` strings into a mapping for ``subprocess``."""
    env: dict[str, str] = {}
    for entry in entries:
        key, sep, value = entry.partition("=")
        if sep:
            env[key] = value
    return env
