"""Toolchain revision lookup.

Output files are named after the variant tag *and* the toolchain's
current commit, so results from different snapshots of the same tag
never overwrite each other across runs.
"""

from __future__ import annotations

import subprocess

from timevariants.errors import RevisionError
from timevariants.logging import get_logger
from timevariants.variants import Variant

log = get_logger("revision")


def parse_revision(text: str) -> str | None:
    """Return the first whitespace-delimited token of a log line, or None."""
    tokens = text.split()
    return tokens[0] if tokens else None


def resolve_revision(variant: Variant, *, timeout: int = 30) -> str:
    """Return the short hash of the newest commit in the variant's toolchain.

    Runs ``git -C <goroot> log -1 --oneline``.

    Raises:
        RevisionError: If git cannot be run, fails, or prints nothing usable.
    """
    cmd = ["git", "-C", variant.toolchain_root, "log", "-1", "--oneline"]
    log.debug("Running: %s", " ".join(cmd))
    try:
        proc = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise RevisionError(
            f"can't run git log in repo {variant.toolchain_root}: {exc}"
        ) from exc

    if proc.returncode != 0:
        raise RevisionError(
            f"can't run git log in repo {variant.toolchain_root}: "
            f"{proc.stderr.strip() or f'exit status {proc.returncode}'}"
        )

    revision = parse_revision(proc.stdout)
    if revision is None:
        raise RevisionError(
            f"can't run git log in repo {variant.toolchain_root}: "
            f"bad output {proc.stdout!r}"
        )
    log.debug("Variant %s is at revision %s", variant.tag, revision)
    return revision
