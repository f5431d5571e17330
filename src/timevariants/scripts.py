"""Generation of the clean and build/relink shell scripts.

Two scripts are generated per run and rewritten in place as the harness
moves from variant to variant:

- the clean script removes previously built copies of the target binary
  from the build tree, so every timed run has to produce it again;
- the build script points ``PATH`` at one variant's toolchain, keeps the
  build cache under the work directory, and runs the build command.

The build script takes an optional leading ``warmup`` argument; every
other argument is forwarded to the build command.
"""

from __future__ import annotations

import os
import shlex
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from timevariants.config import HarnessConfig
from timevariants.errors import ScriptError
from timevariants.logging import get_logger
from timevariants.variants import Variant

log = get_logger("scripts")

_SHEBANG = "#!/bin/sh\n"


# ---------------------------------------------------------------------------
# Script text
# ---------------------------------------------------------------------------


def clean_script_text(config: HarnessConfig) -> str:
    """Return the clean script; in dry-run mode it does nothing."""
    text = _SHEBANG
    if not config.dry_run:
        target = shlex.quote(config.target)
        text += (
            f"rm -rf ./_output/local/go/bin/{target} "
            f"./_output/local/bin/linux/{shlex.quote(config.goarch)}/{target}\n"
        )
    return text


def build_script_text(variant: Variant, config: HarnessConfig, extra: str = "") -> str:
    """Return the build/relink script for *variant*.

    Args:
        variant: The toolchain whose build command the script runs.
        config: Harness configuration (mode, lock wrapper, target).
        extra: Extra build flags inserted verbatim into the build
            command line, e.g. ``-ldflags="-s -w"``.
    """
    goroot_bin = shlex.quote(str(Path(variant.toolchain_root).absolute() / "bin"))
    binary = shlex.quote(str(config.binary_path(variant.tag)))
    package = shlex.quote(config.package)

    lines = [
        "HERE=`pwd`",
        'WARMUP="$1"',
        'if [ "$WARMUP" = "warmup" ]; then',
        "  shift",
        "fi",
        'export INJECT="$*"',
        "export GOCACHE=$HERE/_output/local/go/cache",
        "export GOPATH=$HERE/_output/local/go",
        f'export PATH={goroot_bin}:"$PATH"',
    ]

    if not config.dry_run:
        if not config.rebuild:
            lines += [
                'if [ "$WARMUP" = "warmup" ]; then',
                f'  go install "$@" {package}',
                "fi",
            ]
        lines.append(f"rm -f {binary}")
        if config.rebuild:
            # Whole-build timing: drop the cache so nothing is reused.
            lines.append("go clean -cache")
        prefix = f"{config.lock_command} " if config.perflock else ""
        flags = f" {extra}" if extra else ""
        lines.append(f'{prefix}go build -o {binary} "$@"{flags} {package}')

    return _SHEBANG + "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def _write_script(path: Path, text: str) -> None:
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise ScriptError(f"cannot write script {path}: {exc.strerror or exc}") from exc


def emit_clean_script(path: Path, config: HarnessConfig) -> None:
    """Overwrite *path* with the clean script."""
    _write_script(path, clean_script_text(config))


def emit_build_script(
    path: Path,
    variant: Variant,
    config: HarnessConfig,
    extra: str = "",
) -> None:
    """Overwrite *path* with the build script for *variant*."""
    _write_script(path, build_script_text(variant, config, extra))
    log.debug("Wrote %s script %s for variant %s", config.run_tag, path, variant.tag)


# ---------------------------------------------------------------------------
# Temporary script files
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScriptPaths:
    """Locations of the two reusable generated scripts."""

    clean: Path
    build: Path


def _make_temp(prefix: str) -> Path:
    try:
        fd, name = tempfile.mkstemp(prefix=prefix, suffix=".sh")
    except OSError as exc:
        raise ScriptError(f"cannot create temporary {prefix} script: {exc}") from exc
    os.close(fd)
    return Path(name)


@contextmanager
def script_files(config: HarnessConfig) -> Iterator[ScriptPaths]:
    """Create the clean and build script files for the duration of a run.

    The clean script is written immediately; the build script is left
    empty for the caller to fill per variant.  Both files are removed
    on exit, including on errors, unless ``config.preserve_tmp`` is set.
    """
    created: list[Path] = []
    try:
        clean = _make_temp("clean")
        created.append(clean)
        build = _make_temp(config.run_tag)
        created.append(build)
        if config.preserve_tmp:
            log.info("... preserving clean script %s", clean)
            log.info("... preserving %s script %s", config.run_tag, build)
        emit_clean_script(clean, config)
        yield ScriptPaths(clean=clean, build=build)
    finally:
        if not config.preserve_tmp:
            for path in created:
                try:
                    path.unlink()
                except FileNotFoundError:
                    pass
