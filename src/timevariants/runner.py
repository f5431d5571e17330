"""Benchmark orchestration.

For each variant, strictly in file order:

1. Generate the build script for the variant.
2. Resolve the toolchain revision and open ``out.<tag>.<rev>.txt``.
3. Initial clean.
4. Warmup build (relink mode only) to populate dependency caches.
5. Prime build, untimed, to absorb remaining one-time setup costs.
6. Timed loop: clean + timed build, ``iterations`` times.
7. Optionally, the same loop again with symbols stripped.
8. Close the output file.

Any failure propagates immediately as a :class:`HarnessError`; output
files of variants that already finished are left untouched, and the
current one keeps every record flushed before the failure.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from timevariants.config import HarnessConfig
from timevariants.logging import get_logger
from timevariants.revision import resolve_revision
from timevariants.scripts import ScriptPaths, emit_build_script
from timevariants.timing import (
    env_list_to_dict,
    overlay_parallelism,
    run_command,
    time_command,
)
from timevariants.variants import Variant

log = get_logger("runner")


class VariantRunner:
    """Runs the clean/warmup/prime/timed phases for each variant.

    Usage::

        with script_files(config) as scripts:
            runner = VariantRunner(config, scripts)
            runner.run(variants)
    """

    def __init__(self, config: HarnessConfig, scripts: ScriptPaths) -> None:
        self.config = config
        self.scripts = scripts

    def run(self, variants: Sequence[Variant]) -> list[Path]:
        """Benchmark every variant in order.

        Returns:
            Paths of the output files written (empty in dry-run mode).
        """
        written: list[Path] = []
        for variant in variants:
            log.debug("... starting variant: %s", variant)
            path = self.run_variant(variant)
            if path is not None:
                written.append(path)
        return written

    def run_variant(self, variant: Variant) -> Path | None:
        """Run all phases for one variant.

        Returns:
            The output file path, or None in dry-run mode.
        """
        config = self.config
        emit_build_script(self.scripts.build, variant, config)

        revision = resolve_revision(variant)
        path = config.output_path(variant.tag, revision)

        out: TextIO
        if config.dry_run:
            log.info("dryrun: open %s for output", path)
            out = sys.stderr
        else:
            config.output_dir.mkdir(parents=True, exist_ok=True)
            out = path.open("w", encoding="utf-8")

        try:
            self._prepare(variant)
            self._timed_loop(variant, config.benchmark_name, out)

            if config.strip_debug:
                emit_build_script(self.scripts.build, variant, config, extra=config.strip_flags)
                self._timed_loop(variant, config.stripped_benchmark_name, out)
        finally:
            if out is not sys.stderr:
                out.close()

        if config.dry_run:
            return None
        log.info("Variant %s: results in %s", variant.tag, path)
        return path

    # -- phases -------------------------------------------------------------

    def _script_command(self, script: Path, *args: str) -> list[str]:
        return [self.config.shell, str(script), *args]

    def _clean(self, what: str) -> None:
        run_command(
            self._script_command(self.scripts.clean),
            config=self.config,
            what=what,
            cwd=self.config.work_dir,
        )

    def _prepare(self, variant: Variant) -> None:
        """Initial clean, warmup and prime runs (untimed)."""
        config = self.config
        args = variant.extra_arg_list
        log.debug("... performing clean and/or warmup runs for variant %s", variant.tag)

        self._clean(f"initial clean for {variant.tag}")

        if not config.rebuild:
            run_command(
                self._script_command(self.scripts.build, "warmup", *args),
                config=config,
                what=f"initial {config.run_tag} (warmup) for {variant.tag}",
                cwd=config.work_dir,
            )

        run_command(
            self._script_command(self.scripts.build, *args),
            config=config,
            what=f"initial {config.run_tag} for {variant.tag}",
            cwd=config.work_dir,
        )

    def _timed_loop(self, variant: Variant, name: str, out: TextIO) -> None:
        """Clean, then time one build, ``iterations`` times.

        The variant's extra build arguments are passed in every phase,
        the stripped-symbol one included.  Earlier versions of this
        harness ran the stripped loop with no extra arguments, so
        stripped and unstripped numbers also differed by those flags.
        """
        config = self.config
        command = self._script_command(self.scripts.build, *variant.extra_arg_list)

        env = None
        if variant.parallelism:
            env = env_list_to_dict(
                overlay_parallelism(variant.parallelism, var=config.parallelism_var)
            )

        for i in range(config.iterations):
            log.debug("... timing run %d of %s for variant %s", i, name, variant.tag)
            self._clean(f"clean before timing run {i} for {variant.tag}")
            log.debug("... kicking off timing run %s", " ".join(command))
            time_command(
                name,
                command,
                out,
                config=config,
                cwd=config.work_dir,
                env=env,
            )
