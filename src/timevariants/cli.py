"""Command-line interface for timevariants.

Reads a variants file of ``tag:goroot[:extras[:gomaxprocs]]`` lines and
times a relink (or full rebuild) of the target binary with each
toolchain.  Run it from the root of the source tree being built::

    $ cat variants.txt
    master:/ssd/go.master
    devlink:/ssd/go.devlink
    $ timevariants -x
    $ benchstat out.master.<rev>.txt out.devlink.<rev>.txt
"""

from __future__ import annotations

from pathlib import Path

import click

from timevariants import __version__
from timevariants.logging import get_logger, setup_logging

log = get_logger("cli")


@click.command()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Emit debug/trace output.")
@click.option(
    "--build",
    "rebuild",
    is_flag=True,
    help="Benchmark the entire build, as opposed to relink.",
)
@click.option(
    "-n",
    "--iterations",
    type=int,
    default=None,
    help="Number of iterations to build/link (default: 20).",
)
@click.option(
    "-x",
    "--strip-debug",
    is_flag=True,
    help="Also time a '-s -w' (no debug info) build.",
)
@click.option(
    "-d",
    "--dry-run",
    is_flag=True,
    help="Show commands but don't execute them.",
)
@click.option("-P", "--perflock", is_flag=True, help="Run timed builds under perflock.")
@click.option("--preserve-tmp", is_flag=True, help="Preserve the generated script files.")
@click.option(
    "--variants-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Variants file (default: variants.txt).",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for out.<tag>.<revision>.txt files (default: .).",
)
@click.option(
    "--work-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Source tree to build in (default: .).",
)
@click.option("--target", type=str, default=None, help="Binary name (default: kubelet).")
@click.option(
    "--package",
    type=str,
    default=None,
    help="Package path to build (default: k8s.io/kubernetes/cmd/kubelet).",
)
@click.option(
    "--profile",
    "profile_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML file with option defaults.",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write a DEBUG-level log to this file.",
)
def main(  # noqa: PLR0913
    verbose: bool,
    rebuild: bool,
    iterations: int | None,
    strip_debug: bool,
    dry_run: bool,
    perflock: bool,
    preserve_tmp: bool,
    variants_file: Path | None,
    output_dir: Path | None,
    work_dir: Path | None,
    target: str | None,
    package: str | None,
    profile_path: Path | None,
    log_file: Path | None,
) -> None:
    """Time relinks of a large binary across several Go toolchains.

    Each variant gets one output file, out.<tag>.<revision>.txt, with
    one benchstat-format line per timed run.  The revision is the
    toolchain's newest commit, so reruns against a new snapshot of the
    same tag do not overwrite earlier results.  (Older documentation
    names these files out.<tag>.txt; the revision-qualified name is
    what is actually written.)
    """
    from timevariants.config import config_from_profile, load_profile, validate_config
    from timevariants.errors import CommandError, HarnessError
    from timevariants.runner import VariantRunner
    from timevariants.scripts import script_files
    from timevariants.variants import load_variants

    setup_logging(verbose=verbose, log_file=log_file)

    cli_overrides: dict[str, object] = {
        "verbose": verbose,
        "rebuild": rebuild,
        "iterations": iterations,
        "strip_debug": strip_debug,
        "dry_run": dry_run,
        "perflock": perflock,
        "preserve_tmp": preserve_tmp,
        "variants_file": variants_file,
        "output_dir": output_dir,
        "work_dir": work_dir,
        "target": target,
        "package": package,
    }

    try:
        profile = load_profile(profile_path) if profile_path else None
        config = config_from_profile(profile, cli_overrides=cli_overrides)
    except HarnessError as exc:
        raise click.UsageError(str(exc)) from exc

    problems = validate_config(config)
    for w in (p for p in problems if p.severity == "warning"):
        log.warning("config: %s: %s", w.field, w.message)
    fatal = [p for p in problems if p.severity == "error"]
    if fatal:
        raise click.UsageError("; ".join(f"{e.field}: {e.message}" for e in fatal))

    try:
        variants = load_variants(config.variants_file)
        with script_files(config) as scripts:
            runner = VariantRunner(config, scripts)
            written = runner.run(variants)
    except CommandError as exc:
        if exc.output:
            log.error("%s output:\n%s", exc.what, exc.output.rstrip())
        raise click.ClickException(str(exc)) from exc
    except HarnessError as exc:
        raise click.ClickException(str(exc)) from exc
    except OSError as exc:
        raise click.ClickException(f"I/O error: {exc}") from exc
    except KeyboardInterrupt:
        click.echo("\nBenchmark interrupted.", err=True)
        raise SystemExit(130)  # noqa: B904

    for path in written:
        click.echo(str(path))
