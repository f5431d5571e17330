"""Variant model and variants-file loading.

A variants file lists the toolchains to compare, one per line::

    # tag:goroot[:extra build args[:GOMAXPROCS]]
    master:/ssd/go.master
    devlink:/ssd/go.devlink
    experiment:/ssd2/go.experimental:-gcflags=-N:4

Blank lines and lines starting with ``#`` are ignored.  Loading either
yields a fully validated, ordered list of variants or raises
:class:`~timevariants.errors.VariantConfigError` before anything runs.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from pathlib import Path

from timevariants.errors import VariantConfigError
from timevariants.logging import get_logger

log = get_logger("variants")

# Location of the build command relative to a toolchain root.
BUILD_COMMAND = Path("bin") / "go"


# ---------------------------------------------------------------------------
# Variant
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Variant:
    """One toolchain configuration under comparison."""

    tag: str
    toolchain_root: str
    extra_args: str = ""
    parallelism: int = 0  # 0 = inherit the ambient setting

    @property
    def build_command(self) -> Path:
        """Path to the variant's own build command."""
        return Path(self.toolchain_root) / BUILD_COMMAND

    @property
    def extra_arg_list(self) -> list[str]:
        """Extra build arguments split on whitespace."""
        return self.extra_args.split()


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parse_parallelism(tag: str, text: str) -> int:
    try:
        value = int(text.strip())
    except ValueError:
        raise VariantConfigError(
            f"tag '{tag}' has bad GOMAXPROCS value {text!r}"
        ) from None
    if value < 1:
        raise VariantConfigError(f"tag '{tag}' has invalid GOMAXPROCS value {value}")
    return value


def parse_variant_line(line: str, lineno: int, source: str = "variants.txt") -> Variant:
    """Parse a single ``tag:root[:extras[:gomaxprocs]]`` line.

    Raises:
        VariantConfigError: On a wrong field count or a bad parallelism value.
    """
    tokens = line.split(":")
    if len(tokens) not in (2, 3, 4):
        raise VariantConfigError(
            f"{source} line {lineno} malformed: expected 2 to 4 fields, got {len(tokens)}",
            line=lineno,
        )

    tag, root = tokens[0], tokens[1]
    extras = tokens[2] if len(tokens) >= 3 else ""
    parallelism = 0
    if len(tokens) == 4 and tokens[3] != "":
        parallelism = _parse_parallelism(tag, tokens[3])

    return Variant(tag=tag, toolchain_root=root, extra_args=extras, parallelism=parallelism)


def parse_variants(lines: Iterable[str], source: str = "variants.txt") -> list[Variant]:
    """Parse variant lines, enforcing tag uniqueness.

    Line numbers in error messages are physical, 1-based line numbers
    of *lines*, counting blank and comment lines.

    Raises:
        VariantConfigError: On a malformed line, a duplicate tag, or an
            empty result.
    """
    variants: list[Variant] = []
    tags: set[str] = set()
    roots: set[str] = set()

    for lineno, raw in enumerate(lines, start=1):
        line = raw.rstrip("\r\n")
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        variant = parse_variant_line(line, lineno, source)

        if variant.tag in tags:
            raise VariantConfigError(
                f"tag '{variant.tag}' appears more than once in {source}",
                line=lineno,
            )
        tags.add(variant.tag)

        if variant.toolchain_root in roots:
            log.warning(
                "goroot '%s' appears more than once in %s",
                variant.toolchain_root,
                source,
            )
        roots.add(variant.toolchain_root)

        variants.append(variant)

    if not variants:
        raise VariantConfigError(f"{source} file has no content")
    if len(variants) == 1:
        log.warning("%s file has only a single entry", source)

    return variants


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def check_build_command(variant: Variant) -> None:
    """Make sure the variant's toolchain root has a build command.

    Raises:
        VariantConfigError: If ``<root>/bin/go`` cannot be stat'ed or is
            not a regular file.
    """
    cmd = variant.build_command
    try:
        st = cmd.stat()
    except OSError as exc:
        raise VariantConfigError(f"could not open {cmd}: {exc.strerror or exc}") from exc
    if not cmd.is_file():
        raise VariantConfigError(f"could not open {cmd}: not a regular file (mode {st.st_mode:o})")


def load_variants(path: Path) -> list[Variant]:
    """Read, parse and validate a variants file.

    Toolchain roots are made absolute against the current directory.
    Logs one remark line per variant once everything checks out.

    Raises:
        VariantConfigError: If the file cannot be read or any line or
            toolchain root is invalid.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise VariantConfigError(f"cannot read {path}: {exc.strerror or exc}") from exc

    variants = parse_variants(text.splitlines(), source=path.name)

    # Builds run from the work dir, so a relative root must be pinned to
    # the directory the harness was started from.
    variants = [
        replace(v, toolchain_root=str(Path(v.toolchain_root).expanduser().absolute()))
        for v in variants
    ]

    for i, variant in enumerate(variants):
        check_build_command(variant)
        log.info("remark: variant %d: tag=%s goroot=%s", i, variant.tag, variant.toolchain_root)

    return variants
