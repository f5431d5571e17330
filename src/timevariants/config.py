"""Harness configuration and profile loading.

Handles:
- The immutable HarnessConfig passed to every component.
- Loading option defaults from YAML profile files.
- Merging CLI options with profile defaults.
- Validating the final configuration before any subprocess runs.
"""

from __future__ import annotations

import dataclasses
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from timevariants.errors import ConfigError

DEFAULT_ITERATIONS = 20
DEFAULT_TARGET = "kubelet"
DEFAULT_PACKAGE = "k8s.io/kubernetes/cmd/kubelet"


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


# ---------------------------------------------------------------------------
# HarnessConfig
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HarnessConfig:
    """Resolved configuration for a harness run."""

    # Behavior flags
    verbose: bool = False
    rebuild: bool = False  # Whole build instead of relink
    iterations: int = DEFAULT_ITERATIONS
    strip_debug: bool = False  # Second phase with symbols stripped
    dry_run: bool = False
    perflock: bool = False
    preserve_tmp: bool = False

    # Paths
    variants_file: Path = field(default_factory=lambda: Path("variants.txt"))
    output_dir: Path = field(default_factory=lambda: Path("."))
    work_dir: Path = field(default_factory=lambda: Path("."))
    binary_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))

    # What gets built
    target: str = DEFAULT_TARGET
    package: str = DEFAULT_PACKAGE
    goarch: str = "amd64"

    # Tooling knobs
    lock_command: str = "perflock"
    parallelism_var: str = "GOMAXPROCS"
    strip_flags: str = '-ldflags="-s -w"'
    shell: str = "/bin/sh"

    @property
    def run_tag(self) -> str:
        """Phase name used for script prefixes and benchmark names."""
        return "rebuild" if self.rebuild else "relink"

    @property
    def benchmark_name(self) -> str:
        """Benchmark name in benchstat's convention, e.g. ``BenchmarkRelinkKubelet``."""
        return f"Benchmark{_capitalize(self.run_tag)}{_capitalize(self.target)}"

    @property
    def stripped_benchmark_name(self) -> str:
        return f"{self.benchmark_name}-WithoutDebug"

    def binary_path(self, tag: str) -> Path:
        """Where the build command writes the binary for variant *tag*."""
        return self.binary_dir / f"{self.target}.{tag}"

    def output_path(self, tag: str, revision: str) -> Path:
        """The per-variant results file, qualified by toolchain revision."""
        return self.output_dir / f"out.{tag}.{revision}.txt"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def validate_config(config: HarnessConfig) -> list[ValidationError]:
    """Validate a harness configuration.

    Returns a list of validation errors.  Empty list means valid.
    """
    errors: list[ValidationError] = []

    if config.iterations < 1:
        errors.append(
            ValidationError(
                field="iterations",
                message=f"Need at least 1 timed iteration (got {config.iterations}).",
            )
        )
    elif config.iterations < 5:
        errors.append(
            ValidationError(
                field="iterations",
                message=(
                    f"Only {config.iterations} iterations; benchstat needs more "
                    f"samples for a meaningful comparison."
                ),
                severity="warning",
            )
        )

    if not config.target or "/" in config.target:
        errors.append(
            ValidationError(
                field="target",
                message=f"Target binary name must be a plain file name (got {config.target!r}).",
            )
        )

    if not config.package:
        errors.append(
            ValidationError(field="package", message="Package path cannot be empty.")
        )

    if not config.dry_run and not config.work_dir.is_dir():
        errors.append(
            ValidationError(
                field="work_dir",
                message=f"Work directory does not exist: {config.work_dir}",
            )
        )

    if config.output_dir.exists() and not config.output_dir.is_dir():
        errors.append(
            ValidationError(
                field="output_dir",
                message=f"Output path is not a directory: {config.output_dir}",
            )
        )

    return errors


# ---------------------------------------------------------------------------
# YAML profile loading
# ---------------------------------------------------------------------------

# Profile key -> HarnessConfig field.
_PROFILE_KEYS: dict[str, str] = {
    "iterations": "iterations",
    "build": "rebuild",
    "strip_debug": "strip_debug",
    "perflock": "perflock",
    "preserve_tmp": "preserve_tmp",
    "variants_file": "variants_file",
    "output_dir": "output_dir",
    "work_dir": "work_dir",
    "binary_dir": "binary_dir",
    "target": "target",
    "package": "package",
    "goarch": "goarch",
    "lock_command": "lock_command",
    "parallelism_var": "parallelism_var",
    "strip_flags": "strip_flags",
}

_PATH_FIELDS = {"variants_file", "output_dir", "work_dir", "binary_dir"}
_BOOL_FIELDS = {"verbose", "rebuild", "strip_debug", "dry_run", "perflock", "preserve_tmp"}


def load_profile(profile_path: Path) -> dict[str, Any]:
    """Load harness option defaults from a YAML file.

    Profile format::

        iterations: 30
        build: false
        strip_debug: true
        perflock: true
        variants_file: variants.txt
        work_dir: /ssd/kubernetes
        target: kubelet
        package: k8s.io/kubernetes/cmd/kubelet

    Returns:
        The parsed YAML as a dict.

    Raises:
        ConfigError: If the file is missing, unparsable, or not a mapping.
    """
    import yaml

    if not profile_path.exists():
        raise ConfigError(f"Profile not found: {profile_path}")

    try:
        data = yaml.safe_load(profile_path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"Profile {profile_path} is not valid YAML: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Profile must be a YAML mapping, got {type(data).__name__}")

    unknown = sorted(set(data) - set(_PROFILE_KEYS))
    if unknown:
        raise ConfigError(
            f"Unknown profile key(s): {', '.join(unknown)}. "
            f"Valid keys: {', '.join(sorted(_PROFILE_KEYS))}"
        )

    return data


def config_from_profile(
    profile_data: dict[str, Any] | None = None,
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> HarnessConfig:
    """Build a HarnessConfig from profile values and CLI options.

    CLI overrides take precedence over profile values.  Boolean CLI
    flags only switch a feature on; a flag left unset falls back to
    the profile.  Keys in *cli_overrides* are HarnessConfig field names;
    ``None`` values are ignored.

    Args:
        profile_data: Parsed YAML profile dict (see :func:`load_profile`).
        cli_overrides: Dict of CLI option values.

    Returns:
        The frozen HarnessConfig.
    """
    values: dict[str, Any] = {}

    for key, value in (profile_data or {}).items():
        name = _PROFILE_KEYS.get(key)
        if name is None:
            raise ConfigError(f"Unknown profile key: {key}")
        if value is not None:
            values[name] = value

    for name, value in (cli_overrides or {}).items():
        if value is None:
            continue
        if name in _BOOL_FIELDS and not value:
            continue
        values[name] = value

    known = {f.name for f in dataclasses.fields(HarnessConfig)}
    for name in list(values):
        if name not in known:
            raise ConfigError(f"Unknown configuration option: {name}")
        if name in _PATH_FIELDS:
            values[name] = Path(values[name])
        elif name in _BOOL_FIELDS and not isinstance(values[name], bool):
            raise ConfigError(f"{name} must be true or false (got {values[name]!r})")

    if "iterations" in values:
        try:
            values["iterations"] = int(values["iterations"])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"iterations must be an integer (got {values['iterations']!r})") from exc

    return HarnessConfig(**values)
