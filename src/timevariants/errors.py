"""Exception hierarchy for timevariants.

Components raise these instead of exiting; the CLI is the single place
that turns them into a diagnostic line and a non-zero exit status.

    HarnessError
      ConfigError
        VariantConfigError
      RevisionError
      CommandError
      ScriptError
"""

from __future__ import annotations


class HarnessError(Exception):
    """Base class for all fatal harness conditions."""


class ConfigError(HarnessError):
    """Invalid harness configuration (profile, options, variants file)."""


class VariantConfigError(ConfigError):
    """A problem in the variants file.

    Attributes:
        line: 1-based line number of the offending line, if known.
    """

    def __init__(self, message: str, *, line: int | None = None) -> None:
        super().__init__(message)
        self.line = line


class RevisionError(HarnessError):
    """The toolchain's version-control history could not be read."""


class CommandError(HarnessError):
    """A clean/warmup/prime/timed invocation failed or could not start.

    Attributes:
        what: Short description of the invocation ("initial clean", ...).
        returncode: Exit status, or None if the process never launched.
        output: Combined stdout/stderr text of the failed process.
    """

    def __init__(
        self,
        what: str,
        *,
        returncode: int | None = None,
        output: str = "",
        reason: str = "",
    ) -> None:
        if returncode is not None:
            detail = f"exit status {returncode}"
        else:
            detail = reason or "could not be launched"
        super().__init__(f"{what} failed: {detail}")
        self.what = what
        self.returncode = returncode
        self.output = output


class ScriptError(HarnessError):
    """A generated script could not be written."""
