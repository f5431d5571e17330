"""Tests for timevariants.timing: process runner, timer and env overlay."""

from __future__ import annotations

import io
import os
import subprocess
import unittest
from unittest.mock import patch

from timevariants.config import HarnessConfig
from timevariants.errors import CommandError
from timevariants.timing import (
    TimedResult,
    env_list_to_dict,
    format_record,
    overlay_parallelism,
    run_command,
    run_timed,
    time_command,
)


def _completed(returncode: int = 0, stdout: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class TestFormatRecord(unittest.TestCase):
    def test_format(self) -> None:
        self.assertEqual(
            format_record("BenchmarkFooKubelet", 123456789),
            "BenchmarkFooKubelet 1 123456789 ns/op",
        )

    def test_timed_result_ok(self) -> None:
        self.assertTrue(TimedResult(wall_time_ns=1, exit_code=0, output="").ok)
        self.assertFalse(TimedResult(wall_time_ns=1, exit_code=2, output="").ok)


# ---------------------------------------------------------------------------
# run_timed
# ---------------------------------------------------------------------------


class TestRunTimed(unittest.TestCase):
    def test_success_captures_combined_output(self) -> None:
        result = run_timed(["/bin/sh", "-c", "echo out; echo err >&2"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("out", result.output)
        self.assertIn("err", result.output)
        self.assertGreater(result.wall_time_ns, 0)

    def test_exit_code(self) -> None:
        result = run_timed(["/bin/sh", "-c", "exit 3"])
        self.assertEqual(result.exit_code, 3)
        self.assertFalse(result.ok)

    def test_launch_failure(self) -> None:
        with self.assertRaises(CommandError) as cm:
            run_timed(["/nonexistent/command"])
        self.assertIsNone(cm.exception.returncode)

    def test_env_passed(self) -> None:
        result = run_timed(["/bin/sh", "-c", "echo $TV_PROBE"], env={"TV_PROBE": "hello"})
        self.assertEqual(result.output.strip(), "hello")

    def test_wall_time_measured_around_launch(self) -> None:
        with patch("timevariants.timing.subprocess.run", return_value=_completed()), patch(
            "timevariants.timing.time.monotonic_ns", side_effect=[1_000, 6_000]
        ):
            result = run_timed(["go", "build"])
        self.assertEqual(result.wall_time_ns, 5_000)


# ---------------------------------------------------------------------------
# time_command
# ---------------------------------------------------------------------------


class TestTimeCommand(unittest.TestCase):
    def test_writes_exact_record(self) -> None:
        out = io.StringIO()
        with patch("timevariants.timing.subprocess.run", return_value=_completed()), patch(
            "timevariants.timing.time.monotonic_ns", side_effect=[10, 42_010]
        ):
            took = time_command(
                "BenchmarkFooKubelet", ["sh", "build.sh"], out, config=HarnessConfig()
            )
        self.assertEqual(took, 42_000)
        self.assertEqual(out.getvalue(), "BenchmarkFooKubelet 1 42000 ns/op\n")

    def test_failure_raises_and_writes_nothing(self) -> None:
        out = io.StringIO()
        with patch(
            "timevariants.timing.subprocess.run",
            return_value=_completed(returncode=2, stdout="undefined: foo\n"),
        ):
            with self.assertRaises(CommandError) as cm:
                time_command("BenchmarkX", ["sh", "build.sh"], out, config=HarnessConfig())
        self.assertEqual(cm.exception.returncode, 2)
        self.assertIn("undefined: foo", cm.exception.output)
        self.assertEqual(out.getvalue(), "")

    def test_dry_run_launches_nothing(self) -> None:
        out = io.StringIO()
        with patch("timevariants.timing.subprocess.run") as mock_run:
            took = time_command(
                "BenchmarkX", ["sh", "build.sh"], out, config=HarnessConfig(dry_run=True)
            )
        mock_run.assert_not_called()
        self.assertIsNone(took)
        self.assertEqual(out.getvalue(), "")

    def test_real_command(self) -> None:
        out = io.StringIO()
        time_command("BenchmarkTrue", ["/bin/sh", "-c", "true"], out, config=HarnessConfig())
        line = out.getvalue()
        self.assertRegex(line, r"^BenchmarkTrue 1 \d+ ns/op\n$")


# ---------------------------------------------------------------------------
# run_command
# ---------------------------------------------------------------------------


class TestRunCommand(unittest.TestCase):
    def test_success_returns_output(self) -> None:
        output = run_command(["/bin/sh", "-c", "echo ok"], config=HarnessConfig(), what="probe")
        self.assertEqual(output.strip(), "ok")

    def test_failure_raises(self) -> None:
        with self.assertRaises(CommandError) as cm:
            run_command(
                ["/bin/sh", "-c", "echo broken >&2; exit 1"],
                config=HarnessConfig(),
                what="initial clean for a",
            )
        self.assertEqual(cm.exception.what, "initial clean for a")
        self.assertIn("initial clean for a failed", str(cm.exception))
        self.assertIn("broken", cm.exception.output)

    def test_dry_run(self) -> None:
        with patch("timevariants.timing.subprocess.run") as mock_run:
            output = run_command(["sh", "x"], config=HarnessConfig(dry_run=True), what="probe")
        mock_run.assert_not_called()
        self.assertEqual(output, "")


# ---------------------------------------------------------------------------
# Environment overlay
# ---------------------------------------------------------------------------


class TestOverlayParallelism(unittest.TestCase):
    def test_replaces_existing_entry(self) -> None:
        base = ["A=1", "PARALLEL=4", "B=2"]
        result = overlay_parallelism(8, base, var="PARALLEL")
        self.assertEqual(result, ["A=1", "B=2", "PARALLEL=8"])
        self.assertEqual(sum(1 for e in result if e.startswith("PARALLEL=")), 1)
        self.assertEqual(base, ["A=1", "PARALLEL=4", "B=2"])

    def test_appends_when_absent(self) -> None:
        self.assertEqual(overlay_parallelism(2, ["A=1"]), ["A=1", "GOMAXPROCS=2"])

    def test_similar_names_kept(self) -> None:
        result = overlay_parallelism(2, ["GOMAXPROCSX=1", "GOMAXPROCS=9"])
        self.assertEqual(result, ["GOMAXPROCSX=1", "GOMAXPROCS=2"])

    def test_defaults_to_process_environment(self) -> None:
        with patch.dict(os.environ, {"TV_OVERLAY_PROBE": "yes", "GOMAXPROCS": "1"}):
            result = overlay_parallelism(16)
        self.assertIn("TV_OVERLAY_PROBE=yes", result)
        self.assertNotIn("GOMAXPROCS=1", result)
        self.assertEqual(result[-1], "GOMAXPROCS=16")

    def test_does_not_touch_process_environment(self) -> None:
        with patch.dict(os.environ, {"GOMAXPROCS": "3"}):
            overlay_parallelism(16)
            self.assertEqual(os.environ["GOMAXPROCS"], "3")

    def test_rejects_non_positive(self) -> None:
        with self.assertRaises(ValueError):
            overlay_parallelism(0, ["A=1"])

    def test_env_list_to_dict(self) -> None:
        self.assertEqual(
            env_list_to_dict(["A=1", "B=x=y", "junk", "C="]),
            {"A": "1", "B": "x=y", "C": ""},
        )


if __name__ == "__main__":
    unittest.main()
