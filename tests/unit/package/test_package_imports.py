"""Importing the library surface must not pull in the CLI stack."""

from __future__ import annotations

import subprocess
import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class PackageImportTests(unittest.TestCase):
    def test_package_import_defers_cli_and_pygments(self) -> None:
        script = (
            "import sys, tabforest; "
            "print(sorted(name for name in ('tabforest.cli', 'tabforest.render', 'pygments') "
            "if name in sys.modules))"
        )
        result = subprocess.run(
            [sys.executable, "-c", script],
            cwd=PROJECT_ROOT,
            capture_output=True,
            text=True,
            check=True,
        )

        self.assertEqual(result.stdout.strip(), "[]")
        self.assertTrue(callable(__import__("tabforest").main))


if __name__ == "__main__":
    unittest.main()
