#!/usr/bin/env python3
"""
Bootstrap a checkout for PDF export: install the project, then Chromium for Playwright.
"""

import argparse
import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Tuple

PROJECT_ROOT = Path(__file__).resolve().parent.parent

INSTALL_PROJECT = ([sys.executable, "-m", "pip", "install", "-e", ".[test]"], "Installing cv-pdf-export (editable, with test extra)")
INSTALL_CHROMIUM = ([sys.executable, "-m", "playwright", "install", "chromium"], "Downloading Chromium for Playwright")


def plan_steps(skip_browser: bool = False) -> List[Tuple[List[str], str]]:
    steps = [INSTALL_PROJECT]
    if not skip_browser:
        steps.append(INSTALL_CHROMIUM)
    return steps


def run_step(cmd: List[str], description: str) -> bool:
    print(f"\n📦 {description}...")
    result = subprocess.run(cmd, cwd=PROJECT_ROOT, capture_output=True, text=True)
    if result.returncode != 0:
        print(f"❌ {description} failed (exit {result.returncode})")
        print((result.stderr or result.stdout).strip())
        return False
    print(f"✅ {description}")
    return True


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Prepare this checkout for exporting the CV")
    parser.add_argument("--skip-browser", action="store_true", help="Do not download Chromium")
    args = parser.parse_args(argv)

    for cmd, description in plan_steps(args.skip_browser):
        if not run_step(cmd, description):
            return 1

    print("\n✅ Ready. Export with: python scripts/export_pdf.py")
    return 0


if __name__ == "__main__":
    sys.exit(main())
