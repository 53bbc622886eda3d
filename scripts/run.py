#!/usr/bin/env python3
"""Crawler Notifier — Application Runner.

Performs pre-flight checks and launches the main application. Any
arguments are passed through to the application.

Usage:
    python scripts/run.py
    python scripts/run.py tori duunitori --once
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

BANNER = r"""
╔══════════════════════════════════════════════════════════╗
║                                                          ║
║              Crawler Notifier v1.0                       ║
║       New listings from tori, duunitori & co.            ║
║                                                          ║
╚══════════════════════════════════════════════════════════╝
"""

TELEGRAM_ENV_VARS = [
    "TELEGRAM_API_KEY",
    "TELEGRAM_CHAT_ID",
]

REQUIRED_FILES = [
    "config/settings.yaml",
]


def preflight_checks() -> bool:
    """Run pre-flight checks before starting the application.

    Checks:
      - .env file exists (warning only)
      - Telegram environment variables are set (warning only)
      - Required config files exist
      - data/ and logs/ directories exist (creates them)

    Returns:
        True if all required checks pass, False otherwise.
    """
    os.chdir(str(PROJECT_ROOT))
    ok = True

    env_path = PROJECT_ROOT / ".env"
    if not env_path.exists():
        print("⚠️  .env file not found (copy .env.example to .env for Telegram)")
    else:
        from dotenv import load_dotenv
        load_dotenv(env_path)
        print("✅ .env loaded")

    # Missing Telegram credentials are allowed: notifications are skipped
    for var in TELEGRAM_ENV_VARS:
        val = os.environ.get(var, "")
        if not val:
            print(f"⚠️  {var} not set — notifications will be skipped")
        else:
            masked = val[:6] + "..." + val[-4:] if len(val) > 10 else "***"
            print(f"✅ {var} = {masked}")

    for f in REQUIRED_FILES:
        path = PROJECT_ROOT / f
        if not path.exists():
            print(f"❌ {f} not found!")
            ok = False
        else:
            print(f"✅ {f} exists")

    for d in ("data", "logs"):
        (PROJECT_ROOT / d).mkdir(exist_ok=True)
        print(f"✅ {d}/ directory ready")

    return ok


def main() -> None:
    """Entry point: run checks then start the application."""
    print(BANNER)

    print("═══ Pre-flight Checks ═══\n")
    if not preflight_checks():
        print("\n❌ Pre-flight checks failed! Fix the issues above and try again.")
        sys.exit(1)

    print("\n✅ All checks passed!\n")
    print("═══ Starting Crawler Notifier ═══\n")

    from crawler_notifier.main import main as app_main
    app_main(sys.argv[1:])


if __name__ == "__main__":
    main()
