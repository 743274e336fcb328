#!/usr/bin/env python3
"""Validate runtime configuration for pre-production/production deploys.

Examples:
  python backend/scripts/validate_runtime_config.py
  python backend/scripts/validate_runtime_config.py --require-siigo --pretty
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any

# Add backend/ to path when run as a script.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cryptography.fernet import Fernet

from core.config import DEFAULT_ENCRYPTION_KEY, DEFAULT_JWT_SECRET, get_settings


def _is_local_env(raw_env: str) -> bool:
    env = raw_env.strip().lower()
    return env in {"", "local", "dev", "development", "test"}


def _is_fernet_key(value: str) -> bool:
    try:
        Fernet(value.encode())
    except (ValueError, TypeError):
        return False
    return True


def _validate_settings(*, require_siigo: bool) -> tuple[list[str], dict[str, Any]]:
    settings = get_settings()
    env = settings.app_env.strip().lower()
    local_env = _is_local_env(env)
    failures: list[str] = []

    if not local_env:
        if settings.jwt_secret == DEFAULT_JWT_SECRET:
            failures.append("JWT_SECRET must not use the default value outside local/dev/test")
        if settings.encryption_key == DEFAULT_ENCRYPTION_KEY:
            failures.append("ENCRYPTION_KEY must not use the default value outside local/dev/test")
        elif not _is_fernet_key(settings.encryption_key):
            failures.append("ENCRYPTION_KEY must be a urlsafe base64 Fernet key")
        if settings.debug:
            failures.append("DEBUG=true is not allowed outside local/dev/test")
        if not settings.database_url.startswith("postgresql+asyncpg://"):
            failures.append("DATABASE_URL must use the postgresql+asyncpg driver outside local/dev/test")

    if require_siigo:
        if not settings.siigo_partner_id.strip():
            failures.append("SIIGO_PARTNER_ID is required when --require-siigo is set")
        if not settings.siigo_api_url.startswith("https://"):
            failures.append("SIIGO_API_URL must be an https URL when --require-siigo is set")

    summary = {
        "status": "success" if not failures else "failed",
        "app_env": settings.app_env,
        "local_env": local_env,
        "require_siigo": bool(require_siigo),
        "channel_max_pages": settings.channel_max_pages,
        "failures": failures,
    }
    return failures, summary


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate deployment runtime config")
    parser.add_argument(
        "--require-siigo",
        action="store_true",
        help="Require Siigo partner configuration for this deploy target",
    )
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    args = parser.parse_args()

    try:
        failures, summary = _validate_settings(require_siigo=bool(args.require_siigo))
    except Exception as exc:  # noqa: BLE001
        summary = {
            "status": "failed",
            "error": str(exc),
            "require_siigo": bool(args.require_siigo),
        }
        failures = [str(exc)]

    if args.pretty:
        print(json.dumps(summary, indent=2, sort_keys=True))
    else:
        print(json.dumps(summary))

    return 0 if not failures else 1


if __name__ == "__main__":
    raise SystemExit(main())
