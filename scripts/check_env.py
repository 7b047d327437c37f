"""Check a star gate ``.env`` file before the API is (re)started.

The settings are loaded exactly as the service loads them, the gated
repository is parsed, and the resolved policy is printed. Settings that load
fine but make the gate behave surprisingly are reported as warnings:

* ``timed`` grace period with a zero duration (users are cut off at once),
* a zero cache duration (every request calls GitHub),
* ``deny`` on API failure with ``never`` grace (a GitHub outage locks
  everyone out),
* a host API key equal to the token encryption secret.

Example usage::

    python -m scripts.check_env --env-file /opt/stargate/.env --strict
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from pydantic import ValidationError

from stargate.core.config import AppSettings, _load_env_file
from stargate.models.repository import InvalidRepositoryFormat, RepositoryRef

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_POLICY_WARNING = 3
EXIT_RUNTIME_ERROR = 5


def _validate_settings(env_file: Path) -> AppSettings:
    """Ensure the star gate settings can be loaded from the supplied env file."""
    _load_env_file(str(env_file))
    settings = AppSettings()  # type: ignore[call-arg]
    RepositoryRef.parse(settings.star_gate.repository)
    return settings


def _describe(settings: AppSettings) -> str:
    star_gate = settings.star_gate
    strategy = star_gate.grace_period.strategy
    if strategy == "timed":
        strategy = f"timed ({star_gate.grace_period.duration}s)"
    return (
        f"Star gate for {star_gate.repository}: cache {star_gate.cache_duration} min, "
        f"on API failure {star_gate.on_api_failure}, grace period {strategy}, "
        f"sessions {settings.session_ttl_hours} h"
    )


def policy_warnings(settings: AppSettings) -> list[str]:
    """Return human readable warnings for legal but risky gate settings."""
    star_gate = settings.star_gate
    grace = star_gate.grace_period
    warnings: list[str] = []
    if grace.strategy == "timed" and grace.duration == 0:
        warnings.append(
            "STARGATE_GRACE_PERIOD__DURATION is 0: the timed grace period "
            "revokes access as soon as an un-star is seen."
        )
    if star_gate.cache_duration == 0:
        warnings.append(
            "STARGATE_CACHE_DURATION is 0: every status check calls the GitHub API."
        )
    if star_gate.on_api_failure == "deny" and grace.strategy == "never":
        warnings.append(
            "STARGATE_ON_API_FAILURE=deny with grace period 'never': a GitHub "
            "outage locks every user out."
        )
    if settings.host_api_key == settings.token_encryption_secret:
        warnings.append(
            "STARGATE_HOST_API_KEY matches TOKEN_ENCRYPTION_SECRET; use separate secrets."
        )
    return warnings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate star gate settings and print the resolved policy."
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        type=Path,
        help="Path to the environment file (default: .env in the repo root).",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit non-zero when a policy warning is reported.",
    )
    return parser


def _ensure_env_file(env_file: Path) -> None:
    if not env_file.exists():
        raise FileNotFoundError(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool."
        )


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file: Path = args.env_file

    try:
        _ensure_env_file(env_file)
        settings = _validate_settings(env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except InvalidRepositoryFormat as exc:
        print(f"STARGATE_REPOSITORY is invalid: {exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error during validation: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    print(_describe(settings))
    warnings = policy_warnings(settings)
    for warning in warnings:
        print(f"warning: {warning}", file=sys.stderr)
    if warnings and args.strict:
        return EXIT_POLICY_WARNING
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
