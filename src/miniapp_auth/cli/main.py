"""CLI entrypoint for running the API and checking initData by hand."""

from __future__ import annotations

import argparse
import json
import sys
import time
from typing import Sequence

from ..api.dependencies import build_verifier
from ..config import AppConfig
from ..services.init_data import InitDataVerifier, VerificationFailure


def _load_verifier(config: AppConfig) -> InitDataVerifier:
    verifier = build_verifier(config)
    if verifier is None:
        raise SystemExit("TELEGRAM_BOT_TOKEN is required for this command.")
    return verifier


def _run_server(host: str, port: int) -> int:
    """Serve the HTTP API until interrupted."""
    import uvicorn

    uvicorn.run("miniapp_auth.api.app:create_api", factory=True, host=host, port=port)
    return 0


def _verify(init_data: str) -> int:
    """Print the verification result for ``init_data`` as JSON."""
    verifier = _load_verifier(AppConfig.load())
    result = verifier.verify(init_data)
    if isinstance(result, VerificationFailure):
        payload = {"verified": False, "reason": result.reason.value, "detail": result.detail}
        if result.age_seconds is not None:
            payload["age_seconds"] = result.age_seconds
        print(json.dumps(payload))
        return 1

    print(
        json.dumps(
            {
                "verified": True,
                "user_id": result.user_id,
                "user_data": result.user.model_dump(exclude_none=True),
                "age_seconds": result.age_seconds,
            },
            ensure_ascii=False,
        )
    )
    return 0


def _sign(user_id: int, first_name: str | None, username: str | None, auth_date: int | None) -> int:
    """Print a signed initData string for local testing."""
    verifier = _load_verifier(AppConfig.load())
    user: dict[str, object] = {"id": user_id}
    if first_name:
        user["first_name"] = first_name
    if username:
        user["username"] = username
    fields = {
        "auth_date": str(auth_date if auth_date is not None else int(time.time())),
        "user": json.dumps(user, separators=(",", ":"), ensure_ascii=False),
    }
    print(verifier.sign(fields))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Telegram Mini App authentication utilities.")
    subcommands = parser.add_subparsers(dest="command")

    serve = subcommands.add_parser("serve", help="Run the HTTP API (default).")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)

    verify = subcommands.add_parser("verify", help="Verify an initData string.")
    verify.add_argument("init_data", help="Raw initData; '-' reads it from stdin.")

    sign = subcommands.add_parser("sign", help="Produce signed initData for local testing.")
    sign.add_argument("--user-id", type=int, required=True)
    sign.add_argument("--first-name")
    sign.add_argument("--username")
    sign.add_argument("--auth-date", type=int, help="Unix seconds; defaults to now.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Dispatch CLI subcommands."""
    args = build_parser().parse_args(argv)

    if args.command == "verify":
        init_data = sys.stdin.read().strip() if args.init_data == "-" else args.init_data
        return _verify(init_data)
    if args.command == "sign":
        return _sign(args.user_id, args.first_name, args.username, args.auth_date)
    if args.command == "serve":
        return _run_server(args.host, args.port)
    return _run_server("0.0.0.0", 8000)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
