"""
Task/Notes Mini App dev toolkit
===============================
Local helpers for working on the load/save Lambda handlers:
  1. Build signed Telegram initData tokens from a user profile
  2. Validate an initData token and show the user inside it
  3. Run both handlers behind a local Flask server

Dependencies (install via pip):
  cryptography>=42.0.0
  flask>=3.0.0
  pyyaml>=6.0.0

Example usage:
  # Sign a profile (YAML or JSON) with the bot token
  python tasknotes_dev.py sign user.yaml --bot-token 123:ABC

  # Validate a token
  python tasknotes_dev.py validate "user=...&auth_date=...&hash=..." --bot-token 123:ABC

  # Run the handlers on localhost:8080 (needs SUPABASE_URL / SUPABASE_ANON_KEY)
  python tasknotes_dev.py serve --host 0.0.0.0 --port 8080

  # In another terminal
  curl "http://localhost:8080/api/load?initData=$(python tasknotes_dev.py sign user.yaml --quote)"

Notes:
  • Tokens are signed exactly the way Telegram signs Mini App initData
    (HMAC-SHA256 keyed with HMAC-SHA256("WebAppData", bot_token)).
  • The bot token defaults to $TELEGRAM_BOT_TOKEN.
"""
from __future__ import annotations

import argparse
import importlib.util
import json
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict
from urllib.parse import quote

import yaml

from tasknotes.errors import AuthError
from tasknotes.init_data import parse_init_data, sign_init_data, verify_init_data

LAMBDAS_DIR = Path(__file__).resolve().parent.parent / "app" / "lambdas"


# ---------------------------
# Profile Helpers
# ---------------------------

def load_profile(path: str) -> Dict[str, Any]:
    """Read a user profile (YAML/JSON). Either the user object itself or ``{user: {...}, ...}``."""
    with open(path, "r", encoding="utf-8") as f:
        if path.endswith((".yaml", ".yml")):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError("Profile must be a mapping")
    fields = dict(data) if "user" in data else {"user": data}
    if not isinstance(fields["user"], dict) or "id" not in fields["user"]:
        raise ValueError("Profile user must have an id")
    return fields


def _bot_token(value: str | None) -> str:
    token = value or os.environ.get("TELEGRAM_BOT_TOKEN")
    if not token:
        raise SystemExit("[✗] No bot token: pass --bot-token or set TELEGRAM_BOT_TOKEN")
    return token


# ---------------------------
# Local Server
# ---------------------------

def load_handler(name: str) -> Callable[[Dict[str, Any], Any], Dict[str, Any]]:
    """Import ``app/lambdas/<name>/handler.py`` by path and return its lambda_handler."""
    spec = importlib.util.spec_from_file_location(f"{name}_handler", LAMBDAS_DIR / name / "handler.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module.lambda_handler


def to_lambda_event(method: str, path: str, args: Dict[str, str], body: str) -> Dict[str, Any]:
    """Shape a Flask request like an API Gateway HTTP API (payload 2.0) event."""
    return {
        "version": "2.0",
        "rawPath": path,
        "requestContext": {"http": {"method": method, "path": path}},
        "queryStringParameters": args or None,
        "body": body or None,
        "isBase64Encoded": False,
    }


def create_app():
    from flask import Flask, Response, request

    app = Flask(__name__)
    handlers = {"load": load_handler("load_api"), "save": load_handler("save_api")}

    def dispatch(name: str):
        event = to_lambda_event(request.method, request.path, request.args.to_dict(), request.get_data(as_text=True))
        result = handlers[name](event, None)
        return Response(result.get("body", ""), status=result["statusCode"], headers=result.get("headers", {}))

    @app.route("/api/load", methods=["GET", "OPTIONS", "POST", "PUT", "DELETE"])
    def load():
        return dispatch("load")

    @app.route("/api/save", methods=["POST", "OPTIONS", "GET", "PUT", "DELETE"])
    def save():
        return dispatch("save")

    return app


def run_server(host: str, port: int):
    app = create_app()
    print(f"[*] Task/Notes handlers listening on http://{host}:{port}/api/load and /api/save")
    app.run(host=host, port=port, threaded=True)


# ---------------------------
# CLI Interface
# ---------------------------

def cli():
    parser = argparse.ArgumentParser(description="Task/Notes Mini App dev toolkit")
    sub = parser.add_subparsers(dest="command", required=True)

    # sign
    s = sub.add_parser("sign", help="Build a signed initData token from a profile (YAML/JSON)")
    s.add_argument("input", help="Path to profile YAML/JSON file")
    s.add_argument("--bot-token", help="Bot token (default $TELEGRAM_BOT_TOKEN)")
    s.add_argument("--quote", action="store_true", help="URL-quote the token for use in a query string")

    # validate
    v = sub.add_parser("validate", help="Validate an initData token")
    v.add_argument("token", help="initData query string")
    v.add_argument("--bot-token", help="Bot token (default $TELEGRAM_BOT_TOKEN)")
    v.add_argument("--max-age", default=0, type=int, help="Reject tokens older than this many seconds")

    # serve
    b = sub.add_parser("serve", help="Run both handlers behind a local Flask server")
    b.add_argument("--host", default="127.0.0.1", help="Bind address (default 127.0.0.1)")
    b.add_argument("--port", default=8080, type=int, help="Port (default 8080)")

    args = parser.parse_args()

    if args.command == "sign":
        token = sign_init_data(load_profile(args.input), _bot_token(args.bot_token))
        print(quote(token, safe="") if args.quote else token)

    elif args.command == "validate":
        try:
            verify_init_data(args.token, _bot_token(args.bot_token), args.max_age)
        except AuthError as e:
            print(f"[✗] Validation failed: {e}")
            sys.exit(1)
        user = parse_init_data(args.token)
        if user is None:
            print("[✗] Signature valid but no user in initData")
            sys.exit(1)
        print(f"[✓] Signature valid for user {user.id} ({user.first_name})")

    elif args.command == "serve":
        run_server(args.host, args.port)


if __name__ == "__main__":
    cli()
