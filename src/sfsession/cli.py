"""CLI for sfsession: Salesforce REST calls over an implicit-grant session.

Commands: login, refresh, query, raw, versions, whoami, relay, verify.

The session comes from SF_ACCESS_TOKEN / SF_INSTANCE_URL / SF_REFRESH_TOKEN;
login and refresh print the lines to put in .env (nothing is stored here).

Exit codes: 0 success, 1 error, 2 usage.
"""
from __future__ import annotations

import json
import os
import sys
from typing import Any, Optional

from .client import ForceClient, default_surface
from .config import env, load_config
from .errors import ForceError
from .session import Session
from .surfaces import PasteSurface


# ----------------------------
# Commands
# ----------------------------

def _session_from_env() -> Session:
    return Session(
        access_token=os.environ.get("SF_ACCESS_TOKEN") or None,
        instance_url=os.environ.get("SF_INSTANCE_URL") or None,
        refresh_token=os.environ.get("SF_REFRESH_TOKEN") or None,
        proxy_url=os.environ.get("SF_PROXY_URL") or None,
    )


def _client() -> ForceClient:
    return ForceClient(load_config(), session=_session_from_env())


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


def _report_usage(c: ForceClient) -> None:
    u = c.usage()
    if u["used"] is not None:
        print(f"sfsession: API usage {u['used']}/{u['limit']}", file=sys.stderr)


def cmd_login(*, manual: bool = False) -> None:
    config = load_config()
    env("SF_CONSUMER_KEY")
    env("SF_CALLBACK_URL")
    c = ForceClient(config)
    surface = PasteSurface() if manual else default_surface(config)
    session = c.login(surface)
    if session is None:
        print("Login abandoned.", file=sys.stderr)
        sys.exit(1)

    if session.email:
        print(f"Logged in as {session.email} on {session.instance_url}")
    print("Add these lines to .env:")
    print("")
    for line in session.env_lines():
        print(line)
    if not session.refresh_token:
        print(
            "No refresh_token returned (the callback URL must be non-HTTP(S) or the "
            "provider's success page to get one).",
            file=sys.stderr,
        )


def cmd_refresh() -> None:
    env("SF_REFRESH_TOKEN")
    c = _client()
    c.refresh()
    print("Add this line to .env:")
    print("")
    print(f"SF_ACCESS_TOKEN={c.session.access_token}")


def cmd_query(soql: str, *, all_pages: bool = False) -> None:
    c = _client()
    if all_pages:
        for rec in c.iter_records(soql):
            print(json.dumps(rec, sort_keys=True))
    else:
        _print_json(c.query(soql))
    _report_usage(c)


def cmd_raw(path: str, *, method: str, data: Optional[str]) -> None:
    c = _client()
    payload = json.loads(data) if data else None
    result = c.request(path, method.upper(), payload)
    if result is not None:
        _print_json(result)
    _report_usage(c)


def cmd_versions() -> None:
    c = _client()
    for v in c.versions():
        print(f"{v.get('version')}\t{v.get('label')}\t{v.get('url')}")


def cmd_whoami() -> None:
    c = _client()
    u = c.request(f"{c.config.api_version}/chatter/users/me")
    print(f"{u.get('id')}\t{u.get('username')}\t{u.get('email')}")
    _report_usage(c)


def cmd_relay(*, host: str, port: int, verbose: bool) -> None:
    from .relay import serve

    serve(host, port, verbose=verbose)


def cmd_verify() -> None:
    """Check config and make one authenticated call. Exit 0 if OK."""
    missing = [n for n in ("SF_ACCESS_TOKEN", "SF_INSTANCE_URL") if not (os.environ.get(n) or "").strip()]
    for name in missing:
        print(f"sfsession verify: Missing env: {name}", file=sys.stderr)
    if missing:
        sys.exit(1)

    c = _client()
    try:
        c.request(f"{c.config.api_version}/limits")
    except ForceError as e:
        print(f"sfsession verify: {e}", file=sys.stderr)
        sys.exit(1)

    print("Session OK.")
    _report_usage(c)
    if not c.session.refresh_token:
        print("sfsession verify: SF_REFRESH_TOKEN not set; expired sessions will need a new login.", file=sys.stderr)


def main() -> None:
    import argparse

    p = argparse.ArgumentParser(
        prog="sfsession",
        description="Salesforce REST API calls over an OAuth implicit-grant session.",
        epilog=(
            "login:   log in through the browser and print SF_ACCESS_TOKEN/SF_INSTANCE_URL for .env.\n"
            "refresh: exchange SF_REFRESH_TOKEN for a new SF_ACCESS_TOKEN.\n"
            "\n"
            "Expired sessions are refreshed and retried once automatically when\n"
            "SF_REFRESH_TOKEN is set.\n"
            "\n"
            "Examples:\n"
            "  sfsession query \"SELECT Id, Name FROM Account LIMIT 5\"\n"
            "  sfsession raw v35.0/sobjects/Account/001xx0000000001 -X PATCH -d '{\"Name\": \"Acme\"}'\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    p.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging (same as SFS_VERBOSE=1).",
    )

    sub = p.add_subparsers(dest="cmd", required=True, metavar="COMMAND")

    p_query = sub.add_parser("query", help="Run a SOQL query and print the JSON result.")
    p_query.add_argument("soql", help="SOQL query text.")
    p_query.add_argument(
        "--all",
        dest="all_pages",
        action="store_true",
        help="Follow nextRecordsUrl and print every record, one JSON object per line.",
    )

    p_raw = sub.add_parser("raw", help="Send any REST request (path relative to /services/data/).")
    p_raw.add_argument("path", help='e.g. "v35.0/sobjects/Account/describe"')
    p_raw.add_argument("-X", "--method", default="GET", help="HTTP method (default: GET).")
    p_raw.add_argument("-d", "--data", default=None, help="JSON request body.")

    sub.add_parser("versions", help="List available REST API versions.")
    sub.add_parser("whoami", help="Show the user behind the current session.")

    # Auth
    p_login = sub.add_parser("login", help="Log in (implicit grant) and print session lines for .env.")
    p_login.add_argument(
        "--manual",
        action="store_true",
        help="No local server; paste the redirect URL back. Env: SFS_LOGIN_MANUAL=1.",
    )
    sub.add_parser("refresh", help="Refresh the access token with SF_REFRESH_TOKEN.")
    sub.add_parser("verify", help="Check the session config with one authenticated call.")

    p_relay = sub.add_parser("relay", help="Run the same-origin relay for browser clients.")
    p_relay.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1).")
    p_relay.add_argument("--port", type=int, default=8765, help="Port (default: 8765).")

    args = p.parse_args()

    if args.verbose:
        os.environ["SFS_VERBOSE"] = "1"

    try:
        if args.cmd == "query":
            cmd_query(args.soql, all_pages=args.all_pages)
        elif args.cmd == "raw":
            cmd_raw(args.path, method=args.method, data=args.data)
        elif args.cmd == "versions":
            cmd_versions()
        elif args.cmd == "whoami":
            cmd_whoami()
        elif args.cmd == "login":
            manual = getattr(args, "manual", False) or (
                os.environ.get("SFS_LOGIN_MANUAL", "").strip().lower() in ("1", "true", "yes")
            )
            cmd_login(manual=manual)
        elif args.cmd == "refresh":
            cmd_refresh()
        elif args.cmd == "verify":
            cmd_verify()
        elif args.cmd == "relay":
            cmd_relay(host=args.host, port=args.port, verbose=args.verbose)
        else:
            raise SystemExit(2)
        sys.exit(0)
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception as e:
        print(f"sfsession: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
