"""kvdesk command line.

Thin front end over the Cloudflare clients for scripting and manual checks.
Credentials come from KVDESK_* settings or from the credential store.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from typing import Any

from kvdesk.cloudflare.common import OrderDirection
from kvdesk.cloudflare.credentials import Credentials, UserAuthToken
from kvdesk.cloudflare.errors import CloudflareError
from kvdesk.cloudflare.kv import KvClient
from kvdesk.cloudflare.kv_models import KvNamespacesOrderBy, KvPair
from kvdesk.commands import AppState, to_command_error
from kvdesk.config import get_settings
from kvdesk.credential_store import CredentialStore
from kvdesk.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _version() -> str:
    try:
        return get_version("kvdesk")
    except PackageNotFoundError:
        return "0.0.0"


def _pair_to_dict(pair: KvPair) -> dict[str, Any]:
    return {
        "key": pair.key,
        "value": pair.value.decode("utf-8", errors="backslashreplace"),
        "expiration": pair.expiration.isoformat() if pair.expiration else None,
        "metadata": pair.metadata,
    }


def _print(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _metadata_arg(raw: str) -> dict[str, Any]:
    try:
        metadata = json.loads(raw)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"not valid JSON: {e}") from e
    if not isinstance(metadata, dict):
        raise argparse.ArgumentTypeError("must be a JSON object")
    return metadata


def _expiration_arg(raw: str) -> datetime:
    """Unix seconds or an ISO 8601 timestamp; naive timestamps are UTC."""
    if raw.isdigit():
        return datetime.fromtimestamp(int(raw), tz=timezone.utc)
    try:
        value = datetime.fromisoformat(raw)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not Unix seconds or ISO 8601: {raw!r}") from e
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kvdesk",
        description="Manage Cloudflare Workers KV from the command line",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  kvdesk login --token <token> --save     Verify an API token and store it
  kvdesk namespaces                       List KV namespaces
  kvdesk namespace create sessions        Create a namespace
  kvdesk namespace rename <namespace> t2  Rename a namespace
  kvdesk keys <namespace> --prefix user:  List keys
  kvdesk get <namespace> k1 k2            Read one or more pairs
  kvdesk put <namespace> k1 hello --ttl 60
  kvdesk put <namespace> k1 hello --expiration 2030-01-01T00:00:00Z
  kvdesk delete <namespace> k1 k2
""",
    )
    parser.add_argument("--account-id", default=None, help="Account ID (default: KVDESK_ACCOUNT_ID)")
    parser.add_argument("--log-level", default=None, help="Log level (default: KVDESK_LOG_LEVEL)")
    parser.add_argument(
        "--version", "-v", action="version", version=f"%(prog)s {_version()}"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Verify credentials against the account")
    login.add_argument("--token", default=None, help="API token (default: configured credentials)")
    login.add_argument("--save", action="store_true", help="Store credentials on success")

    namespaces = sub.add_parser("namespaces", help="List namespaces")
    namespaces.add_argument("--page", type=int, default=None)
    namespaces.add_argument("--per-page", type=int, default=None)
    namespaces.add_argument("--order", choices=[o.value for o in KvNamespacesOrderBy], default=None)
    namespaces.add_argument("--direction", choices=[d.value for d in OrderDirection], default=None)

    namespace = sub.add_parser("namespace", help="Create, rename, delete or show a namespace")
    actions = namespace.add_subparsers(dest="action", required=True)
    create = actions.add_parser("create", help="Create a namespace")
    create.add_argument("title")
    rename = actions.add_parser("rename", help="Change the title of a namespace")
    rename.add_argument("namespace")
    rename.add_argument("title")
    for action, help_text in (("delete", "Delete a namespace"), ("show", "Show a namespace")):
        actions.add_parser(action, help=help_text).add_argument("namespace")

    keys = sub.add_parser("keys", help="List keys of a namespace")
    keys.add_argument("namespace")
    keys.add_argument("--prefix", default=None)
    keys.add_argument("--limit", type=int, default=None)
    keys.add_argument("--cursor", default=None)

    get = sub.add_parser("get", help="Read pairs")
    get.add_argument("namespace")
    get.add_argument("keys", nargs="+")

    put = sub.add_parser("put", help="Write a pair")
    put.add_argument("namespace")
    put.add_argument("key")
    put.add_argument("value")
    put.add_argument("--ttl", type=int, default=None, help="Expiration TTL in seconds")
    put.add_argument(
        "--expiration",
        type=_expiration_arg,
        default=None,
        help="Absolute expiration, Unix seconds or ISO 8601 (naive means UTC)",
    )
    put.add_argument(
        "--metadata", type=_metadata_arg, default=None, help="Metadata as a JSON object"
    )
    put.add_argument("--create", action="store_true", help="Fail if the key already exists")

    delete = sub.add_parser("delete", help="Delete pairs")
    delete.add_argument("namespace")
    delete.add_argument("keys", nargs="+")

    return parser


def _resolve_credentials(account_id: str) -> Credentials | None:
    return get_settings().credentials() or CredentialStore().load(account_id)


async def _run(args: argparse.Namespace, account_id: str) -> Any:
    async with AppState() as state:
        if args.command == "login":
            if args.token:
                account = await state.auth_service.login(account_id, args.token)
                credentials = UserAuthToken(token=args.token)
            else:
                credentials = _require_credentials(account_id)
                account = await state.auth_service.verify_credentials(account_id, credentials)
            if args.save:
                CredentialStore().save(account_id, credentials)
            return {"id": account.id, "name": account.name}

        kv = state.kv_client(_require_credentials(account_id))

        if args.command == "namespaces":
            page = await kv.list_namespaces(
                account_id,
                order_by=KvNamespacesOrderBy(args.order) if args.order else None,
                order_direction=OrderDirection(args.direction) if args.direction else None,
                page=args.page,
                per_page=args.per_page,
            )
            return page.model_dump(mode="json")

        if args.command == "namespace":
            return await _run_namespace(kv, args, account_id)

        if args.command == "keys":
            keys = await kv.list_keys(
                account_id, args.namespace, limit=args.limit, cursor=args.cursor, prefix=args.prefix
            )
            return keys.model_dump(mode="json")

        if args.command == "get":
            if len(args.keys) == 1:
                pair = await kv.get_kv_pair(account_id, args.namespace, args.keys[0])
                return _pair_to_dict(pair)
            pairs = await kv.get_kv_pairs(account_id, args.namespace, args.keys)
            return [_pair_to_dict(p) for p in pairs]

        if args.command == "put":
            write = kv.create_kv_pair if args.create else kv.write_kv_pair
            pair = await write(
                account_id,
                args.namespace,
                args.key,
                value=args.value.encode("utf-8"),
                expiration=args.expiration,
                expiration_ttl=args.ttl,
                metadata=args.metadata,
            )
            return _pair_to_dict(pair)

        if args.command == "delete":
            result = await kv.delete_kv_pairs(account_id, args.namespace, args.keys)
            return result.model_dump(mode="json")

    raise ValueError(f"Unknown command: {args.command}")


async def _run_namespace(kv: KvClient, args: argparse.Namespace, account_id: str) -> Any:
    if args.action == "create":
        namespace = await kv.create_namespace(account_id, args.title)
    elif args.action == "rename":
        namespace = await kv.update_namespace(account_id, args.namespace, args.title)
    elif args.action == "delete":
        await kv.delete_namespace(account_id, args.namespace)
        return {"id": args.namespace, "deleted": True}
    else:
        namespace = await kv.get_namespace(account_id, args.namespace)
    return namespace.model_dump(mode="json")


def _require_credentials(account_id: str) -> Credentials:
    credentials = _resolve_credentials(account_id)
    if credentials is None:
        raise SystemExit(
            "No credentials configured. Set KVDESK_API_TOKEN or run 'kvdesk login --token ... --save'."
        )
    return credentials


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()
    settings = get_settings()
    setup_logging(level=args.log_level or settings.log_level)

    account_id = args.account_id or settings.account_id
    if not account_id:
        raise SystemExit("No account ID. Pass --account-id or set KVDESK_ACCOUNT_ID.")

    logger.debug("Running %s for account %s", args.command, account_id)
    try:
        result = asyncio.run(_run(args, account_id))
    except CloudflareError as e:
        error = to_command_error(e)
        _print(error.model_dump(mode="json"))
        sys.exit(1)

    _print(result)


if __name__ == "__main__":
    main()
