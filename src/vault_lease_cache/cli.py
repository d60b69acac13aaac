"""Command line access to the Vault lease cache."""

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

from .config import ProviderConfig, Settings, ensure_mount_enabled
from .errors import LeaseCacheError
from .services import codec
from .services.lease_manager import LeaseManager
from .services.lease_store import JsonFileLeaseStore
from .services.vault_client import VaultTransport

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vault-lease",
        description="Fetch, cache and revoke dynamic Vault secrets.",
    )
    parser.add_argument("--mount", help="Secret engine mount (default from settings)")
    parser.add_argument("--path", help="Secret path under the mount (default from settings)")
    parser.add_argument("--state-file", help="Lease state file (default from settings)")

    commands = parser.add_subparsers(dest="command", required=True)

    get = commands.add_parser("get", help="Print the secret, fetching a lease if needed")
    get.add_argument("identity")
    get.add_argument("--obscure", action="store_true", help="Mask every field for display")
    get.add_argument("--check-mount", action="store_true", help="Verify the mount before fetching")

    delete = commands.add_parser("delete", help="Revoke the lease and forget it")
    delete.add_argument("identity")

    mounts = commands.add_parser("mounts", help="List secret engine mounts")
    mounts.add_argument("--type", dest="types", action="append", help="Engine type filter, repeatable")

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    settings = Settings()
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    transport = VaultTransport(
        url=settings.vault_addr,
        token=settings.vault_token,
        namespace=settings.vault_namespace,
        timeout=settings.request_timeout,
    )

    try:
        if args.command == "mounts":
            for mount, info in sorted(transport.list_secret_engine_mounts(args.types).items()):
                print(f"{mount}\t{info.get('type', '')}")
            return 0

        config = ProviderConfig(
            secret_engine_mount=args.mount or settings.secret_engine_mount,
            secret_path=args.path if args.path is not None else settings.secret_path,
        )
        store = JsonFileLeaseStore(args.state_file or settings.state_file)
        manager = LeaseManager.from_settings(settings, store, transport=transport)

        if args.command == "get":
            if args.check_mount:
                ensure_mount_enabled(config, transport)
            value = manager.get_value(args.identity, config)
            if not value:
                print(f"Unable to fetch secret {args.identity}", file=sys.stderr)
                return 1
            if args.obscure:
                value = codec.obscure(value, codec.MULTIVALUE_GROUP)
            print(json.dumps(codec.decode(value), indent=2))
            return 0

        manager.delete_value(args.identity, config)
        return 0

    except LeaseCacheError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
