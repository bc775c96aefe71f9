"""AML oracle CLI — command-line interface for the compliance-status registry.

Usage:
    python -m amloracle.cli status
    python -m amloracle.cli fund --account 0xClient --amount 1000
    python -m amloracle.cli --as 0xClient deposit --amount 500
    python -m amloracle.cli set-status --client 0xClient --target acct-1 \\
        --aml-id 0x313233 --score 42 --flags 0xff --fee 100
    python -m amloracle.cli --as 0xClient fetch --target acct-1 --max-fee 100
    python -m amloracle.cli grant-role --role OPERATOR_ROLE --account 0xOperator

Every command runs against a data directory holding the audit log
(events.jsonl) and a state snapshot (state.json). --as selects the
calling identity; it defaults to the configured admin.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from amloracle.access.roles import ADMIN_ROLE, role_id
from amloracle.config import RegistryConfig
from amloracle.errors import RegistryError
from amloracle.ledger.custody import InMemoryAssetBook
from amloracle.persistence.event_log import EventKind, EventLog
from amloracle.persistence.state_store import StateStore
from amloracle.service import AmlOracleService, ServiceResult


DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config"
DEFAULT_DATA = Path(__file__).resolve().parents[2] / "data"

logger = logging.getLogger("amloracle")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for CLI usage."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    logger.setLevel(level)


def _make_service(args: argparse.Namespace) -> AmlOracleService:
    """Create an AmlOracleService with durable persistence."""
    config = RegistryConfig.from_env(
        RegistryConfig.from_config_dir(args.config), env_file=args.env_file,
    )
    data_dir: Path = args.data
    data_dir.mkdir(parents=True, exist_ok=True)
    return AmlOracleService(
        config,
        custody=InMemoryAssetBook(),
        event_log=EventLog(storage_path=data_dir / "events.jsonl"),
        state_store=StateStore(storage_path=data_dir / "state.json"),
    )


def _caller(args: argparse.Namespace, service: AmlOracleService) -> str:
    return args.caller or service.config.admin


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=_json_default))


def _report(result: ServiceResult) -> int:
    if result.success:
        _print_json(result.data)
        return 0
    print(f"Failed [{result.error_code}]: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def _parse_role(value: str) -> str:
    """Accept 'admin', a 0x-prefixed 32-byte identifier, or a role label."""
    if value.lower() == "admin":
        return ADMIN_ROLE
    if value.startswith("0x") and len(value) == 66:
        return value.lower()
    return role_id(value)


def _parse_hex_bytes(value: str) -> bytes:
    text = value[2:] if value.startswith("0x") else value
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a hex string: {value!r}")


def _parse_int(value: str) -> int:
    """Integers in any base Python accepts (42, 0xff, 0b101)."""
    try:
        return int(value, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}")


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------

def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    _print_json(service.status())
    return 0


def cmd_fund(args: argparse.Namespace) -> int:
    service = _make_service(args)
    custody = service.custody
    asset = args.asset or service.config.denomination
    try:
        custody.mint(asset, args.account, args.amount)
    except RegistryError as e:
        print(f"Failed [{e.code}]: {e.message}", file=sys.stderr)
        return 1
    warning = service.save_state()
    if warning:
        print(warning, file=sys.stderr)
    _print_json({
        "account": args.account,
        "asset": asset,
        "balance": custody.balance_of(asset, args.account),
    })
    return 0


def cmd_deposit(args: argparse.Namespace) -> int:
    service = _make_service(args)
    caller = _caller(args, service)
    if args.beneficiary:
        return _report(service.deposit_for(caller, args.beneficiary, args.amount))
    return _report(service.deposit(caller, args.amount))


def cmd_withdraw(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.withdraw(_caller(args, service), args.amount))


def cmd_balance(args: argparse.Namespace) -> int:
    service = _make_service(args)
    account = args.account or _caller(args, service)
    denomination = service.config.denomination
    _print_json({
        "account": account,
        "escrow": service.balance_of(account),
        "external": service.custody.balance_of(denomination, account),
        "denomination": denomination,
    })
    return 0


def cmd_set_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.set_status(
        _caller(args, service),
        client=args.client,
        target=args.target,
        aml_id=args.aml_id,
        c_score=args.score,
        flags=args.flags,
        fee=args.fee,
    ))


def cmd_delete_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.delete_status(_caller(args, service), args.client, args.target))


def cmd_metadata(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.get_metadata(args.client, args.target))


def cmd_fetch(args: argparse.Namespace) -> int:
    service = _make_service(args)
    caller = _caller(args, service)
    if args.direct:
        return _report(service.fetch_direct(caller, args.max_fee, args.target))
    return _report(service.fetch(caller, args.max_fee, args.target))


def cmd_ask(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.ask_status(_caller(args, service), args.max_fee, args.target))


def cmd_notify(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.notify(_caller(args, service), args.client, args.message))


def cmd_grant_role(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.grant_role(_caller(args, service), args.role, args.account))


def cmd_revoke_role(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.revoke_role(_caller(args, service), args.role, args.account))


def cmd_set_default_fee(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.set_default_fee(_caller(args, service), args.fee))


def cmd_set_fee_account(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.set_fee_account(_caller(args, service), args.account))


def cmd_recover(args: argparse.Namespace) -> int:
    service = _make_service(args)
    asset = args.asset or service.config.denomination
    return _report(service.recover(_caller(args, service), asset))


def cmd_events(args: argparse.Namespace) -> int:
    service = _make_service(args)
    kind: Optional[EventKind] = EventKind(args.kind) if args.kind else None
    _print_json([e.to_dict() for e in service.events(kind)])
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="amloracle",
        description="AML oracle — compliance-status registry CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=DEFAULT_DATA,
        help="Path to data directory (default: data/)",
    )
    parser.add_argument("--env-file", type=Path, help="Explicit .env file for overrides")
    parser.add_argument(
        "--as", dest="caller", help="Calling identity (default: the configured admin)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    # status
    sub.add_parser("status", help="Show registry status")

    # fund
    p_fund = sub.add_parser("fund", help="Credit an external balance in the local asset book")
    p_fund.add_argument("--account", required=True, help="Identity to fund")
    p_fund.add_argument("--amount", required=True, type=_parse_int, help="Amount")
    p_fund.add_argument("--asset", help="Asset (default: the escrow denomination)")

    # deposit / withdraw / balance
    p_dep = sub.add_parser("deposit", help="Deposit into escrow")
    p_dep.add_argument("--amount", required=True, type=_parse_int, help="Amount")
    p_dep.add_argument("--for", dest="beneficiary", help="Credit this identity instead")

    p_wd = sub.add_parser("withdraw", help="Withdraw from escrow")
    p_wd.add_argument("--amount", required=True, type=_parse_int, help="Amount")

    p_bal = sub.add_parser("balance", help="Show escrow and external balances")
    p_bal.add_argument("--account", help="Identity (default: the caller)")

    # status records
    p_set = sub.add_parser("set-status", help="Create or overwrite an AML status")
    p_set.add_argument("--client", required=True, help="Client identity")
    p_set.add_argument("--target", required=True, help="Target label")
    p_set.add_argument("--aml-id", required=True, type=_parse_hex_bytes, help="Assessment ID (hex)")
    p_set.add_argument("--score", required=True, type=_parse_int, help="cScore (0-99)")
    p_set.add_argument("--flags", required=True, type=_parse_int, help="Flags bitmask")
    p_set.add_argument("--fee", type=_parse_int, help="Fee (default: unset)")

    p_del = sub.add_parser("delete-status", help="Delete an AML status")
    p_del.add_argument("--client", required=True, help="Client identity")
    p_del.add_argument("--target", required=True, help="Target label")

    p_meta = sub.add_parser("metadata", help="Show timestamp and fee of an AML status")
    p_meta.add_argument("--client", required=True, help="Client identity")
    p_meta.add_argument("--target", required=True, help="Target label")

    p_fetch = sub.add_parser("fetch", help="Pay for and read the caller's AML status")
    p_fetch.add_argument("--target", required=True, help="Target label")
    p_fetch.add_argument("--max-fee", required=True, type=_parse_int, help="Fee ceiling")
    p_fetch.add_argument(
        "--direct", action="store_true",
        help="Pay from the external balance (pay-as-you-go deployments)",
    )

    p_ask = sub.add_parser("ask", help="Request an assessment from the operator")
    p_ask.add_argument("--target", required=True, help="Target label")
    p_ask.add_argument("--max-fee", required=True, type=_parse_int, help="Fee ceiling")

    p_notify = sub.add_parser("notify", help="Send an operator notification to a client")
    p_notify.add_argument("--client", required=True, help="Client identity")
    p_notify.add_argument("--message", required=True, help="Message text")

    # roles
    for name, help_text in (("grant-role", "Grant a role"), ("revoke-role", "Revoke a role")):
        p_role = sub.add_parser(name, help=help_text)
        p_role.add_argument(
            "--role", required=True, type=_parse_role,
            help="'admin', a role label (e.g. OPERATOR_ROLE) or a 0x role ID",
        )
        p_role.add_argument("--account", required=True, help="Identity")

    # settings
    p_fee = sub.add_parser("set-default-fee", help="Set the default fee")
    p_fee.add_argument("--fee", required=True, type=_parse_int, help="New default fee")

    p_acct = sub.add_parser("set-fee-account", help="Set the fee account")
    p_acct.add_argument("--account", required=True, help="New fee account")

    # recovery
    p_rec = sub.add_parser("recover", help="Recover stray assets to the caller")
    p_rec.add_argument("--asset", help="Asset (default: the escrow denomination)")

    # events
    p_ev = sub.add_parser("events", help="List audit events")
    p_ev.add_argument("--kind", choices=[k.value for k in EventKind], help="Filter by kind")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    setup_logging(args.verbose)

    commands = {
        "status": cmd_status,
        "fund": cmd_fund,
        "deposit": cmd_deposit,
        "withdraw": cmd_withdraw,
        "balance": cmd_balance,
        "set-status": cmd_set_status,
        "delete-status": cmd_delete_status,
        "metadata": cmd_metadata,
        "fetch": cmd_fetch,
        "ask": cmd_ask,
        "notify": cmd_notify,
        "grant-role": cmd_grant_role,
        "revoke-role": cmd_revoke_role,
        "set-default-fee": cmd_set_default_fee,
        "set-fee-account": cmd_set_fee_account,
        "recover": cmd_recover,
        "events": cmd_events,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
