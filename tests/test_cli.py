"""Tests for the AML oracle CLI — proves commands dispatch and persist."""

import json
import pytest
from pathlib import Path

from amloracle.access.roles import ADMIN_ROLE, OPERATOR_ROLE, role_id
from amloracle.cli import build_parser, main


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"
ADMIN = "0x627306090abaB3A6e1400e9345bC60c78a8BEf57"
CLIENT = "0xf17f52151EbEF6C7334FAD080c5704D77216b732"


@pytest.fixture
def run(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys):
    """Run the CLI against a throwaway data directory; return (code, out, err)."""
    for suffix in ("ADMIN", "DEFAULT_FEE", "DENOMINATION", "VARIANT", "FEE_POLICY", "REGISTRY_ADDRESS"):
        monkeypatch.delenv("AMLORACLE_" + suffix, raising=False)

    def _run(*argv: str):
        code = main([
            "--config", str(CONFIG_DIR),
            "--data", str(tmp_path / "data"),
            "--env-file", str(tmp_path / "none.env"),
            *argv,
        ])
        captured = capsys.readouterr()
        return code, captured.out, captured.err

    return _run


class TestCLIParsing:
    def test_status_command(self) -> None:
        args = build_parser().parse_args(["status"])
        assert args.command == "status"
        assert args.caller is None

    def test_caller_option(self) -> None:
        args = build_parser().parse_args(["--as", CLIENT, "deposit", "--amount", "5"])
        assert args.caller == CLIENT
        assert args.amount == 5

    def test_set_status_parses_hex(self) -> None:
        args = build_parser().parse_args([
            "set-status", "--client", CLIENT, "--target", "t",
            "--aml-id", "0x313233", "--score", "42", "--flags", "0xff",
        ])
        assert args.aml_id == b"123"
        assert args.flags == 255
        assert args.fee is None

    def test_role_argument_forms(self) -> None:
        parser = build_parser()
        admin = parser.parse_args(["grant-role", "--role", "admin", "--account", CLIENT])
        label = parser.parse_args(["grant-role", "--role", "OPERATOR_ROLE", "--account", CLIENT])
        raw = parser.parse_args(["revoke-role", "--role", OPERATOR_ROLE, "--account", CLIENT])
        assert admin.role == ADMIN_ROLE
        assert label.role == OPERATOR_ROLE
        assert raw.role == OPERATOR_ROLE

    def test_bad_hex_rejected(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([
                "set-status", "--client", CLIENT, "--target", "t",
                "--aml-id", "zz", "--score", "1", "--flags", "0",
            ])


class TestCLIExecution:
    def test_no_command_shows_help(self) -> None:
        assert main([]) == 0

    def test_status_runs(self, run) -> None:
        code, out, _ = run("status")
        assert code == 0
        assert json.loads(out)["default_fee"] == 123

    def test_full_flow(self, run, tmp_path: Path) -> None:
        assert run("fund", "--account", CLIENT, "--amount", "1000")[0] == 0
        assert run("--as", CLIENT, "deposit", "--amount", "500")[0] == 0
        assert run(
            "set-status", "--client", CLIENT, "--target", "acct-1",
            "--aml-id", "0x313233", "--score", "42", "--flags", "0xff", "--fee", "100",
        )[0] == 0

        code, out, _ = run("metadata", "--client", CLIENT, "--target", "acct-1")
        assert code == 0
        assert json.loads(out)["fee"] == 100

        code, out, _ = run("--as", CLIENT, "fetch", "--target", "acct-1", "--max-fee", "100")
        assert code == 0
        fetched = json.loads(out)
        assert fetched["aml_id"] == "0x313233"
        assert fetched["c_score"] == 42

        code, out, _ = run("balance", "--account", CLIENT)
        assert json.loads(out) == {
            "account": CLIENT,
            "escrow": 400,
            "external": 500,
            "denomination": "native",
        }

        code, out, _ = run("events", "--kind", "aml_status_fetched")
        assert len(json.loads(out)) == 1
        assert (tmp_path / "data" / "events.jsonl").exists()
        assert (tmp_path / "data" / "state.json").exists()

    def test_failure_exit_code(self, run) -> None:
        code, _, err = run("--as", CLIENT, "withdraw", "--amount", "1")
        assert code == 1
        assert "INSUFFICIENT_BALANCE" in err

    def test_unauthorized_caller(self, run) -> None:
        code, _, err = run("--as", CLIENT, "set-default-fee", "--fee", "0")
        assert code == 1
        assert "UNAUTHORIZED" in err

    def test_role_management(self, run) -> None:
        code, out, _ = run("grant-role", "--role", "OPERATOR_ROLE", "--account", CLIENT)
        assert code == 0
        assert json.loads(out)["changed"] is True
        assert run("--as", CLIENT, "notify", "--client", ADMIN, "--message", "hi")[0] == 0
        assert run("revoke-role", "--role", "OPERATOR_ROLE", "--account", CLIENT)[0] == 0
        assert run("--as", CLIENT, "notify", "--client", ADMIN, "--message", "hi")[0] == 1

    def test_recover_stray_funds(self, run) -> None:
        registry = "0x000000000000000000000000000000000a3100a1"
        run("fund", "--account", registry, "--amount", "25", "--asset", "0xToken")
        code, out, _ = run("recover", "--asset", "0xToken")
        assert code == 0
        assert json.loads(out)["amount"] == 25

    def test_recover_role_label(self) -> None:
        args = build_parser().parse_args(["grant-role", "--role", "RECOVER_ROLE", "--account", CLIENT])
        assert args.role == role_id("RECOVER_ROLE")

    def test_fund_rejects_zero(self, run) -> None:
        code, _, err = run("fund", "--account", CLIENT, "--amount", "0")
        assert code == 1
        assert "INVALID_AMOUNT" in err

    def test_ask_and_settings(self, run) -> None:
        assert run("--as", CLIENT, "ask", "--target", "someone", "--max-fee", "10")[0] == 0
        code, out, _ = run("set-default-fee", "--fee", "7")
        assert json.loads(out) == {"old_default_fee": 123, "new_default_fee": 7}
        assert run("set-fee-account", "--account", CLIENT)[0] == 0
        code, out, _ = run("status")
        status = json.loads(out)
        assert status["default_fee"] == 7
        assert status["fee_account"] == CLIENT.lower()

    def test_delete_status(self, run) -> None:
        code, out, _ = run("delete-status", "--client", CLIENT, "--target", "nothing")
        assert code == 0
        assert json.loads(out)["existed"] is False

    def test_caller_address_in_lowercase(self, run) -> None:
        code, out, _ = run("--as", ADMIN.lower(), "set-default-fee", "--fee", "9")
        assert code == 0
        assert json.loads(out)["new_default_fee"] == 9

    def test_deposit_from_registry_rejected(self, run) -> None:
        registry = "0x000000000000000000000000000000000a3100a1"
        run("fund", "--account", registry, "--amount", "50")
        code, _, err = run("--as", registry, "deposit", "--amount", "50")
        assert code == 1
        assert "INVALID_CLIENT" in err
