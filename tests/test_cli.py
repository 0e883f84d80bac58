"""CLI tests, run against an in-memory registry and a scripted Mesh API."""

import json

import httpx
import pytest
from typer.testing import CliRunner

from src.cli import accounts as accounts_cli
from src.cli import common as cli_common
from src.cli import main as cli_main
from src.cli import transfer as transfer_cli
from src.core.accounts.registry import AccountRegistry, InMemoryStore

TOKEN = "tok_live_0123456789abcdef0123456789"

runner = CliRunner()


@pytest.fixture
def registry(monkeypatch):
    registry = AccountRegistry(InMemoryStore())
    monkeypatch.setattr(accounts_cli, "get_registry", lambda: registry)
    monkeypatch.setattr(transfer_cli, "get_registry", lambda: registry)
    monkeypatch.setattr(cli_main, "init_db", lambda: None)
    return registry


@pytest.fixture
def payload_file(tmp_path):
    path = tmp_path / "payload.json"
    path.write_text(
        json.dumps(
            {
                "accessToken": {"accountTokens": [{"accessToken": TOKEN, "account": {"accountId": "cb-1"}}]},
                "brokerType": "coinbase",
                "brokerName": "Coinbase",
            }
        )
    )
    return path


class TestAccountCommands:
    def test_list_empty(self, registry):
        result = runner.invoke(cli_main.app, ["accounts", "list"])

        assert result.exit_code == 0
        assert "No linked accounts" in result.output

    def test_link_then_list(self, registry, payload_file):
        result = runner.invoke(cli_main.app, ["accounts", "link", str(payload_file)])

        assert result.exit_code == 0
        assert "Linked: Coinbase" in result.output
        assert registry.get("cb-1").transfer_token == TOKEN

        listed = runner.invoke(cli_main.app, ["accounts", "list"])
        assert "Coinbase" in listed.output

    def test_link_missing_file(self, registry, tmp_path):
        result = runner.invoke(cli_main.app, ["accounts", "link", str(tmp_path / "nope.json")])

        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_link_without_token(self, registry, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"brokerType": "coinbase"}))

        result = runner.invoke(cli_main.app, ["accounts", "link", str(path)])

        assert result.exit_code == 1
        assert registry.list() == []

    def test_remove_forced(self, registry, payload_file):
        runner.invoke(cli_main.app, ["accounts", "link", str(payload_file)])

        result = runner.invoke(cli_main.app, ["accounts", "remove", "cb-1", "--force"])

        assert result.exit_code == 0
        assert registry.list() == []
        assert registry.cached_token() is None

    def test_remove_unknown(self, registry):
        result = runner.invoke(cli_main.app, ["accounts", "remove", "nope", "--force"])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_clear_can_be_cancelled(self, registry, payload_file):
        runner.invoke(cli_main.app, ["accounts", "link", str(payload_file)])

        result = runner.invoke(cli_main.app, ["accounts", "clear"], input="n\n")

        assert "Cancelled" in result.output
        assert len(registry.list()) == 1

    def test_refresh_without_refresh_token(self, registry, payload_file):
        runner.invoke(cli_main.app, ["accounts", "link", str(payload_file)])

        result = runner.invoke(cli_main.app, ["accounts", "refresh", "cb-1"])

        assert result.exit_code == 1
        assert "no refresh token" in result.output


def test_version(monkeypatch):
    monkeypatch.setattr(cli_main, "init_db", lambda: None)

    result = runner.invoke(cli_main.app, ["version"])

    assert result.exit_code == 0
    assert "1.0.0" in result.output


class TestRelink:
    def test_relink_keeps_existing_account(self, registry, payload_file):
        runner.invoke(cli_main.app, ["accounts", "link", str(payload_file)])

        result = runner.invoke(cli_main.app, ["accounts", "link", str(payload_file)])

        assert result.exit_code == 0
        assert "Already linked" in result.output
        assert len(registry.list()) == 1


class TestTransferRun:
    """Tests for the transfer wizard."""

    @pytest.fixture
    def linked(self, registry, payload_file, mesh, monkeypatch):
        monkeypatch.setattr(cli_common, "MeshClient", mesh.client)
        runner.invoke(cli_main.app, ["accounts", "link", str(payload_file)])
        mesh.on("/api/v1/transfers/managed/configure", {"content": {"transferId": "t-1"}})
        mesh.on("/api/v1/transfers/managed/preview", {"content": {"previewResult": {"previewId": "t-1", "fee": 1.5}}})
        return registry

    def invoke_run(self, *extra, stdin=None):
        args = ["transfer", "run", "-a", "cb-1", "--to", "0x" + "b" * 40, "-s", "USDC", "-n", "net-eth", "--amount", "5"]
        return runner.invoke(cli_main.app, args + list(extra), input=stdin)

    def test_prompts_for_mfa_and_retries(self, linked, mesh):
        def handler(request):
            if "mfaCode" not in mesh.body(request):
                return httpx.Response(400, text='{"displayMessage":"MFA code required"}')
            return httpx.Response(200, json={"content": {"status": "succeeded"}})

        mesh.on("/api/v1/transfers/managed/execute", handler=handler)

        result = self.invoke_run("--yes", stdin="123456\n")

        assert result.exit_code == 0
        assert "Transfer submitted" in result.output
        executes = mesh.calls("/api/v1/transfers/managed/execute")
        assert [mesh.body(r).get("mfaCode") for r in executes] == [None, "123456"]
        assert all(mesh.body(r)["transferId"] == "t-1" for r in executes)

    def test_declined_preview_executes_nothing(self, linked, mesh):
        result = self.invoke_run(stdin="n\n")

        assert result.exit_code == 0
        assert "Cancelled" in result.output
        assert mesh.calls("/api/v1/transfers/managed/execute") == []
