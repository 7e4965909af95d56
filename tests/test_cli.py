from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from deepclick_mcp import __version__
from deepclick_mcp.__main__ import cli


@pytest.fixture
def runner(tmp_path, monkeypatch) -> CliRunner:
    monkeypatch.chdir(tmp_path)
    return CliRunner()


def test_tools_lists_catalog(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["tools"])

    assert result.exit_code == 0
    assert "create_promotional_link" in result.output
    assert "get_available_domains" in result.output
    assert "domain_id (number, 必需)" in result.output


def test_version(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_call_tools_list(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["call", "tools/list", "--id", "7"])

    assert result.exit_code == 0
    response = json.loads(result.output)
    assert response["id"] == "7"
    assert len(response["result"]["tools"]) == 4


def test_call_unknown_method_exits_nonzero(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["call", "bogus"])

    assert result.exit_code == 1
    assert json.loads(result.output)["error"]["code"] == -32601


def test_call_invalid_arguments_reports_details(runner: CliRunner) -> None:
    params = json.dumps({"name": "get_deepclick_token", "arguments": {"email": "nope"}})

    result = runner.invoke(cli, ["call", "tools/call", "--params", params])

    assert result.exit_code == 1
    error = json.loads(result.output)["error"]
    assert error["code"] == -32602
    assert error["data"]["email"]["_errors"] == ["邮箱格式不正确"]


def test_call_rejects_malformed_params(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["call", "tools/list", "--params", "{oops"])

    assert result.exit_code == 2


def test_config_check_with_defaults(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["config-check"])

    assert result.exit_code == 0
    assert "0.0.0.0:8787" in result.output
    assert "仅在新连接时清理" in result.output


def test_config_check_missing_file(runner: CliRunner, tmp_path) -> None:
    result = runner.invoke(cli, ["--config", str(tmp_path / "absent.yaml"), "config-check"])

    assert result.exit_code == 1
