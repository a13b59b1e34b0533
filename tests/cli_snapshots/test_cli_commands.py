"""
CLI 命令测试

通过 CliRunner 调用 route / models / validate / version 命令
"""

import json
from unittest.mock import patch

import pytest
from rich.console import Console
from typer.testing import CliRunner

from smartroute.cli import main
from smartroute.cli.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def wide_console():
    """固定控制台宽度，避免表格折行"""
    with patch.object(main, "console", Console(width=200)):
        yield


@pytest.fixture
def env_credentials(monkeypatch, credentials):
    for key, value in credentials.items():
        monkeypatch.setenv(key, value)


class TestCLIInfrastructure:
    """CLI 基础设施测试"""

    def test_version_command(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "smartroute" in result.stdout
        assert "0.1.0" in result.stdout

    def test_help_command(self):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("route", "models", "validate", "version"):
            assert command in result.stdout


class TestRouteCommand:
    """路由命令测试"""

    def test_route_json(self, catalog_file, env_credentials):
        result = runner.invoke(app, ["route", "你好", "--config", str(catalog_file), "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["selectedModel"] == "gemini-flash-lite"
        assert data["metadata"]["routingStrategy"] == "semantic"

    def test_route_with_intent(self, catalog_file, env_credentials):
        result = runner.invoke(
            app,
            ["route", "hello", "--intent", "deepseek-reasoner", "--config", str(catalog_file), "--json"],
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["selectedModel"] == "deepseek-reasoner"
        assert data["metadata"]["userIntentDetected"] is True

    def test_route_with_image(self, catalog_file, env_credentials):
        result = runner.invoke(
            app,
            [
                "route", "分析这张图",
                "--image", "https://example.com/cat.png",
                "--config", str(catalog_file),
                "--json",
            ],
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["selectedModel"] == "gpt-4o-all"
        assert data["metadata"]["capabilityMatch"] == 1

    def test_route_table_output(self, catalog_file, env_credentials):
        result = runner.invoke(app, ["route", "hello", "--config", str(catalog_file)])

        assert result.exit_code == 0
        assert "路由决策" in result.stdout
        assert "gemini-flash-lite" in result.stdout

    def test_route_missing_config(self, tmp_path):
        result = runner.invoke(app, ["route", "hello", "--config", str(tmp_path / "nope.json")])

        assert result.exit_code == 1
        assert "加载模型目录失败" in result.stdout


class TestModelsCommand:
    """模型列表命令测试"""

    def test_list_all_models(self, catalog_file, env_credentials):
        result = runner.invoke(app, ["models", "--config", str(catalog_file)])

        assert result.exit_code == 0
        assert "deepseek-reasoner" in result.stdout
        assert "默认模型" in result.stdout

    def test_filter_by_capability(self, catalog_file, env_credentials):
        result = runner.invoke(app, ["models", "--capability", "vision", "--config", str(catalog_file)])

        assert result.exit_code == 0
        assert "claude-sonnet-4-all" in result.stdout
        assert "gpt-4o-all" in result.stdout
        assert "deepseek-reasoner" not in result.stdout


class TestValidateCommand:
    """配置校验命令测试"""

    def test_valid_config(self, catalog_file):
        result = runner.invoke(app, ["validate", "--config", str(catalog_file)])

        assert result.exit_code == 0
        assert "模型目录有效" in result.stdout

    def test_missing_config(self, tmp_path):
        result = runner.invoke(app, ["validate", "--config", str(tmp_path / "nope.json")])

        assert result.exit_code == 1
        assert "配置校验失败" in result.stdout

    def test_invalid_catalog(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(
            json.dumps({"models": {"a": {"type": "deepseek"}}, "selection_strategy": {"default_model": "b"}}),
            encoding="utf-8",
        )
        result = runner.invoke(app, ["validate", "--config", str(path)])

        assert result.exit_code == 1
        assert "默认模型不在目录中" in result.stdout
