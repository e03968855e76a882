"""Tests for countwatch CLI commands."""

import os

import httpx
import pytest
from typer.testing import CliRunner

from countwatch.cli.main import app
from countwatch.client import CountwatchClient

runner = CliRunner()


class TestInitCommand:
    """Tests for countwatch init command."""

    def test_init_creates_directory(self, temp_dir):
        """Test that init creates .countwatch directory."""
        os.chdir(temp_dir)

        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert (temp_dir / ".countwatch").exists()
        assert (temp_dir / ".countwatch" / "countwatch.db").exists()
        assert (temp_dir / ".countwatch" / "config.yaml").exists()

    def test_init_writes_example_check_sets(self, temp_dir):
        """Test the generated config lists example check-sets."""
        result = runner.invoke(app, ["init", str(temp_dir)])

        assert result.exit_code == 0
        config = (temp_dir / ".countwatch" / "config.yaml").read_text()
        assert "check_sets" in config
        assert "risk_actions" in config

    def test_init_already_initialized(self, countwatch_project):
        """Test init when already initialized."""
        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert "Already initialized" in result.stdout


class TestSetsCommand:
    """Tests for countwatch sets command."""

    def test_sets_lists_check_sets(self, countwatch_project):
        """Test configured check-sets are listed."""
        result = runner.invoke(app, ["sets"])

        assert result.exit_code == 0
        assert "risk" in result.stdout
        assert "primavera" in result.stdout

    def test_sets_empty(self, countwatch_project):
        """Test message when no check-sets are configured."""
        (countwatch_project / ".countwatch" / "config.yaml").write_text("check_sets: {}\n")

        result = runner.invoke(app, ["sets"])

        assert result.exit_code == 0
        assert "No check-sets configured" in result.stdout

    def test_sets_not_initialized(self, temp_dir, monkeypatch):
        """Test error when not in a countwatch project."""
        monkeypatch.chdir(temp_dir)

        result = runner.invoke(app, ["sets"])

        assert result.exit_code == 1
        assert "countwatch init" in result.stdout


class TestCheckCommand:
    """Tests for countwatch check command."""

    def test_check_passes(self, countwatch_project, make_table):
        """Test a passing check-set exits 0."""
        make_table("risk_actions", 3)
        make_table("risks", 4)

        result = runner.invoke(app, ["check", "risk"])

        assert result.exit_code == 0
        assert "Check-set risk passed" in result.stdout

    def test_check_regression_exits_1(self, countwatch_project, make_table, record_baseline):
        """Test a regressed table exits 1."""
        record_baseline("risk", "risk_actions", 100)
        make_table("risk_actions", 85)
        make_table("risks", 4)

        result = runner.invoke(app, ["check", "risk"])

        assert result.exit_code == 1
        assert "Check-set risk failed" in result.stdout

    def test_check_query_error_exits_1(self, countwatch_project, make_table):
        """Test a missing table exits 1 and is still recorded."""
        make_table("risk_actions", 3)

        result = runner.invoke(app, ["check", "risk"])

        assert result.exit_code == 1
        history = runner.invoke(app, ["history", "risk"])
        assert history.exit_code == 0
        assert "SQL_ERROR" in history.stdout

    def test_check_unknown_exits_2(self, countwatch_project):
        """Test an unknown check-set exits 2."""
        result = runner.invoke(app, ["check", "nonexistent"])

        assert result.exit_code == 2
        assert "Unknown check-set: nonexistent" in result.stdout

    def test_check_not_initialized(self, temp_dir, monkeypatch):
        """Test error when not in a countwatch project."""
        monkeypatch.chdir(temp_dir)
        monkeypatch.delenv("COUNTWATCH_DATABASE_URL", raising=False)

        result = runner.invoke(app, ["check", "risk"])

        assert result.exit_code == 1
        assert "countwatch init" in result.stdout

    def test_check_invalid_table_name(self, countwatch_project):
        """Test a bad table name in config.yaml is reported and exits 1."""
        (countwatch_project / ".countwatch" / "config.yaml").write_text(
            "check_sets:\n  risk: [bad-name]\n"
        )

        result = runner.invoke(app, ["check", "risk"])

        assert result.exit_code == 1
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert "invalid table name" in result.stdout

    def test_check_with_log_level(self, countwatch_project, make_table):
        """Test the global --log-level option is accepted."""
        make_table("risk_actions", 3)
        make_table("risks", 4)

        result = runner.invoke(app, ["--log-level", "DEBUG", "check", "risk"])

        assert result.exit_code == 0


class TestRemoteCheck:
    """Tests for countwatch check --server."""

    @pytest.fixture
    def mock_server(self, monkeypatch):
        """Route the CLI's client through a mock transport."""
        responses: dict[str, httpx.Response] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            return responses[request.url.path]

        def make_client(server_url: str) -> CountwatchClient:
            return CountwatchClient(server_url, transport=httpx.MockTransport(handler))

        monkeypatch.setattr("countwatch.cli.check.CountwatchClient", make_client)
        return responses

    def test_remote_pass(self, mock_server):
        """Test a 200 from the server exits 0."""
        mock_server["/check/risk"] = httpx.Response(
            200,
            json={"check_set_id": "risk", "overall_valid": True, "outcomes": []},
        )

        result = runner.invoke(app, ["check", "risk", "--server", "http://monitor:8080"])

        assert result.exit_code == 0
        assert "passed" in result.stdout

    def test_remote_fail(self, mock_server):
        """Test a 500 with outcomes exits 1."""
        mock_server["/check/risk"] = httpx.Response(
            500,
            json={
                "check_set_id": "risk",
                "overall_valid": False,
                "outcomes": [
                    {
                        "check_set_id": "risk",
                        "table_name": "risks",
                        "current_count": 85,
                        "baseline_count": 100,
                        "is_valid": False,
                        "reason": "COUNT_BELOW_EXPECTED: Last=100, Expected=90",
                    }
                ],
            },
        )

        result = runner.invoke(app, ["check", "risk", "--server", "http://monitor:8080"])

        assert result.exit_code == 1
        assert "failed" in result.stdout

    def test_remote_unknown(self, mock_server):
        """Test a 404 from the server exits 2."""
        mock_server["/check/nope"] = httpx.Response(404, json={"detail": "No such check-set: nope"})

        result = runner.invoke(app, ["check", "nope", "--server", "http://monitor:8080"])

        assert result.exit_code == 2


class TestHistoryCommand:
    """Tests for countwatch history command."""

    def test_history_empty(self, countwatch_project):
        """Test history with no recorded outcomes."""
        result = runner.invoke(app, ["history", "risk"])

        assert result.exit_code == 0
        assert "No history found" in result.stdout

    def test_history_after_check(self, countwatch_project, make_table):
        """Test history shows outcomes from a previous check."""
        make_table("risk_actions", 3)
        make_table("risks", 4)
        _ = runner.invoke(app, ["check", "risk"])

        result = runner.invoke(app, ["history", "risk", "--table", "risks"])

        assert result.exit_code == 0
        assert "risks" in result.stdout
        assert "valid" in result.stdout


class TestServerCommand:
    """Tests for countwatch server command."""

    def test_server_help(self):
        """Test server help text."""
        result = runner.invoke(app, ["server", "--help"])

        assert result.exit_code == 0
        assert "Start the countwatch server" in result.stdout

    def test_server_invalid_table_name(self, countwatch_project):
        """Test a bad table name in config.yaml stops the server before it starts."""
        (countwatch_project / ".countwatch" / "config.yaml").write_text(
            "check_sets:\n  risk: [bad-name]\n"
        )

        result = runner.invoke(app, ["server"])

        assert result.exit_code == 1
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert "invalid table name" in result.stdout
