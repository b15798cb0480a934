import re
import pytest
from unittest.mock import patch, call
from typer.testing import CliRunner

from tickle_cli.main import app
from tickle_cli.commands.restart import restart_services_logic
from tickle_cli.commands.start import start_services_logic
from tickle_cli.commands.stop import stop_services_logic
from tickle_cli.commands.history import history_logic, clear_history_logic
from tickle_cli.commands.logs import logs_services_logic
from tickle_cli.commands.check import check_environment_logic
from tickle_cli.errors import HistoryWriteFailedError, NoTargetFoundError, UnitNotFoundError
from tickle_cli.schemas import (
    CheckReport,
    Command,
    EnvironmentCheck,
    HistoryEntry,
    HistoryStatus,
    RestartStrategy,
    ServiceState,
    SubStep,
)

runner = CliRunner()

ENTRY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} \| (tickle|start|stop) \| .+ \| (SUCCESS|FAILED)$")


def history_lines(app_context):
    path = app_context.history.path
    if not path.exists():
        return []
    return path.read_text().splitlines()


@pytest.fixture
def compose_dir(tmp_path, monkeypatch):
    project = tmp_path / "web"
    project.mkdir()
    (project / "docker-compose.yml").write_text("services: {}\n")
    monkeypatch.chdir(project)
    return project


# --- Restart Command ---

@patch('tickle_cli.main.AppContext')
def test_restart_unit_records_success(MockAppContext, app_context_with_fakes):
    MockAppContext.return_value = app_context_with_fakes

    result = runner.invoke(app, ["nginx"])

    assert result.exit_code == 0
    lines = history_lines(app_context_with_fakes)
    assert len(lines) == 1
    assert ENTRY_PATTERN.match(lines[0])
    assert lines[0].endswith(" | tickle | nginx | SUCCESS")
    backend = app_context_with_fakes.service_manager.systemd_client
    assert backend.actions == [(SubStep.RESTART, "nginx")]
    outcome = app_context_with_fakes.display.outcome.call_args[0][0]
    assert outcome.succeeded is True
    assert outcome.initial_state is ServiceState.ACTIVE


@patch('tickle_cli.main.AppContext')
def test_explicit_restart_command_matches_default(MockAppContext, app_context_with_fakes):
    MockAppContext.return_value = app_context_with_fakes

    result = runner.invoke(app, ["restart", "nginx"])

    assert result.exit_code == 0
    assert history_lines(app_context_with_fakes)[0].endswith(" | tickle | nginx | SUCCESS")


@patch('tickle_cli.main.AppContext')
def test_restart_forced_stop_start(MockAppContext, app_context_with_fakes):
    MockAppContext.return_value = app_context_with_fakes

    result = runner.invoke(app, ["-s", "nginx"])

    assert result.exit_code == 0
    backend = app_context_with_fakes.service_manager.systemd_client
    assert backend.actions == [(SubStep.STOP, "nginx"), (SubStep.START, "nginx")]
    outcome = app_context_with_fakes.display.outcome.call_args[0][0]
    assert outcome.strategy is RestartStrategy.STOP_START


@patch('tickle_cli.main.AppContext')
def test_restart_failed_stop_records_failure(MockAppContext, app_context_with_fakes):
    MockAppContext.return_value = app_context_with_fakes
    backend = app_context_with_fakes.service_manager.systemd_client
    backend.failing_steps[SubStep.STOP] = "Stop failed: Access denied"

    result = runner.invoke(app, ["--stop-start", "nginx"])

    assert result.exit_code == 1
    assert backend.actions == [(SubStep.STOP, "nginx")]
    lines = history_lines(app_context_with_fakes)
    assert len(lines) == 1
    assert lines[0].endswith(" | tickle | nginx | FAILED")
    outcome = app_context_with_fakes.display.outcome.call_args[0][0]
    assert outcome.error.step is SubStep.STOP


@patch('tickle_cli.main.AppContext')
def test_restart_unknown_unit_writes_no_history(MockAppContext, app_context_with_fakes):
    MockAppContext.return_value = app_context_with_fakes

    result = runner.invoke(app, ["nosuch"])

    assert result.exit_code == 1
    assert history_lines(app_context_with_fakes) == []
    app_context_with_fakes.display.error.assert_called_once()
    assert "nosuch" in app_context_with_fakes.display.error.call_args[0][0]


@patch('tickle_cli.main.AppContext')
def test_restart_without_target_writes_no_history(MockAppContext, app_context_with_fakes, tmp_path, monkeypatch):
    MockAppContext.return_value = app_context_with_fakes
    empty = tmp_path / "empty"
    empty.mkdir()
    monkeypatch.chdir(empty)

    result = runner.invoke(app, [])

    assert result.exit_code == 1
    assert history_lines(app_context_with_fakes) == []
    app_context_with_fakes.display.error.assert_called_once()


@patch('tickle_cli.main.AppContext')
def test_restart_compose_stack(MockAppContext, app_context_with_fakes, compose_dir):
    MockAppContext.return_value = app_context_with_fakes

    result = runner.invoke(app, [])

    assert result.exit_code == 0
    compose_backend = app_context_with_fakes.service_manager.compose_client
    assert compose_backend.actions == [
        (SubStep.DOWN, compose_dir / "docker-compose.yml"),
        (SubStep.UP, compose_dir / "docker-compose.yml"),
    ]
    assert history_lines(app_context_with_fakes)[0].endswith(" | tickle | compose:docker-compose.yml | SUCCESS")


@patch('tickle_cli.main.AppContext')
def test_restart_compose_down_failure_still_runs_up(MockAppContext, app_context_with_fakes, compose_dir):
    MockAppContext.return_value = app_context_with_fakes
    compose_backend = app_context_with_fakes.service_manager.compose_client
    compose_backend.failing_steps[SubStep.DOWN] = "network in use"

    result = runner.invoke(app, [])

    assert result.exit_code == 1
    assert [step for step, _ in compose_backend.actions] == [SubStep.DOWN, SubStep.UP]
    assert history_lines(app_context_with_fakes)[0].endswith(" | FAILED")


@patch('tickle_cli.main.AppContext')
def test_history_write_failure_keeps_exit_code(MockAppContext, app_context_with_fakes):
    MockAppContext.return_value = app_context_with_fakes

    with patch.object(app_context_with_fakes.history, "append", side_effect=HistoryWriteFailedError("disk full")):
        result = runner.invoke(app, ["nginx"])

    assert result.exit_code == 0
    app_context_with_fakes.display.outcome.assert_called_once()


@patch('tickle_cli.main.AppContext')
def test_restart_follow_streams_logs(MockAppContext, app_context_with_fakes):
    MockAppContext.return_value = app_context_with_fakes

    result = runner.invoke(app, ["-f", "nginx"])

    assert result.exit_code == 0
    app_context_with_fakes.display.log_message.assert_has_calls([call("line one"), call("line two")])


@patch('tickle_cli.main.AppContext')
def test_restart_follow_skipped_on_failure(MockAppContext, app_context_with_fakes):
    MockAppContext.return_value = app_context_with_fakes
    app_context_with_fakes.service_manager.systemd_client.failing_steps[SubStep.RESTART] = "boom"

    result = runner.invoke(app, ["-f", "nginx"])

    assert result.exit_code == 1
    app_context_with_fakes.display.log_message.assert_not_called()


def test_restart_services_logic_returns_outcome(app_context_with_fakes):
    outcome = restart_services_logic(app_context_with_fakes, service="nginx")

    assert outcome.succeeded is True
    assert outcome.command is Command.TICKLE
    assert outcome.strategy is RestartStrategy.RESTART


def test_restart_services_logic_propagates_resolution_errors(app_context_with_fakes, tmp_path):
    with pytest.raises(NoTargetFoundError):
        restart_services_logic(app_context_with_fakes, service=None, cwd=tmp_path)
    with pytest.raises(UnitNotFoundError):
        restart_services_logic(app_context_with_fakes, service="nosuch", cwd=tmp_path)
    assert history_lines(app_context_with_fakes) == []


# --- Start and Stop Commands ---

@patch('tickle_cli.main.AppContext')
def test_start_unit(MockAppContext, app_context_with_fakes):
    MockAppContext.return_value = app_context_with_fakes

    result = runner.invoke(app, ["start", "nginx"])

    assert result.exit_code == 0
    assert app_context_with_fakes.service_manager.systemd_client.actions == [(SubStep.START, "nginx")]
    assert history_lines(app_context_with_fakes)[0].endswith(" | start | nginx | SUCCESS")


@patch('tickle_cli.main.AppContext')
def test_stop_unit_failure(MockAppContext, app_context_with_fakes):
    MockAppContext.return_value = app_context_with_fakes
    app_context_with_fakes.service_manager.systemd_client.failing_steps[SubStep.STOP] = "Access denied"

    result = runner.invoke(app, ["stop", "nginx"])

    assert result.exit_code == 1
    assert history_lines(app_context_with_fakes)[0].endswith(" | stop | nginx | FAILED")


def test_start_compose_runs_up(app_context_with_fakes, compose_dir):
    outcome = start_services_logic(app_context_with_fakes, cwd=compose_dir)

    assert outcome.succeeded is True
    assert [step for step, _ in app_context_with_fakes.service_manager.compose_client.actions] == [SubStep.UP]
    assert history_lines(app_context_with_fakes)[0].endswith(" | start | compose:docker-compose.yml | SUCCESS")


def test_stop_compose_runs_down(app_context_with_fakes, compose_dir):
    outcome = stop_services_logic(app_context_with_fakes, cwd=compose_dir)

    assert outcome.succeeded is True
    assert [step for step, _ in app_context_with_fakes.service_manager.compose_client.actions] == [SubStep.DOWN]


# --- History Command ---

def write_entries(history_log, count):
    for index in range(count):
        history_log.append(HistoryEntry(
            timestamp=f"2026-01-01 00:00:{index:02d}",
            command="tickle",
            target_label=f"unit{index}",
            status=HistoryStatus.SUCCESS,
        ))


def test_history_logic_limits_but_counts_all(mock_app_context):
    write_entries(mock_app_context.history, 5)

    shown, total = history_logic(mock_app_context, lines=2)

    assert total == 5
    assert [e.target_label for e in shown] == ["unit3", "unit4"]


@patch('tickle_cli.main.AppContext')
def test_history_command_shows_table(MockAppContext, mock_app_context):
    MockAppContext.return_value = mock_app_context
    write_entries(mock_app_context.history, 3)

    result = runner.invoke(app, ["history"])

    assert result.exit_code == 0
    entries, total, path = mock_app_context.display.history.call_args[0]
    assert len(entries) == 3
    assert total == 3
    assert path == mock_app_context.history.path


@patch('tickle_cli.main.AppContext')
def test_history_command_lines_option(MockAppContext, mock_app_context):
    MockAppContext.return_value = mock_app_context
    write_entries(mock_app_context.history, 3)

    result = runner.invoke(app, ["history", "-n", "1"])

    assert result.exit_code == 0
    entries, total, _ = mock_app_context.display.history.call_args[0]
    assert [e.target_label for e in entries] == ["unit2"]
    assert total == 3


@patch('tickle_cli.main.AppContext')
def test_history_command_without_log(MockAppContext, mock_app_context):
    MockAppContext.return_value = mock_app_context

    result = runner.invoke(app, ["history"])

    assert result.exit_code == 0
    mock_app_context.display.history.assert_not_called()


@patch('tickle_cli.main.AppContext')
def test_history_command_empty_log(MockAppContext, mock_app_context):
    MockAppContext.return_value = mock_app_context
    mock_app_context.history.clear()

    result = runner.invoke(app, ["history"])

    assert result.exit_code == 0
    mock_app_context.display.history.assert_not_called()


@patch('tickle_cli.main.AppContext')
def test_history_clear(MockAppContext, mock_app_context):
    MockAppContext.return_value = mock_app_context
    write_entries(mock_app_context.history, 3)

    result = runner.invoke(app, ["history", "clear"])

    assert result.exit_code == 0
    assert mock_app_context.history.path.read_text() == ""


@patch('tickle_cli.main.AppContext')
def test_history_clear_failure(MockAppContext, mock_app_context):
    MockAppContext.return_value = mock_app_context

    with patch.object(mock_app_context.history, "clear", side_effect=HistoryWriteFailedError("read-only")):
        result = runner.invoke(app, ["history", "clear"])

    assert result.exit_code == 1
    mock_app_context.display.error.assert_called_once_with("read-only")


def test_clear_history_logic_on_missing_log(mock_app_context):
    clear_history_logic(mock_app_context)
    assert mock_app_context.history.read() == []


# --- Logs Command ---

def test_logs_logic_for_unit(app_context_with_fakes):
    lines = list(logs_services_logic(app_context_with_fakes, service="nginx"))
    assert lines == ["line one", "line two"]


@patch('tickle_cli.main.AppContext')
def test_logs_command(MockAppContext, app_context_with_fakes):
    MockAppContext.return_value = app_context_with_fakes

    result = runner.invoke(app, ["logs", "nginx", "--tail", "5"])

    assert result.exit_code == 0
    app_context_with_fakes.display.log_message.assert_has_calls([call("line one"), call("line two")])


@patch('tickle_cli.main.AppContext')
def test_logs_command_without_target(MockAppContext, app_context_with_fakes, tmp_path, monkeypatch):
    MockAppContext.return_value = app_context_with_fakes
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(app, ["logs"])

    assert result.exit_code == 1
    app_context_with_fakes.display.error.assert_called_once()


@patch('tickle_cli.main.AppContext')
def test_logs_command_rejects_zero_tail(MockAppContext, mock_app_context):
    MockAppContext.return_value = mock_app_context

    result = runner.invoke(app, ["logs", "nginx", "--tail", "0"])

    assert result.exit_code == 2


# --- Check Command ---

def test_check_environment_logic(mock_app_context):
    report = CheckReport(checks=[EnvironmentCheck(name="systemctl Available", passed=True)])
    mock_app_context.service_manager.run_environment_checks.return_value = report

    assert check_environment_logic(mock_app_context) is report
    mock_app_context.config.save.assert_not_called()


def test_check_fix_rewrites_corrupted_config(mock_app_context):
    mock_app_context.config.fell_back_to_defaults = True
    mock_app_context.service_manager.run_environment_checks.return_value = CheckReport(checks=[])

    check_environment_logic(mock_app_context, fix=True)

    mock_app_context.config.save.assert_called_once()


def test_check_fix_save_failure_is_reported(mock_app_context):
    mock_app_context.config.fell_back_to_defaults = True
    mock_app_context.config.save.side_effect = PermissionError("read-only")
    mock_app_context.service_manager.run_environment_checks.return_value = CheckReport(checks=[])

    report = check_environment_logic(mock_app_context, fix=True)

    assert report.checks == []


@patch('tickle_cli.main.AppContext')
def test_check_command(MockAppContext, mock_app_context):
    MockAppContext.return_value = mock_app_context
    report = CheckReport(checks=[EnvironmentCheck(name="Docker Daemon Running", passed=False, suggestion="Start Docker")])
    mock_app_context.service_manager.run_environment_checks.return_value = report

    result = runner.invoke(app, ["check"])

    assert result.exit_code == 0
    mock_app_context.display.check_report.assert_called_once_with(report)


@patch('tickle_cli.main.AppContext')
def test_start_with_newline_in_name_records_one_line(MockAppContext, app_context_with_fakes):
    MockAppContext.return_value = app_context_with_fakes
    app_context_with_fakes.service_manager.systemd_client.failing_steps[SubStep.START] = "Invalid unit name"

    result = runner.invoke(app, ["start", "a\nb"])

    assert result.exit_code == 1
    lines = history_lines(app_context_with_fakes)
    assert len(lines) == 1
    assert lines[0].endswith(" | start | a\\nb | FAILED")


def test_history_logic_reads_log_once(mock_app_context):
    write_entries(mock_app_context.history, 4)

    with patch.object(mock_app_context.history, "read", wraps=mock_app_context.history.read) as mock_read:
        shown, total = history_logic(mock_app_context, lines=3)

    mock_read.assert_called_once_with()
    assert [e.target_label for e in shown] == ["unit1", "unit2", "unit3"]
    assert total == 4


def test_history_logic_zero_lines(mock_app_context):
    write_entries(mock_app_context.history, 2)

    shown, total = history_logic(mock_app_context, lines=0)

    assert shown == []
    assert total == 2
