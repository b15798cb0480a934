import pytest
from pathlib import Path
from unittest.mock import MagicMock

from tickle_cli.context import AppContext
from tickle_cli.errors import UnitNotFoundError
from tickle_cli.executor import OperationExecutor
from tickle_cli.history import HistoryLog
from tickle_cli.service_manager import ServiceManager
from tickle_cli.schemas import (
    ActionResult,
    AppConfig,
    ServiceState,
    ServiceType,
    SubStep,
    UnitProperties,
)


class FakeServiceBackend:
    """Scripted stand-in for SystemdClient."""

    def __init__(self, units=None, states=None, failing_steps=None):
        # unit name -> UnitProperties
        self.units = units or {}
        # unit name -> list of states returned by successive get_state calls
        self.states = {name: list(values) for name, values in (states or {}).items()}
        self.failing_steps = failing_steps or {}
        self.actions = []
        self.log_lines = ["line one", "line two"]

    def check_available(self):
        pass

    def stream_logs(self, unit, follow=False, tail=None):
        yield from self.log_lines

    def _require(self, unit: str):
        if unit not in self.units:
            raise UnitNotFoundError(f"Service {unit} not found")

    def query(self, unit):
        self._require(unit)
        return self.get_state(unit), self.units[unit]

    def get_state(self, unit):
        self._require(unit)
        sequence = self.states.get(unit)
        if not sequence:
            return ServiceState.UNKNOWN
        if len(sequence) > 1:
            return sequence.pop(0)
        return sequence[0]

    def run_action(self, step: SubStep, unit):
        self.actions.append((step, unit))
        if step in self.failing_steps:
            return ActionResult(success=False, message=self.failing_steps[step])
        return ActionResult(success=True)


class FakeComposeBackend:
    """Scripted stand-in for ComposeClient."""

    def __init__(self, failing_steps=None):
        self.failing_steps = failing_steps or {}
        self.actions = []

    def run_action(self, step: SubStep, compose_file: Path):
        self.actions.append((step, compose_file))
        if step in self.failing_steps:
            return ActionResult(success=False, message=self.failing_steps[step])
        return ActionResult(success=True)


@pytest.fixture
def simple_unit():
    return UnitProperties(service_type=ServiceType.SIMPLE, raw_type="simple", remain_after_exit=False, can_restart=True)


@pytest.fixture
def fake_service_backend(simple_unit):
    return FakeServiceBackend(
        units={"nginx": simple_unit},
        states={"nginx": [ServiceState.ACTIVE]},
    )


@pytest.fixture
def fake_compose_backend():
    return FakeComposeBackend()


@pytest.fixture
def history_log(tmp_path: Path):
    return HistoryLog(tmp_path / "tickle" / "history.log")


@pytest.fixture
def mock_app_context(history_log):
    """Fixture to mock the AppContext; the history log is real and lives in tmp_path."""
    mock_context = MagicMock()
    mock_context.service_manager = MagicMock()
    mock_context.display = MagicMock()
    mock_context.config = MagicMock()
    mock_context.config.fell_back_to_defaults = False
    mock_context.history = history_log
    return mock_context


@pytest.fixture
def fake_service_manager(fake_service_backend, fake_compose_backend):
    """A real ServiceManager wired to the scripted fake backends."""
    manager = ServiceManager(AppConfig())
    manager.systemd_client = fake_service_backend
    manager.compose_client = fake_compose_backend
    manager.executor = OperationExecutor(fake_service_backend, fake_compose_backend)
    return manager


@pytest.fixture
def app_context_with_fakes(mock_app_context, fake_service_manager):
    """A mocked AppContext whose service manager and history log are real."""
    mock_app_context.service_manager = fake_service_manager
    mock_app_context.record.side_effect = lambda outcome: AppContext.record(mock_app_context, outcome)
    return mock_app_context
