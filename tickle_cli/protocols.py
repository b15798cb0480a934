"""
Capability interfaces for the service manager and compose tool.

The executor and classifier only talk to these; SystemdClient and
ComposeClient are the production implementations, and tests substitute
scripted fakes.
"""

from pathlib import Path
from typing import Protocol

from .schemas import ActionResult, ServiceState, SubStep, UnitProperties


class ServiceBackend(Protocol):
    def query(self, unit: str) -> tuple[ServiceState, UnitProperties]:
        """Returns the unit's state and structural properties, raising if unknown."""
        ...

    def get_state(self, unit: str) -> ServiceState:
        ...

    def run_action(self, step: SubStep, unit: str) -> ActionResult:
        ...


class ComposeBackend(Protocol):
    def run_action(self, step: SubStep, compose_file: Path) -> ActionResult:
        ...
