import logging

from typing_extensions import assert_never

from .protocols import ServiceBackend
from .schemas import RestartStrategy, ServiceState, ServiceType, UnitProperties

log = logging.getLogger(__name__)


def choose_strategy(properties: UnitProperties) -> RestartStrategy:
    """
    Picks how a unit should be restarted.

    A oneshot unit without RemainAfterExit is never considered running, so
    `systemctl restart` has nothing to restart; it has to be stopped and
    started. Every other unit is restarted atomically when systemd allows
    both halves of a restart.
    """
    service_type = properties.service_type
    if service_type is ServiceType.ONESHOT:
        if properties.remain_after_exit:
            return RestartStrategy.RESTART
        return RestartStrategy.STOP_START
    if (
        service_type is ServiceType.SIMPLE
        or service_type is ServiceType.FORKING
        or service_type is ServiceType.NOTIFY
        or service_type is ServiceType.OTHER
    ):
        if properties.can_restart:
            return RestartStrategy.RESTART
        return RestartStrategy.STOP_START
    assert_never(service_type)


def classify(backend: ServiceBackend, unit: str) -> tuple[ServiceState, RestartStrategy]:
    """Queries the unit and returns its current state with the strategy to use."""
    state, properties = backend.query(unit)
    strategy = choose_strategy(properties)
    log.debug(
        f"Classified {unit}: type={properties.raw_type} remain_after_exit={properties.remain_after_exit} "
        f"can_restart={properties.can_restart} -> {strategy.value}"
    )
    return state, strategy
