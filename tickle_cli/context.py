import sys
import logging
from .config import Config
from .display import Display
from .errors import HistoryWriteFailedError
from .history import HistoryLog, entry_for_outcome
from .schemas import OperationOutcome
from .service_manager import ServiceManager

log = logging.getLogger(__name__)


class AppContext:
    """A central container for the application's runtime state."""

    def __init__(self, verbose: bool = False):
        try:
            self.display = Display(verbose=verbose)
            self.config = Config()
            self.history = HistoryLog(self.config.app_config.history_path)
            self.service_manager = ServiceManager(self.config.app_config)
        except Exception as e:
            log.error(f"Failed to initialize application: {e}", exc_info=True)
            sys.exit(1)

    @property
    def verbose(self) -> bool:
        return self.display.verbose

    def record(self, outcome: OperationOutcome) -> bool:
        """
        Appends the outcome to the history log.

        A failed write is only a warning: the operation itself already ran
        and its own result decides the exit code.
        """
        try:
            self.history.append(entry_for_outcome(outcome))
            return True
        except HistoryWriteFailedError as e:
            log.warning(f"Failed to log to history: {e}")
            return False
