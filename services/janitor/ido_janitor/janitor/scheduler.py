import enum
import logging
import signal
import threading
from typing import Callable, Dict, Optional

from ..dto import RoundResult, ScheduleConfig

logger = logging.getLogger("janitor.scheduler")

STOP_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class SchedulerState(str, enum.Enum):
    idle = "idle"
    running_round = "running_round"
    stopped = "stopped"


class AdaptiveScheduler:
    """
    Runs cleanup rounds one after another and adapts the pause between them.

    A round that saturates the per-call limit on any table switches to the
    fast interval until a round comes back with nothing left over. The timer
    and the shutdown request share one ``threading.Event``: waiting on it with
    a timeout either times out (run the next round) or returns because a
    signal handler set it (stop). A round that has started always finishes.
    """

    def __init__(
        self,
        run_round: Callable[[], RoundResult],
        schedule: ScheduleConfig,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.run_round = run_round
        self.schedule = schedule
        self.stop_event = stop_event or threading.Event()
        self.state = SchedulerState.idle
        self.current_interval = schedule.normal_interval
        self.rounds = 0
        self.stop_signal: Optional[int] = None
        self._previous_handlers: Dict[int, object] = {}

    def next_interval(self, busy: bool) -> float:
        return self.schedule.fast_interval if busy else self.schedule.normal_interval

    def install_signal_handlers(self) -> None:
        for signum in STOP_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self._on_signal)

    def restore_signal_handlers(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()

    def stop(self) -> None:
        self.stop_event.set()

    def run(self) -> None:
        self.current_interval = self.next_interval(self._cleanup())
        if self.current_interval == self.schedule.fast_interval:
            logger.debug("Updating interval", extra={"extra_payload": {"interval": self.current_interval}})

        if self.schedule.once:
            logger.info("Stopping after one cleanup")
            self.state = SchedulerState.stopped
            return

        while not self.stop_event.wait(self.current_interval):
            interval = self.next_interval(self._cleanup())
            if interval != self.current_interval:
                logger.debug("Updating interval", extra={"extra_payload": {"interval": interval}})
                self.current_interval = interval

        self.state = SchedulerState.stopped
        logger.info("Stopping ido-cleanup")

    def _cleanup(self) -> bool:
        self.state = SchedulerState.running_round
        self.rounds += 1
        try:
            return self.run_round().busy
        except Exception:
            logger.exception("Cleanup round failed", extra={"extra_payload": {"round": self.rounds}})
            return False
        finally:
            self.state = SchedulerState.idle

    def _on_signal(self, signum, _frame) -> None:
        # Runs on the main thread, possibly while it holds the event's internal
        # lock inside wait(); the event is set from a helper thread instead.
        self.stop_signal = signum
        logger.info("Received signal", extra={"extra_payload": {"signal": signal.Signals(signum).name}})
        threading.Thread(target=self.stop_event.set, name="janitor-stop", daemon=True).start()
