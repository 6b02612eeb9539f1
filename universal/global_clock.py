# universal/global_clock.py
import datetime
import logging
from typing import Callable, List

logger = logging.getLogger(__name__)


class SimulationClock:
    """Fixed-timestep simulation clock with a start/pause gate.

    Every tick advances simulated time by exactly ``tick_seconds``, whatever
    the wall-clock frame rate is. Wall-clock time fed to ``accumulate`` is
    converted into whole ticks of ``real_time_step`` seconds; the leftover
    fraction is kept for display interpolation.
    """

    def __init__(self, tick_seconds: float = 0.1,
                 real_time_step: float = 0.05) -> None:
        if tick_seconds <= 0.0:
            raise ValueError("tick_seconds must be positive.")
        if real_time_step <= 0.0:
            raise ValueError("real_time_step must be positive.")
        self.tick_seconds = float(tick_seconds)
        self.real_time_step = float(real_time_step)
        self.tick_count = 0
        self.started = False
        self._accumulated = 0.0
        self._listeners: List[Callable[[datetime.timedelta], None]] = []

    # ---- core time control ----
    @property
    def elapsed(self) -> datetime.timedelta:
        """Simulated time since start, tick_seconds * tick_count."""
        return datetime.timedelta(seconds=self.tick_seconds * self.tick_count)

    def tick(self) -> None:
        """Advance simulated time by one tick and notify listeners."""
        self.tick_count += 1
        elapsed = self.elapsed
        for cb in list(self._listeners):
            try:
                cb(elapsed)
            except Exception:
                logger.exception("Clock listener raised an exception")

    def accumulate(self, real_dt: float) -> int:
        """Add wall-clock seconds and return how many ticks are due.

        Args:
            real_dt: Wall-clock seconds since the previous call.

        Returns:
            Number of whole ticks to run now.
        """
        self._accumulated += max(0.0, float(real_dt))
        # tolerance keeps 0.1 // 0.05 from rounding down to a single tick
        due = int((self._accumulated + 1e-9) // self.real_time_step)
        self._accumulated = max(
            0.0, self._accumulated - due * self.real_time_step)
        return due

    @property
    def overstep_fraction(self) -> float:
        """Fraction of a tick accumulated but not yet run, in [0, 1)."""
        return min(self._accumulated / self.real_time_step, 1.0)

    # --------------------------------------------------
    # Gate
    # --------------------------------------------------
    def start(self) -> None:
        if not self.started:
            logger.info("Simulation started at %s", self.elapsed)
        self.started = True

    def pause(self) -> None:
        if self.started:
            logger.info("Simulation paused at %s", self.elapsed)
        self.started = False

    def toggle(self) -> bool:
        """Flip the gate and return the new state."""
        if self.started:
            self.pause()
        else:
            self.start()
        return self.started

    # ---- info ----
    def get_time_string(self) -> str:
        total = self.elapsed.total_seconds()
        hours, rest = divmod(int(total), 3600)
        minutes, seconds = divmod(rest, 60)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"

    def register_listener(
            self, callback: Callable[[datetime.timedelta], None]) -> None:
        """Receive the elapsed time after every tick."""
        if callback not in self._listeners:
            self._listeners.append(callback)

    def __repr__(self):
        return self.get_time_string()
