"""Wall-clock pacing of simulation ticks.

The scheduler only decides *when* the next tick runs.  Ticks are always
processed one after another, to completion, and the loop ends after the
first tick that raises a stop condition.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from gp_manager.game import GameState, TickResult, run_tick

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BASE_INTERVAL_MS: int = 1000  # one simulated day per second at 1x
WARMUP_DAYS: int = 7
RAMP_DAYS: int = 15
MAX_SPEED: float = 3.0


def get_simulation_speed(days_simulated: int) -> float:
    """Speed multiplier after *days_simulated* ticks of this run.

    1x through the warm-up, then a linear ramp capped at :data:`MAX_SPEED`.
    """
    accelerating: int = max(0, days_simulated - WARMUP_DAYS + 1)
    return min(MAX_SPEED, 1.0 + accelerating * (MAX_SPEED - 1.0) / RAMP_DAYS)


def tick_interval_ms(days_simulated: int) -> int:
    return round(BASE_INTERVAL_MS / get_simulation_speed(days_simulated))


class SimulationScheduler:
    """Runs ticks of one game at an accelerating cadence.

    Args:
        game: Game to advance.
        sleep: Called with the wait in seconds between ticks; pass a no-op
            to run headless.
    """

    def __init__(self, game: GameState, sleep: Callable[[float], None] = time.sleep) -> None:
        self.game = game
        self.sleep = sleep
        self.days_simulated: int = 0

    @property
    def speed(self) -> float:
        return get_simulation_speed(self.days_simulated)

    def run(self, max_ticks: int | None = None) -> list[TickResult]:
        """Tick until a stop condition or *max_ticks* ticks.

        Returns:
            Every tick result of this run, the stopping one last.
        """
        results: list[TickResult] = []
        self.days_simulated = 0
        while max_ticks is None or len(results) < max_ticks:
            if results:
                self.sleep(tick_interval_ms(self.days_simulated) / 1000.0)
            result = run_tick(self.game)
            results.append(result)
            if result.blocked is None:
                self.days_simulated += 1
            if result.should_stop:
                logger.info(
                    "simulation stopped on %s: %s", result.date, ", ".join(result.stop_reasons)
                )
                break
        return results
