"""
Discrete-event host for the map engine, backed by simpy.

    host = SimpyHost()
    engine.install(gnbs, ue, schedule=host.schedule)
    host.run()

Exceptions raised by a scheduled callback propagate out of run().
"""

import logging
from typing import Any, Callable, Optional

import simpy

logger = logging.getLogger(__name__)


class SimpyHost:
    """One-shot deferred calls on a simpy environment."""

    def __init__(self, env: Optional[simpy.Environment] = None):
        self.env = env if env is not None else simpy.Environment()

    @property
    def now(self) -> float:
        return self.env.now

    def schedule(self, delay_s: float, callback: Callable[[], Any]) -> simpy.Process:
        """Run callback once, delay_s simulated seconds from now."""
        if delay_s < 0:
            raise ValueError(f"delay must be non-negative, got {delay_s}")
        logger.debug(f"Scheduling {getattr(callback, '__name__', callback)} at t={self.now + delay_s}")
        return self.env.process(self._deferred(delay_s, callback))

    def _deferred(self, delay_s: float, callback: Callable[[], Any]):
        yield self.env.timeout(delay_s)
        return callback()

    def run(self, until: Optional[float] = None) -> None:
        self.env.run(until=until)
