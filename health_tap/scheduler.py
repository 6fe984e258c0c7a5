from __future__ import annotations

import logging

from health_tap.config import PublishConfig


class PollScheduler:
    """Chooses the poll period from the charger state.

    While a charger is online the fast interval is used; otherwise the slow
    one, unless the slow interval is disabled with -1.
    """

    def __init__(self, config: PublishConfig) -> None:
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)
        self._interval_s = max(1, config.interval_fast_s)

    @property
    def interval_s(self) -> int:
        return self._interval_s

    def adjust(self, charger_online: bool) -> None:
        interval = self.config.interval_fast_s
        if not charger_online and self.config.interval_slow_s != -1:
            interval = self.config.interval_slow_s
        interval = max(1, interval)
        if interval != self._interval_s:
            self.logger.info(
                "Charger %s, poll interval %ss -> %ss.",
                "online" if charger_online else "offline",
                self._interval_s,
                interval,
            )
        self._interval_s = interval
