"""
Control de ritmo de requests salientes.

- RequestBudget: tope de requests por corrida (QuotaExceeded al excederlo)
- pace: pausa fija + jitter entre páginas
"""

from __future__ import annotations

import random
import time
from typing import Callable

from intake_bridge.shared.exceptions.sync import QuotaExceeded

Sleeper = Callable[[float], None]


class RequestBudget:
    """
    Contador de requests de una corrida.

    Se consume un slot antes de cada página; los reintentos internos no cuentan.
    """

    def __init__(self, max_requests: int) -> None:
        if max_requests <= 0:
            raise ValueError("max_requests debe ser > 0")
        self._max = max_requests
        self._used = 0

    @property
    def max_requests(self) -> int:
        return self._max

    @property
    def used(self) -> int:
        return self._used

    @property
    def remaining(self) -> int:
        return max(0, self._max - self._used)

    def consume(self) -> None:
        """
        Raises:
            QuotaExceeded: si ya se usaron todos los slots
        """
        if self._used >= self._max:
            raise QuotaExceeded(self._max)
        self._used += 1


def pace(delay_s: float, jitter_s: float, sleep: Sleeper = time.sleep) -> float:
    """
    Duerme `delay_s + U(0, jitter_s)` segundos.

    Returns:
        float: Segundos efectivamente pedidos al sleeper
    """
    wait_s = max(0.0, delay_s) + (random.uniform(0, jitter_s) if jitter_s > 0 else 0.0)
    if wait_s > 0:
        sleep(wait_s)
    return wait_s
