"""
Debounce del salvataggio completo.

Un solo timer in attesa e un solo stato in coda: ogni schedule() sostituisce
lo stato precedente e riparte da zero. flush() esegue subito il salvataggio
in coda (i test lo usano al posto dei timer reali).

Un solo callback alla volta: un flush() che arriva mentre un salvataggio è
in corso attende la fine e poi scrive lo stato più recente.
"""

import logging
import threading
from typing import Any, Callable, Optional

from config import SAVE_DEBOUNCE_SECONDS

logger = logging.getLogger(__name__)


class SaveScheduler:
    """Debounce con un solo timer e un solo stato in coda."""

    def __init__(
        self,
        callback: Callable[[Any], Any],
        delay: float = SAVE_DEBOUNCE_SECONDS,
        timer_factory=threading.Timer,
    ):
        self._callback = callback
        self._delay = delay
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        # serializza i callback (timer e flush espliciti)
        self._running = threading.Lock()
        self._pending: Optional[Any] = None
        self._has_pending = False
        self._timer = None
        self._generation = 0

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return self._has_pending

    def schedule(self, state) -> None:
        """Mette in coda lo stato; un eventuale timer precedente viene annullato."""
        with self._lock:
            self._cancel_timer()
            self._generation += 1
            generation = self._generation
            self._pending = state
            self._has_pending = True
            self._timer = self._timer_factory(self._delay, self._fire, args=(generation,))
            self._timer.daemon = True
            self._timer.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            # timer superato da uno schedule() successivo
            if generation != self._generation or not self._has_pending:
                return
        self.flush()

    def flush(self):
        """Esegue subito il salvataggio in coda. Senza coda restituisce None."""
        with self._running:
            with self._lock:
                if not self._has_pending:
                    return None
                self._cancel_timer()
                self._generation += 1
                state = self._pending
                self._pending = None
                self._has_pending = False
            return self._callback(state)

    def cancel_pending(self) -> bool:
        """Scarta il salvataggio in coda (non quelli già partiti)."""
        with self._lock:
            had_pending = self._has_pending
            self._cancel_timer()
            self._generation += 1
            self._pending = None
            self._has_pending = False
        if had_pending:
            logger.debug("Salvataggio in coda annullato")
        return had_pending

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
