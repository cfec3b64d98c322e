import logging
import threading
from typing import List


class ProgressListener:
    """Observateur de l'avancement d'une opération par lots"""

    def on_start(self, name: str) -> None:
        pass

    def on_progress(self, percent: float) -> None:
        pass

    def on_end(self) -> None:
        pass


class LoggingProgressListener(ProgressListener):
    """Relaie les événements d'avancement vers un logger"""

    def __init__(self, logger: logging.Logger = None, level: int = logging.INFO):
        self.logger = logger or logging.getLogger(__name__)
        self.level = level

    def on_start(self, name: str) -> None:
        self.logger.log(self.level, "%s...", name)

    def on_progress(self, percent: float) -> None:
        self.logger.log(self.level, "%.0f%%", percent)

    def on_end(self) -> None:
        self.logger.log(self.level, "Terminé")


class ProgressNotifier:
    """
    Registre synchronisé d'observateurs

    Les observateurs peuvent être ajoutés ou retirés à tout moment, y compris
    pendant une notification : chaque notification itère sur une copie.
    """

    def __init__(self):
        self._listeners: List[ProgressListener] = []
        self._lock = threading.Lock()

    def add(self, listener: ProgressListener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove(self, listener: ProgressListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _snapshot(self) -> List[ProgressListener]:
        with self._lock:
            return list(self._listeners)

    def start(self, name: str) -> None:
        for listener in self._snapshot():
            listener.on_start(name)

    def update(self, percent: float) -> None:
        for listener in self._snapshot():
            listener.on_progress(percent)

    def end(self) -> None:
        for listener in self._snapshot():
            listener.on_end()
