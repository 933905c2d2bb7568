"""
Progress observers.

Observers are purely informational. The engine calls them for every entity
type it starts and finishes and for every record inserted; an observer that
raises is logged and otherwise ignored.
"""

import sys
from typing import TextIO


class ProgressObserver:
    """Base observer: every hook is a no-op."""

    def on_type_start(self, entity: str, count: int) -> None:
        pass

    def on_tick(self) -> None:
        pass

    def on_type_finish(self) -> None:
        pass


class NullProgress(ProgressObserver):
    """Observer that reports nothing."""

    pass


class ConsoleProgress(ProgressObserver):
    """
    Print a header and a simple progress bar per entity type.

    Output:
        Populating shop.User :
         3/3 [############################]
    """

    def __init__(self, stream: TextIO | None = None, width: int = 28):
        self.stream = stream or sys.stdout
        self.width = width
        self._total = 0
        self._done = 0

    def on_type_start(self, entity: str, count: int) -> None:
        self._total = count
        self._done = 0
        print(f"Populating {entity} :", file=self.stream)
        self._draw()

    def on_tick(self) -> None:
        self._done += 1
        self._draw()

    def on_type_finish(self) -> None:
        print(" ", file=self.stream)

    def _draw(self) -> None:
        filled = self.width if not self._total else int(self.width * self._done / self._total)
        bar = "#" * filled + "-" * (self.width - filled)
        digits = len(str(self._total))
        self.stream.write(f"\r {self._done:{digits}d}/{self._total} [{bar}]")
        self.stream.flush()


class RecordingProgress(ProgressObserver):
    """Collect every notification; handy for assertions."""

    def __init__(self) -> None:
        self.events: list[tuple] = []

    def on_type_start(self, entity: str, count: int) -> None:
        self.events.append(("start", entity, count))

    def on_tick(self) -> None:
        self.events.append(("tick",))

    def on_type_finish(self) -> None:
        self.events.append(("finish",))
