"""Progress indicators fed by long-running loops."""

from __future__ import annotations

from typing import Protocol

from tqdm import tqdm


class ProgressIndicator(Protocol):
    """Receives ``tick`` calls; owns all the console output."""

    def tick(self, amount: int = 1) -> None:
        ...

    def close(self) -> None:
        ...


class ProgressBar:
    """``tqdm`` backed indicator over ``total`` ticks."""

    def __init__(self, total: int, description: str = "Training", leave: bool = False) -> None:
        self.total = total
        self.count = 0
        self._bar = tqdm(total=total, desc=description, leave=leave)

    def tick(self, amount: int = 1) -> None:
        self.count += amount
        self._bar.update(amount)

    def close(self) -> None:
        self._bar.close()


class NullProgress:
    """Silent indicator; only counts."""

    def __init__(self) -> None:
        self.count = 0

    def tick(self, amount: int = 1) -> None:
        self.count += amount

    def close(self) -> None:
        pass


__all__ = ["ProgressIndicator", "ProgressBar", "NullProgress"]
