"""Sliding-window framing of a sequence around a moving focus element."""

from __future__ import annotations

from typing import List, Optional, Sequence

from ..core.errors import IndexOutOfRange, InvalidConfiguration
from ..core.ndarray import NDArray


class SlidingWindowSequence:
    """A sequence of vectors with a focus index and fixed-size contexts.

    The focus starts at ``-1`` (before the first element); :meth:`shift`
    moves it forward one element at a time. Context indices that fall
    outside the sequence are ``None``.
    """

    def __init__(
        self,
        elements: Sequence[NDArray],
        left_context_size: int = 3,
        right_context_size: int = 3,
    ) -> None:
        if left_context_size < 0 or right_context_size < 0:
            raise InvalidConfiguration("context sizes must be non-negative")
        self.elements = list(elements)
        self.left_context_size = left_context_size
        self.right_context_size = right_context_size
        self.focus_index = -1

    def __len__(self) -> int:
        return len(self.elements)

    def __getitem__(self, index: int) -> NDArray:
        return self.elements[index]

    def set_focus(self, index: int) -> None:
        if not -1 <= index < len(self.elements):
            raise IndexOutOfRange(f"Focus index {index} out of range [-1, {len(self.elements) - 1}]")
        self.focus_index = index

    @property
    def focus_element(self) -> NDArray:
        if self.focus_index < 0:
            raise IndexOutOfRange("The focus is not set on any element")
        return self.elements[self.focus_index]

    def has_next(self) -> bool:
        return self.focus_index + 1 < len(self.elements)

    def shift(self) -> None:
        if not self.has_next():
            raise IndexOutOfRange(
                f"The focus element [{self.focus_index}] is the last element of the sequence."
            )
        self.focus_index += 1

    def left_context(self) -> List[Optional[int]]:
        indices = []
        for offset in range(self.left_context_size, 0, -1):
            k = self.focus_index - offset
            indices.append(k if k >= 0 else None)
        return indices

    def right_context(self) -> List[Optional[int]]:
        indices = []
        for offset in range(1, self.right_context_size + 1):
            k = self.focus_index + offset
            indices.append(k if k < len(self.elements) else None)
        return indices

    def context(self) -> List[Optional[int]]:
        """Left context, focus and right context indices."""

        return self.left_context() + [self.focus_index] + self.right_context()

    def context_features(self) -> NDArray:
        """Concatenation of the context elements, zeros where the index is ``None``."""

        size = self.focus_element.rows
        return NDArray.concat_v(
            [self.elements[k] if k is not None else NDArray.zeros(size) for k in self.context()]
        )

    def context_to_string(self) -> str:
        def join(indices: List[Optional[int]]) -> str:
            return ", ".join("null" if k is None else str(k) for k in indices)

        return f"[{join(self.left_context())}] {self.focus_index} [{join(self.right_context())}]"


__all__ = ["SlidingWindowSequence"]
