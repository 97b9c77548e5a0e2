"""Glue between accumulated parameter gradients and an update method."""

from __future__ import annotations

import logging
from typing import Iterable, List, Union

from ..core.arrays import ParamsArray
from ..layers.parameters import GatedRecurrentParams, LayerParameters
from .update_methods import UpdateMethod

logger = logging.getLogger(__name__)

ParamsLike = Union[LayerParameters, GatedRecurrentParams, ParamsArray]


def _flatten(params: Iterable[ParamsLike]) -> List[ParamsArray]:
    arrays: List[ParamsArray] = []
    seen = set()
    for item in params:
        for array in [item] if isinstance(item, ParamsArray) else list(item):
            # Tied parameters are updated once.
            if id(array) not in seen:
                seen.add(id(array))
                arrays.append(array)
    return arrays


class ParamsOptimizer:
    """Counts examples, averages their gradients and applies ``update_method``."""

    def __init__(
        self,
        params: Iterable[ParamsLike],
        update_method: UpdateMethod,
        average_errors: bool = True,
    ) -> None:
        self.arrays = _flatten(params)
        self.update_method = update_method
        self.average_errors = average_errors
        self.example_count = 0

    def new_epoch(self) -> None:
        self.update_method.new_epoch()

    def new_batch(self) -> None:
        self.update_method.new_batch()

    def new_example(self) -> None:
        self.example_count += 1
        self.update_method.new_example()

    def update(self) -> None:
        if self.average_errors and self.example_count > 1:
            factor = 1.0 / self.example_count
            for array in self.arrays:
                array.scale_errors(factor)
        logger.debug("Optimizer step over %d examples", self.example_count)
        self.update_method.update(self.arrays)
        self.example_count = 0

    def reset_errors(self) -> None:
        for array in self.arrays:
            array.reset_errors()
        self.example_count = 0


__all__ = ["ParamsOptimizer"]
