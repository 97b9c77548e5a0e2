"""Mini-batch training loop driving the layer engine end to end."""

from __future__ import annotations

import logging
from typing import List, Mapping, Sequence

import numpy as np

from ..core.errors import InvalidConfiguration
from ..core.types import Example, TrainResult
from ..optim.optimizer import ParamsOptimizer
from ..utils.progress import NullProgress, ProgressIndicator
from .evaluation import default_metrics, evaluate
from .losses import REGISTRY as LOSS_REGISTRY
from .losses import Loss
from .network import FeedforwardNetwork

logger = logging.getLogger(__name__)


class Trainer:
    """Run deterministic training loops over a list of examples."""

    def __init__(
        self,
        network: FeedforwardNetwork,
        optimizer: ParamsOptimizer,
        loss: str | Loss = "auto",
        task_type: str = "regression",
        progress: ProgressIndicator | None = None,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        self.network = network
        self.optimizer = optimizer
        self.task_type = task_type
        self.loss_fn = loss if isinstance(loss, Loss) else LOSS_REGISTRY.resolve(loss, task_type=task_type)
        self.progress = progress or NullProgress()
        self.callbacks = list(callbacks or [])

    def run(
        self,
        examples: Sequence[Example],
        epochs: int,
        batch_size: int = 1,
        seed: int = 0,
        shuffle: bool = True,
    ) -> TrainResult:
        if epochs <= 0 or batch_size <= 0:
            raise InvalidConfiguration("epochs and batch_size must be positive")
        if not examples:
            raise InvalidConfiguration("Cannot train on an empty set of examples")

        rng = np.random.default_rng(seed)
        losses: List[float] = []
        steps = 0
        try:
            for epoch in range(1, epochs + 1):
                self.optimizer.new_epoch()
                order = rng.permutation(len(examples)) if shuffle else np.arange(len(examples))
                epoch_losses: List[float] = []
                for start in range(0, len(examples), batch_size):
                    batch = [examples[idx] for idx in order[start : start + batch_size]]
                    epoch_losses.extend(self._train_batch(batch))
                    steps += 1
                    self.progress.tick()
                epoch_loss = float(np.mean(epoch_losses))
                losses.append(epoch_loss)
                logger.info("epoch %d/%d loss=%.6f", epoch, epochs, epoch_loss)
                self._emit_epoch(epoch, {"loss": epoch_loss})
        finally:
            self.progress.close()
        return TrainResult(epochs=len(losses), steps=steps, losses=losses)

    def evaluate(
        self,
        examples: Sequence[Example],
        metric_names: Sequence[str] | None = None,
    ) -> Mapping[str, float]:
        """Mean loss plus the task metrics over ``examples`` (no training)."""

        outputs = []
        loss_values = []
        for example in examples:
            output = self.network.forward(example.inputs)
            loss_value, _ = self.loss_fn(output, example.targets)
            outputs.append(output)
            loss_values.append(loss_value)
        names = list(metric_names) if metric_names is not None else default_metrics(self.task_type)
        results = {"loss": float(np.mean(loss_values))}
        results.update(
            evaluate(names, outputs, [example.targets for example in examples], task_type=self.task_type)
        )
        return results

    # ------------------------------------------------------------------
    # Internal helpers

    def _train_batch(self, batch: Sequence[Example]) -> List[float]:
        self.optimizer.new_batch()
        batch_losses = []
        for example in batch:
            self.optimizer.new_example()
            output = self.network.forward(example.inputs)
            loss_value, delta = self.loss_fn(output, example.targets)
            self.network.backward(delta)
            batch_losses.append(loss_value)
        self.optimizer.update()
        return batch_losses

    def _emit_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)


__all__ = ["Trainer"]
