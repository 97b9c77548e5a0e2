"""Experiment configuration: dataclasses, file loading and factories."""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml

from .core.errors import InvalidConfiguration
from .core.initializers import get_initializer
from .optim.decay import DecayMethod, ExponentialDecay, HyperbolicDecay, NoDecay, StepDecay
from .optim.optimizer import ParamsOptimizer
from .optim.update_methods import (
    ADAMMethod,
    AdaGradMethod,
    L2Regularization,
    LearningRateMethod,
    MomentumMethod,
    RMSPropMethod,
    UpdateMethod,
)
from .training.network import FeedforwardNetwork
from .training.trainer import Trainer
from .utils.progress import NullProgress, ProgressBar

logger = logging.getLogger(__name__)


def _normalise(value):  # type: ignore[override]
    if isinstance(value, Mapping):
        return {str(k): _normalise(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalise(v) for v in value]
    if isinstance(value, Path):
        return str(value)
    return value


def config_hash(config: Mapping[str, object]) -> str:
    """Return a stable 12-character hash for ``config``."""

    canonical = json.dumps(_normalise(config), sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return digest[:12]


def _section(raw: Mapping[str, Any], cls: type) -> Dict[str, Any]:
    if not isinstance(raw, Mapping):
        raise InvalidConfiguration(f"{cls.__name__} section must be a mapping")
    allowed = set(cls.__dataclass_fields__)
    unknown = set(raw) - allowed
    if unknown:
        raise InvalidConfiguration(
            f"Unknown {cls.__name__} keys: {', '.join(sorted(unknown))}"
        )
    return dict(raw)


@dataclass(frozen=True)
class NetworkConfig:
    layer_sizes: List[int]
    activation: str | None = "tanh"
    output_activation: str | None = None
    initializer: str | None = "glorot"
    seed: int = 0
    sparse_input: bool = False


@dataclass(frozen=True)
class OptimizerConfig:
    method: str = "sgd"
    learning_rate: float = 0.01
    momentum: float = 0.9
    beta1: float = 0.9
    beta2: float = 0.999
    epsilon: float = 1e-8
    decay: float = 0.95
    l2: float = 0.0
    average_errors: bool = True
    decay_method: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class TrainConfig:
    epochs: int = 10
    batch_size: int = 1
    seed: int = 0
    shuffle: bool = True
    loss: str = "auto"
    task_type: str = "regression"
    progress: bool = False


@dataclass(frozen=True)
class ExperimentConfig:
    """Resolved experiment configuration."""

    network: NetworkConfig
    optimizer: OptimizerConfig = field(default_factory=OptimizerConfig)
    train: TrainConfig = field(default_factory=TrainConfig)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "ExperimentConfig":
        if "network" not in raw:
            raise InvalidConfiguration("Config missing required section: network")
        unknown = set(raw) - {"network", "optimizer", "train"}
        if unknown:
            raise InvalidConfiguration(f"Unknown config sections: {', '.join(sorted(unknown))}")
        try:
            return cls(
                network=NetworkConfig(**_section(raw["network"], NetworkConfig)),
                optimizer=OptimizerConfig(**_section(raw.get("optimizer", {}), OptimizerConfig)),
                train=TrainConfig(**_section(raw.get("train", {}), TrainConfig)),
            )
        except TypeError as exc:
            raise InvalidConfiguration(str(exc)) from exc

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def run_id(self) -> str:
        return config_hash(self.to_dict())


def load_config(path: str | Path) -> ExperimentConfig:
    """Read an experiment from YAML (``.yml``/``.yaml``) or JSON."""

    path = Path(path)
    text = path.read_text()
    if path.suffix in {".yml", ".yaml"}:
        raw = yaml.safe_load(text)
    else:
        raw = json.loads(text)
    if not isinstance(raw, Mapping):
        raise InvalidConfiguration(f"Config file {path} must hold a mapping")
    return ExperimentConfig.from_mapping(raw)


def build_network(config: NetworkConfig) -> FeedforwardNetwork:
    return FeedforwardNetwork(
        config.layer_sizes,
        activation=config.activation,
        output_activation=config.output_activation,
        weights_initializer=get_initializer(config.initializer, seed=config.seed),
        sparse_input=config.sparse_input,
    )


def build_decay_method(raw: Mapping[str, Any] | None, learning_rate: float) -> DecayMethod:
    if not raw:
        return NoDecay()
    options = dict(raw)
    name = options.pop("name", "none")
    try:
        if name == "none":
            return NoDecay()
        if name == "hyperbolic":
            options.setdefault("initial_learning_rate", learning_rate)
            return HyperbolicDecay(**options)
        if name == "exponential":
            options.setdefault("initial_learning_rate", learning_rate)
            return ExponentialDecay(**options)
        if name == "step":
            return StepDecay(**options)
    except TypeError as exc:
        raise InvalidConfiguration(f"Invalid options for {name} decay: {exc}") from exc
    raise InvalidConfiguration(f"Unknown decay method: {name}")


def build_update_method(config: OptimizerConfig) -> UpdateMethod:
    regularization = L2Regularization(config.l2) if config.l2 > 0.0 else None
    method = config.method.lower()
    if method == "sgd":
        return LearningRateMethod(
            config.learning_rate,
            decay_method=build_decay_method(config.decay_method, config.learning_rate),
            regularization=regularization,
        )
    if method == "momentum":
        return MomentumMethod(
            config.learning_rate,
            momentum=config.momentum,
            decay_method=build_decay_method(config.decay_method, config.learning_rate),
            regularization=regularization,
        )
    if method == "adagrad":
        return AdaGradMethod(config.learning_rate, epsilon=config.epsilon, regularization=regularization)
    if method == "rmsprop":
        return RMSPropMethod(
            config.learning_rate,
            epsilon=config.epsilon,
            decay=config.decay,
            regularization=regularization,
        )
    if method == "adam":
        return ADAMMethod(
            config.learning_rate,
            beta1=config.beta1,
            beta2=config.beta2,
            epsilon=config.epsilon,
            regularization=regularization,
        )
    raise InvalidConfiguration(f"Unknown update method: {config.method}")


def build_trainer(config: ExperimentConfig, n_batches: int | None = None) -> Trainer:
    """Network, optimizer and trainer for ``config``.

    ``n_batches`` sizes the progress bar when ``train.progress`` is on.
    """

    network = build_network(config.network)
    optimizer = ParamsOptimizer(
        network.parameters(),
        build_update_method(config.optimizer),
        average_errors=config.optimizer.average_errors,
    )
    if config.train.progress:
        progress = ProgressBar(total=(n_batches or 0) * config.train.epochs)
    else:
        progress = NullProgress()
    logger.info("Built experiment %s with layers %s", config.run_id, config.network.layer_sizes)
    return Trainer(
        network,
        optimizer,
        loss=config.train.loss,
        task_type=config.train.task_type,
        progress=progress,
    )


__all__ = [
    "NetworkConfig",
    "OptimizerConfig",
    "TrainConfig",
    "ExperimentConfig",
    "config_hash",
    "load_config",
    "build_network",
    "build_decay_method",
    "build_update_method",
    "build_trainer",
]
