import json

import pytest
import yaml

from simplenn.config import (
    ExperimentConfig,
    build_decay_method,
    build_trainer,
    build_update_method,
    config_hash,
    load_config,
)
from simplenn.core.errors import InvalidConfiguration
from simplenn.core.ndarray import NDArray
from simplenn.core.types import Example
from simplenn.optim.decay import ExponentialDecay, HyperbolicDecay, NoDecay
from simplenn.optim.update_methods import ADAMMethod, LearningRateMethod, MomentumMethod

RAW = {
    "network": {"layer_sizes": [2, 3, 1], "activation": "tanh", "seed": 4},
    "optimizer": {
        "method": "sgd",
        "learning_rate": 0.05,
        "decay_method": {"name": "hyperbolic", "decay": 0.1},
    },
    "train": {"epochs": 2, "batch_size": 2, "loss": "mse"},
}


def test_load_yaml_and_json_agree(tmp_path):
    yaml_path = tmp_path / "experiment.yaml"
    yaml_path.write_text(yaml.safe_dump(RAW))
    json_path = tmp_path / "experiment.json"
    json_path.write_text(json.dumps(RAW))
    from_yaml = load_config(yaml_path)
    from_json = load_config(json_path)
    assert from_yaml == from_json
    assert from_yaml.network.layer_sizes == [2, 3, 1]
    assert from_yaml.train.epochs == 2
    assert from_yaml.run_id == from_json.run_id


def test_unknown_keys_rejected():
    with pytest.raises(InvalidConfiguration):
        ExperimentConfig.from_mapping({"network": {"layer_sizes": [1, 1], "depth": 3}})
    with pytest.raises(InvalidConfiguration):
        ExperimentConfig.from_mapping({"optimizer": {}})
    with pytest.raises(InvalidConfiguration):
        ExperimentConfig.from_mapping({"network": {}})


def test_update_method_factory():
    config = ExperimentConfig.from_mapping(RAW)
    method = build_update_method(config.optimizer)
    assert isinstance(method, LearningRateMethod)
    assert isinstance(method.decay_method, HyperbolicDecay)
    assert method.decay_method.initial_learning_rate == 0.05

    momentum = ExperimentConfig.from_mapping(
        {"network": RAW["network"], "optimizer": {"method": "momentum", "l2": 0.01}}
    )
    built = build_update_method(momentum.optimizer)
    assert isinstance(built, MomentumMethod)
    assert built.regularization is not None

    adam = ExperimentConfig.from_mapping({"network": RAW["network"], "optimizer": {"method": "adam"}})
    assert isinstance(build_update_method(adam.optimizer), ADAMMethod)

    unknown = ExperimentConfig.from_mapping({"network": RAW["network"], "optimizer": {"method": "lbfgs"}})
    with pytest.raises(InvalidConfiguration):
        build_update_method(unknown.optimizer)


def test_decay_factory():
    assert isinstance(build_decay_method(None, 0.1), NoDecay)
    exponential = build_decay_method(
        {"name": "exponential", "final_learning_rate": 0.001, "total_iterations": 10}, 0.1
    )
    assert isinstance(exponential, ExponentialDecay)
    with pytest.raises(InvalidConfiguration):
        build_decay_method({"name": "cosine"}, 0.1)
    with pytest.raises(InvalidConfiguration):
        build_decay_method({"name": "step", "rate": 2}, 0.1)


def test_build_trainer_runs():
    trainer = build_trainer(ExperimentConfig.from_mapping(RAW))
    examples = [
        Example(NDArray([0.0, 1.0]), NDArray([1.0])),
        Example(NDArray([1.0, 0.0]), NDArray([0.0])),
    ]
    result = trainer.run(examples, epochs=2, batch_size=2)
    assert len(result.losses) == 2


def test_config_hash_is_stable():
    assert config_hash({"a": 1, "b": [1, 2]}) == config_hash({"b": [1, 2], "a": 1})
    assert len(config_hash({"a": 1})) == 12
