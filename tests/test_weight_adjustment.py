import numpy as np
import pytest

from config.errors import InsufficientData
from config.settings import ReinforcementConfig
from steps.weight_adjustment import (
    NUM_ACTIONS,
    STATE_SIZE,
    WeightAdjustmentEstimator,
    decode_action,
)


def _agent(**overrides):
    values = {"seed": 3, "batch_size": 2}
    values.update(overrides)
    return WeightAdjustmentEstimator(ReinforcementConfig(**values))


def test_decode_action_moves_one_weight():
    weights = np.full(4, 0.25)
    up = decode_action(1, weights)
    down = decode_action(5, weights)
    assert up.sum() == pytest.approx(1.0)
    assert up[1] > 0.25 and down[1] < 0.25
    assert np.allclose(decode_action(0, np.array([1.0, 0.0, 0.0, 0.0])), [1.0, 0.0, 0.0, 0.0])


def test_state_encoding(history, upstream_outputs):
    state = _agent().encode_state(history, upstream_outputs)
    assert state.shape == (STATE_SIZE,)
    assert np.all((state >= 0) & (state <= 1))


def test_prediction_keeps_weights_normalized(history, upstream_outputs):
    agent = _agent()
    for _ in range(5):
        output = agent.predict(history, upstream_outputs)
        assert sum(output.auxiliary["model_weights"].values()) == pytest.approx(1.0)
    assert output.name == "reinforcement"
    assert len(set(output.numbers)) == 5
    assert len(output.auxiliary["q_values"]) == NUM_ACTIONS
    assert sum(output.auxiliary["action_probabilities"]) == pytest.approx(1.0)
    assert 0 <= output.confidence <= 100


def test_missing_upstream_estimators_are_masked(history, upstream_outputs):
    agent = _agent()
    only = {"lstm": upstream_outputs["lstm"]}
    output = agent.predict(history, only)
    assert output.numbers == [10, 20, 30, 40, 50]
    with pytest.raises(InsufficientData):
        agent.predict(history, {})


def test_feedback_before_prediction_is_ignored():
    assert _agent().update_with_feedback([1, 2, 3, 4, 5], [1, 2, 3, 4, 5]) is None


@pytest.mark.parametrize("reward_function,expected", [
    ("accuracy", 0.6),
    ("profit", 0.05),
    ("hybrid", 0.4 * 0.6 + 0.4 * 0.05 + 0.2 * 0.8),
])
def test_reward_functions(reward_function, expected):
    agent = _agent(reward_function=reward_function)
    assert agent.calculate_reward([1, 2, 3, 4, 5], [1, 2, 3, 40, 50], feedback=8) == pytest.approx(expected)


def test_consistency_bonus_after_five_rewards():
    agent = _agent(reward_function="accuracy")
    agent.reward_history = [0.2] * 6
    assert agent.calculate_reward([1, 2, 3, 4, 5], [1, 60, 70, 80, 90]) == pytest.approx(0.2 + 0.1)


def test_feedback_updates_buffer_and_exploration(history, upstream_outputs):
    agent = _agent(memory_size=3, target_update_freq=2)
    output = agent.predict(history, upstream_outputs)
    for _ in range(5):
        reward = agent.update_with_feedback(output.numbers, [1, 2, 3, 4, 5])
        assert reward is not None
    assert len(agent.memory) == 3
    assert agent.episode_count == 5
    assert agent.exploration_rate == pytest.approx(0.1 * 0.995 ** 5)
    metrics = agent.get_performance_metrics()
    assert metrics["replay_buffer_size"] == 3
    assert metrics["total_reward"] == pytest.approx(sum(agent.reward_history))


def test_exploration_never_drops_below_floor(history, upstream_outputs):
    agent = _agent(exploration_decay=0.1, min_exploration_rate=0.05)
    output = agent.predict(history, upstream_outputs)
    for _ in range(4):
        agent.update_with_feedback(output.numbers, [1, 2, 3, 4, 5])
    assert agent.exploration_rate == pytest.approx(0.05)


def test_snapshot_round_trip(history, upstream_outputs):
    agent = _agent()
    output = agent.predict(history, upstream_outputs)
    for _ in range(3):
        agent.update_with_feedback(output.numbers, [1, 3, 5, 7, 9], feedback=5)

    restored = _agent()
    restored.from_dict(agent.to_dict())
    assert np.allclose(restored.weights, agent.weights)
    assert np.allclose(restored.theta, agent.theta)
    assert len(restored.memory) == len(agent.memory)
    assert restored.exploration_rate == agent.exploration_rate


def test_reconfigure_resizes_memory(history, upstream_outputs):
    agent = _agent()
    output = agent.predict(history, upstream_outputs)
    for _ in range(4):
        agent.update_with_feedback(output.numbers, [1, 2, 3, 4, 5])
    agent.reconfigure(ReinforcementConfig(memory_size=2, seed=3, batch_size=2))
    assert len(agent.memory) == 2
    assert agent.memory.maxlen == 2


def test_replay_buffer_drops_oldest_transition_first(history, upstream_outputs):
    agent = _agent(memory_size=3, reward_function="accuracy", batch_size=10)
    agent.predict(history, upstream_outputs)
    fillers = [60, 70, 80, 90, 85]
    for matches in range(4):
        actual = list(range(1, matches + 1)) + fillers[:5 - matches]
        agent.update_with_feedback([1, 2, 3, 4, 5], actual)

    rewards = [reward for _, _, reward, _ in agent.memory]
    assert rewards == pytest.approx([0.2, 0.4, 0.6])
    assert agent.memory.maxlen == 3
