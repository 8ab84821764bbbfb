## Project: Lotto Ensemble Predictor
## Purpose of File: Reinforcement-Learning Weight Adjuster
## Description:
## Keeps one blending weight per upstream estimator (bayesian, xgboost, lstm, monte_carlo),
## starting uniform. Each prediction encodes a state, picks an action epsilon-greedily from
## a linear Q-function and nudges one weight by +/-0.1 before renormalising. Feedback on a
## resolved draw turns into a reward (match accuracy, payout curve, optional user score),
## is stored in a bounded FIFO replay buffer and replayed in random batches (TD targets
## from a target copy refreshed every `target_update_freq` episodes). Exploration decays
## geometrically toward a floor after every feedback.
##
## State layout (59 values, all in [0, 1]):
##   5 recent draws x 5 numbers | 4 estimator picks x 5 numbers | 4 weights |
##   4 performances | 5 feedback | last reward

import logging
import threading
from collections import deque

import numpy as np

from config.errors import InsufficientData, NumericDegeneracy
from config.settings import ReinforcementConfig
from pipeline import (
    NUM_NUMBERS,
    check_cancelled,
    dict_to_probabilities,
    hit_rate_analysis,
    probabilities_to_dict,
    safe_norm,
    top_k_numbers,
)
from records import EstimatorOutput, PICK_SIZE

UPSTREAM = ("bayesian", "xgboost", "lstm", "monte_carlo")
NUM_ESTIMATORS = len(UPSTREAM)
NUM_ACTIONS = 2 * NUM_ESTIMATORS
ADJUSTMENT_SIZE = 0.1
RECENT_DRAWS = 5
FEEDBACK_SLOTS = 5
STATE_SIZE = (
    RECENT_DRAWS * PICK_SIZE      # recent draws
    + NUM_ESTIMATORS * PICK_SIZE  # estimator picks
    + NUM_ESTIMATORS              # weights
    + NUM_ESTIMATORS              # performance
    + FEEDBACK_SLOTS
    + 1                           # last reward
)
PAYOUT = (0, 0, 1, 5, 25, 100)
CONSISTENCY_WINDOW = 5


def _normalize_numbers(numbers):
    return [(n - 1) / (NUM_NUMBERS - 1) for n in numbers]


def _softmax(x):
    e = np.exp(x - np.max(x))
    return e / e.sum()


def decode_action(action, weights):
    """Apply action `action` to `weights`: estimator action % 4, up when (action // 4) is even."""
    idx = action % NUM_ESTIMATORS
    direction = 1.0 if (action // NUM_ESTIMATORS) % 2 == 0 else -1.0
    adjusted = np.array(weights, dtype=float)
    adjusted[idx] = np.clip(adjusted[idx] + direction * ADJUSTMENT_SIZE, 0.0, 1.0)
    return safe_norm(adjusted)


class WeightAdjustmentEstimator:
    name = "reinforcement"

    def __init__(self, config=None, logger=None):
        self.config = config or ReinforcementConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.rng = np.random.default_rng(self.config.seed)
        self._lock = threading.Lock()

        self.weights = np.full(NUM_ESTIMATORS, 1.0 / NUM_ESTIMATORS)
        self.theta = np.zeros((STATE_SIZE, NUM_ACTIONS), dtype=float)
        self.q_bias = np.zeros(NUM_ACTIONS, dtype=float)
        self.value_weights = np.zeros(STATE_SIZE, dtype=float)
        self.target_theta = self.theta.copy()
        self.target_bias = self.q_bias.copy()

        self.exploration_rate = self.config.exploration_rate
        self.memory = deque(maxlen=self.config.memory_size)
        self.reward_history = []
        self.total_reward = 0.0
        self.episode_count = 0
        self.current_state = None
        self.last_action = None

    def reconfigure(self, config):
        """Swap hyperparameters; learned weights and the replay buffer are kept."""
        with self._lock:
            if config.memory_size != self.config.memory_size:
                self.memory = deque(self.memory, maxlen=config.memory_size)
            if config.exploration_rate != self.config.exploration_rate:
                self.exploration_rate = config.exploration_rate
            self.config = config

    # ---------------- State & action ---------------- #

    def encode_state(self, draws, upstream, performance=None, feedback=None):
        recent = [_normalize_numbers(d.main_numbers) for d in draws[-RECENT_DRAWS:]]
        while len(recent) < RECENT_DRAWS:
            recent.insert(0, [0.0] * PICK_SIZE)

        picks = []
        for name in UPSTREAM:
            output = upstream.get(name)
            picks.append(_normalize_numbers(output.numbers) if output else [0.0] * PICK_SIZE)

        performance = performance or {}
        perf = [float(np.clip(performance.get(name, 0.5), 0.0, 1.0)) for name in UPSTREAM]

        fb = list(feedback) if feedback is not None else [0.5] * FEEDBACK_SLOTS
        fb = (fb + [0.5] * FEEDBACK_SLOTS)[:FEEDBACK_SLOTS]
        last_reward = self.reward_history[-1] if self.reward_history else 0.5

        state = np.concatenate([
            np.ravel(recent), np.ravel(picks), self.weights, perf, fb, [last_reward],
        ]).astype(float)
        return np.clip(state, 0.0, 1.0)

    def q_values(self, state, target=False):
        theta, bias = (self.target_theta, self.target_bias) if target else (self.theta, self.q_bias)
        return state @ theta + bias

    def state_value(self, state):
        return float(state @ self.value_weights)

    def select_action(self, state):
        if self.rng.random() < self.exploration_rate:
            return int(self.rng.integers(NUM_ACTIONS))
        return int(np.argmax(self.q_values(state)))

    # ---------------- Prediction ---------------- #

    def blend(self, upstream):
        """Weighted per-number probabilities over the estimators that produced output."""
        available = np.array([name in upstream for name in UPSTREAM], dtype=float)
        try:
            weights = safe_norm(self.weights * available, strict=True)
        except NumericDegeneracy:
            weights = safe_norm(available)
        blended = np.zeros(NUM_NUMBERS, dtype=float)
        for w, name in zip(weights, UPSTREAM):
            if name in upstream:
                blended += w * dict_to_probabilities(upstream[name].probabilities)
        return blended

    def predict(self, draws, upstream, performance=None, feedback=None, token=None):
        if not upstream:
            raise InsufficientData("Weight adjuster needs at least one upstream prediction.")
        check_cancelled(token, "reinforcement")

        with self._lock:
            state = self.encode_state(draws, upstream, performance, feedback)
            action = self.select_action(state)
            self.weights = decode_action(action, self.weights)
            self.current_state = state
            self.last_action = action
            q = self.q_values(state)
            value = self.state_value(state)
            weights = self.weights.copy()

        blended = self.blend(upstream)
        selected = top_k_numbers(blended)
        action_probabilities = _softmax(q)
        confidence = float(action_probabilities.max()) * 100

        self.logger.info(f"RL weights {np.round(weights, 3).tolist()} (action {action}), picks {selected}")
        return EstimatorOutput(
            name=self.name,
            numbers=selected,
            probabilities=probabilities_to_dict(blended),
            confidence=confidence,
            auxiliary={
                "q_values": q.tolist(),
                "action_probabilities": action_probabilities.tolist(),
                "state_value": value,
                "exploration_bonus": self.exploration_rate * 0.1,
                "model_weights": dict(zip(UPSTREAM, weights.tolist())),
                "action": action,
            },
        )

    # ---------------- Learning ---------------- #

    def calculate_reward(self, predicted, actual, feedback=None):
        matches = hit_rate_analysis(predicted, actual)
        accuracy = matches / PICK_SIZE
        profit = PAYOUT[matches] / 100
        user = feedback / 10 if feedback is not None else 0.0

        fn = self.config.reward_function
        if fn == "accuracy":
            reward = accuracy
        elif fn == "profit":
            reward = profit
        else:
            reward = 0.4 * accuracy + 0.4 * profit + 0.2 * user

        if len(self.reward_history) > CONSISTENCY_WINDOW:
            recent = self.reward_history[-CONSISTENCY_WINDOW:]
            reward += 0.1 * (1 - (max(recent) - min(recent)))
        return reward

    def _next_state(self, state, actual):
        """The current state with the resolved draw shifted into the recent-draws block."""
        nxt = state.copy()
        block = RECENT_DRAWS * PICK_SIZE
        nxt[:block - PICK_SIZE] = state[PICK_SIZE:block]
        nxt[block - PICK_SIZE:block] = _normalize_numbers(actual)
        return nxt

    def _replay(self):
        snapshot = list(self.memory)
        idx = self.rng.integers(len(snapshot), size=self.config.batch_size)
        lr, gamma = self.config.learning_rate, self.config.discount_factor
        for i in idx:
            state, action, reward, next_state = snapshot[i]
            target = reward + gamma * float(np.max(self.q_values(next_state, target=True)))
            error = target - float(self.q_values(state)[action])
            self.theta[:, action] += lr * error * state
            self.q_bias[action] += lr * error

            value_error = reward + gamma * self.state_value(next_state) - self.state_value(state)
            self.value_weights += lr * value_error * state

    def update_with_feedback(self, predicted, actual, feedback=None):
        """
        Learn from a resolved draw. Returns the reward, or None when no prediction
        has been made yet.
        """
        with self._lock:
            if self.current_state is None:
                self.logger.warning("Feedback received before any RL prediction; ignored.")
                return None

            reward = self.calculate_reward(predicted, actual, feedback)
            self.total_reward += reward
            self.reward_history.append(reward)

            next_state = self._next_state(self.current_state, actual)
            self.memory.append((self.current_state, self.last_action, reward, next_state))
            if len(self.memory) >= self.config.batch_size:
                self._replay()

            self.episode_count += 1
            if self.episode_count % self.config.target_update_freq == 0:
                self.target_theta = self.theta.copy()
                self.target_bias = self.q_bias.copy()

            self.exploration_rate = max(
                self.config.min_exploration_rate,
                self.exploration_rate * self.config.exploration_decay,
            )
            self.current_state = next_state

        self.logger.info(f"RL agent updated: reward={reward:.3f}, exploration={self.exploration_rate:.3f}")
        return reward

    def get_performance_metrics(self):
        return {
            "total_reward": self.total_reward,
            "average_reward": float(np.mean(self.reward_history)) if self.reward_history else 0.0,
            "exploration_rate": self.exploration_rate,
            "episode_count": self.episode_count,
            "replay_buffer_size": len(self.memory),
            "model_weights": dict(zip(UPSTREAM, self.weights.tolist())),
        }

    # ---------------- Persistence ---------------- #

    def to_dict(self):
        with self._lock:
            return {
                "weights": self.weights.tolist(),
                "theta": self.theta.tolist(),
                "q_bias": self.q_bias.tolist(),
                "value_weights": self.value_weights.tolist(),
                "target_theta": self.target_theta.tolist(),
                "target_bias": self.target_bias.tolist(),
                "exploration_rate": self.exploration_rate,
                "reward_history": list(self.reward_history),
                "total_reward": self.total_reward,
                "episode_count": self.episode_count,
                "memory": [
                    {"state": s.tolist(), "action": int(a), "reward": float(r), "next_state": n.tolist()}
                    for s, a, r, n in self.memory
                ],
            }

    def from_dict(self, data):
        with self._lock:
            self.weights = safe_norm(data["weights"])
            self.theta = np.asarray(data["theta"], dtype=float).reshape(STATE_SIZE, NUM_ACTIONS)
            self.q_bias = np.asarray(data["q_bias"], dtype=float)
            self.value_weights = np.asarray(data["value_weights"], dtype=float)
            self.target_theta = np.asarray(data.get("target_theta", data["theta"]), dtype=float).reshape(STATE_SIZE, NUM_ACTIONS)
            self.target_bias = np.asarray(data.get("target_bias", data["q_bias"]), dtype=float)
            self.exploration_rate = float(data.get("exploration_rate", self.config.exploration_rate))
            self.reward_history = [float(r) for r in data.get("reward_history", [])]
            self.total_reward = float(data.get("total_reward", sum(self.reward_history)))
            self.episode_count = int(data.get("episode_count", 0))
            self.memory = deque(
                (
                    (np.asarray(m["state"], dtype=float), int(m["action"]), float(m["reward"]),
                     np.asarray(m["next_state"], dtype=float))
                    for m in data.get("memory", [])
                ),
                maxlen=self.config.memory_size,
            )
