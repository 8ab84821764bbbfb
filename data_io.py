## Project: Lotto Ensemble Predictor
## Purpose of File: Save and Load the Ensemble State
## Description:
## This file handles saving and loading the learned ensemble state to and from
## `ensemble_state.json`: the configuration, the Beta posterior table, the RL weight
## adjuster (weights, Q-function, exploration rate, replay buffer) and the per-estimator
## performance history. Missing or corrupt files leave the predictor untouched.

import json  # For JSON read/write operations
import logging  # For logging events and errors
import os  # For checking file existence
from typing import Any, Dict

logger = logging.getLogger(__name__)

# Constants for file paths
STATE_FILE = "ensemble_state.json"  # The file storing the ensemble snapshot
STATE_VERSION = 1
REQUIRED_KEYS = ("config", "bayesian", "reinforcement")


def load_state(path: str = STATE_FILE) -> Dict[str, Any]:
    """
    Reads a snapshot written by save_ensemble_state().

    Expected JSON structure:
    {
        "version": 1,
        "state": {"config": {...}, "bayesian": {...}, "reinforcement": {...}, "performance": {...}}
    }

    Returns:
    - Dict[str, Any]: The state dict, or an empty dict if the file is missing or invalid.
    """
    if not os.path.exists(path):
        logger.warning(f"'{path}' not found. Starting from a fresh ensemble.")
        return {}

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Error decoding JSON from '{path}': {e}. Starting from a fresh ensemble.")
        return {}
    except OSError as e:
        logger.error(f"Could not read '{path}': {e}. Starting from a fresh ensemble.")
        return {}

    state = data.get("state") if isinstance(data, dict) else None
    if not isinstance(state, dict) or any(key not in state for key in REQUIRED_KEYS):
        logger.error(f"Invalid structure in '{path}'. Expected a 'state' dict with {list(REQUIRED_KEYS)}.")
        return {}
    if data.get("version") != STATE_VERSION:
        logger.warning(f"'{path}' has snapshot version {data.get('version')}, expected {STATE_VERSION}.")
    return state


def load_ensemble_state(predictor, path: str = STATE_FILE) -> bool:
    """
    Restores a predictor from `path`. Returns True if a snapshot was applied.

    Raises:
    - InvalidConfig: if the stored configuration no longer validates.
    """
    state = load_state(path)
    if not state:
        return False
    predictor.from_dict(state)
    logger.info(f"Successfully loaded ensemble state from '{path}'.")
    return True


def save_ensemble_state(predictor, path: str = STATE_FILE) -> None:
    """
    Writes the predictor's serializable state to `path`.

    Raises:
    - OSError: if the file cannot be written.
    """
    data_to_save = {"version": STATE_VERSION, "state": predictor.to_dict()}
    tmp_path = f"{path}.tmp"
    try:
        with open(tmp_path, "w") as f:
            json.dump(data_to_save, f, indent=2)
        os.replace(tmp_path, path)
    except OSError as e:
        logger.error(f"Failed to save ensemble state to '{path}': {e}.")
        raise
    logger.info(f"Successfully saved ensemble state to '{path}'.")
