## Project: Lotto Ensemble Predictor
## Purpose of File: Logging Setup and Epoch Logging Utility
## Description:
## configure_logging() is called once by the process entry point; library modules only
## ask for named loggers. EpochLogger is a Keras callback that records the meta-learner's
## training metrics after each epoch, optionally into the SQLite 'epochs' table.
## Each training run is grouped by a unique run_date.

import logging
import time
from datetime import datetime

from tensorflow import keras

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def configure_logging(level=logging.INFO):
    """Configure the root logger. Only the entry point should call this."""
    logging.basicConfig(level=level, format=LOG_FORMAT)


class EpochLogger(keras.callbacks.Callback):
    """
    Custom Keras callback that logs epoch metrics of the meta-learner.
    If a store exposing insert_epoch_metrics(...) is injected, every epoch is also persisted.
    """

    def __init__(self, store=None, delay=0.0, logger=None):
        """
        Parameters:
        - store: object with insert_epoch_metrics(run_date, epoch, loss, val_loss, mae, val_mae),
          usually the database module. None keeps metrics in memory only.
        - delay (float): Seconds to pause after each insert. Helps SQLite process steadily.
        """
        super().__init__()
        self.run_date = get_run_date()
        self.store = store
        self.delay = delay
        self.logger = logger or logging.getLogger(__name__)
        self.history = []

    def on_epoch_end(self, epoch, logs=None):
        if logs is None:
            return

        def _get(*keys, default=0.0):
            for k in keys:
                if k in logs:
                    return float(logs[k])
            return float(default)

        record = {
            "epoch": epoch + 1,
            "loss": _get("loss"),
            "val_loss": _get("val_loss"),
            "mae": _get("mae", "mean_absolute_error"),
            "val_mae": _get("val_mae", "val_mean_absolute_error"),
        }
        self.history.append(record)
        self.logger.debug("Meta-learner epoch %d: loss=%.4f mae=%.4f", record["epoch"], record["loss"], record["mae"])

        if self.store is None:
            return
        try:
            self.store.insert_epoch_metrics(run_date=self.run_date, **record)
            if self.delay:
                time.sleep(self.delay)
        except Exception as e:
            self.logger.error(f"[EpochLogger] Error inserting metrics: {e}")


def get_run_date():
    """Timestamp string used to group one training run."""
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")
