## Project: Lotto Ensemble Predictor
## Purpose of File: Database Initialization and Management
## Description:
## SQLite store for the draw history (lotto.db) and for the meta-learner's epoch metrics.
## Rows come back as plain dicts that steps/historical.parse_draw() understands.
## Every function takes an optional db_path; the module constant is used otherwise,
## so the module itself can be handed to EpochLogger as its store.

import logging
import sqlite3
from sqlite3 import Error

DB_FILENAME = "lotto.db"  # The SQLite database filename

logger = logging.getLogger(__name__)


def get_connection(db_path=None):
    """
    Creates (or opens) the database file and returns a connection.
    Returns:
    - sqlite3.Connection object or None on error.
    """
    try:
        return sqlite3.connect(db_path or DB_FILENAME)
    except Error as e:
        logger.error(f"Error connecting to SQLite: {e}")
        return None


def initialize_database(db_path=None):
    """
    Ensures the 'draws' and 'epochs' tables exist in the database.
    Returns True when both tables are available.
    """
    conn = get_connection(db_path)
    if not conn:
        return False
    try:
        cursor = conn.cursor()

        # Draws table
        cursor.execute("""
        CREATE TABLE IF NOT EXISTS draws (
            draw_id INTEGER PRIMARY KEY,       -- Stable unique ID
            draw_name TEXT NOT NULL,           -- National, Etoile, Fortune, ...
            draw_date TEXT NOT NULL,           -- ISO date
            numbers TEXT NOT NULL,             -- Comma-separated main numbers
            machine TEXT,                      -- Comma-separated secondary numbers
            UNIQUE (draw_date, draw_name)
        );
        """)

        # Epochs table
        cursor.execute("""
        CREATE TABLE IF NOT EXISTS epochs (
            id INTEGER PRIMARY KEY,
            run_date TEXT NOT NULL,             -- Date/time grouping this training run
            epoch INTEGER NOT NULL,             -- Epoch number within this run
            loss REAL NOT NULL,
            val_loss REAL NOT NULL,
            mae REAL NOT NULL,
            val_mae REAL NOT NULL
        );
        """)

        conn.commit()
        cursor.close()
        return True
    except Error as e:
        logger.error(f"Error during database initialization: {e}")
        return False
    finally:
        conn.close()


def _join(numbers):
    return ",".join(map(str, numbers)) if numbers else None


def _split(text):
    return [int(n) for n in text.split(",")] if text else None


def _row_to_dict(row):
    draw_id, name, draw_date, numbers, machine = row
    return {
        "id": draw_id,
        "name": name,
        "date": draw_date,
        "main_numbers": _split(numbers),
        "secondary_numbers": _split(machine),
    }


def insert_draw(draw_date, name, numbers, secondary_numbers=None, db_path=None):
    """
    Inserts a single draw record into the 'draws' table.
    Keeps stable draw_id rather than autoincrement.
    Returns the new draw_id, or None if the draw could not be stored.
    """
    conn = get_connection(db_path)
    if not conn:
        return None
    try:
        cursor = conn.cursor()
        cursor.execute("SELECT MAX(draw_id) FROM draws")
        result = cursor.fetchone()
        new_draw_id = (result[0] or 0) + 1

        cursor.execute(
            "INSERT INTO draws (draw_id, draw_name, draw_date, numbers, machine) VALUES (?, ?, ?, ?, ?)",
            (new_draw_id, name, str(draw_date), _join(numbers), _join(secondary_numbers)),
        )
        conn.commit()
        cursor.close()
        return new_draw_id
    except sqlite3.IntegrityError as e:
        logger.error(f"IntegrityError inserting {name} draw on {draw_date}: {e}")
        return None
    except Error as e:
        logger.error(f"Error inserting draw: {e}")
        return None
    finally:
        conn.close()


def _fetch(sql, params=(), db_path=None):
    conn = get_connection(db_path)
    if not conn:
        return []
    draws_list = []
    try:
        cursor = conn.cursor()
        cursor.execute(sql, params)
        for row in cursor.fetchall():
            try:
                draws_list.append(_row_to_dict(row))
            except ValueError:
                logger.warning(f"Skipping unreadable draw row {row[0]}")
        cursor.close()
        return draws_list
    except Error as e:
        logger.error(f"Error fetching draws: {e}")
        return []
    finally:
        conn.close()


def fetch_all_draws(db_path=None):
    """Fetches all draw records, oldest first."""
    return _fetch(
        "SELECT draw_id, draw_name, draw_date, numbers, machine FROM draws ORDER BY draw_date ASC, draw_id ASC",
        db_path=db_path,
    )


def fetch_recent_draws(limit=10, db_path=None):
    """Fetches the most recent 'limit' draw records, newest first."""
    return _fetch(
        "SELECT draw_id, draw_name, draw_date, numbers, machine FROM draws "
        "ORDER BY date(draw_date) DESC, draw_id DESC LIMIT ?",
        (limit,),
        db_path=db_path,
    )


def fetch_draw_by_date(draw_date, db_path=None):
    """Fetches the draws held on a date (several draw types may share one day)."""
    return _fetch(
        "SELECT draw_id, draw_name, draw_date, numbers, machine FROM draws WHERE draw_date = ? ORDER BY draw_id",
        (str(draw_date),),
        db_path=db_path,
    )


def insert_epoch_metrics(run_date, epoch, loss, val_loss, mae, val_mae, db_path=None):
    """
    Inserts a single epoch's metrics into the 'epochs' table.
    """
    conn = get_connection(db_path)
    if not conn:
        return None
    try:
        cursor = conn.cursor()
        cursor.execute(
            "INSERT INTO epochs (run_date, epoch, loss, val_loss, mae, val_mae) VALUES (?, ?, ?, ?, ?, ?)",
            (run_date, epoch, loss, val_loss, mae, val_mae),
        )
        conn.commit()
        row_id = cursor.lastrowid
        cursor.close()
        return row_id
    except Error as e:
        logger.error(f"Error inserting epoch metrics: {e}")
        return None
    finally:
        conn.close()


def fetch_epoch_metrics(run_date=None, db_path=None):
    """Epoch rows as dicts, optionally limited to one training run."""
    conn = get_connection(db_path)
    if not conn:
        return []
    try:
        cursor = conn.cursor()
        sql = "SELECT run_date, epoch, loss, val_loss, mae, val_mae FROM epochs"
        params = ()
        if run_date is not None:
            sql += " WHERE run_date = ?"
            params = (run_date,)
        cursor.execute(sql + " ORDER BY id", params)
        keys = ("run_date", "epoch", "loss", "val_loss", "mae", "val_mae")
        rows = [dict(zip(keys, row)) for row in cursor.fetchall()]
        cursor.close()
        return rows
    except Error as e:
        logger.error(f"Error fetching epoch metrics: {e}")
        return []
    finally:
        conn.close()
