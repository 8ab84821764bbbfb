## Project: Lotto Ensemble Predictor
## Purpose of File: To Process Historical Lottery Draw Data
## Description:
## This file handles the first step of the pipeline: turning raw draw rows (from the
## database, a JSON feed or the user) into validated Draw records. Malformed rows are
## rejected here so no later step ever has to tolerate them. Valid draws are sorted
## oldest -> newest and stored in the pipeline under "historical_data".

import logging
from datetime import date, datetime

from dateutil import parser

from config.errors import InvalidDraw
from records import Draw

logger = logging.getLogger(__name__)


def _safe_parse_date(date_value):
    """
    Robustly parse a draw date into a datetime.date.

    Accepts:
        - date / datetime objects
        - strings in "%Y-%m-%d" format
        - any other format python-dateutil understands ("15/03/2024", "Mar 15 2024", ...)

    Raises:
        InvalidDraw if parsing fails.
    """
    if isinstance(date_value, datetime):
        return date_value.date()
    if isinstance(date_value, date):
        return date_value

    if date_value is None or str(date_value).strip() == "":
        raise InvalidDraw("Empty/None date value")

    date_str = str(date_value).strip()
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError:
        pass
    try:
        return parser.parse(date_str, dayfirst=True).date()
    except (ValueError, OverflowError) as e:
        raise InvalidDraw(f"Unparseable date: {date_str!r} ({e})")


def _parse_numbers(value):
    """Numbers may be stored as a list or as a comma separated string."""
    if value is None:
        return None
    if isinstance(value, str):
        value = [part for part in value.replace(" ", "").split(",") if part]
    return list(value)


def parse_draw(row, default_id=0):
    """
    Build a Draw from a raw dict row.

    Recognised keys:
    - "id" / "draw_id"
    - "name" / "draw_name"
    - "date" / "draw_date"
    - "main_numbers" / "numbers" / "gagnants"
    - "secondary_numbers" / "machine" (optional)
    """
    if isinstance(row, Draw):
        return row
    if not isinstance(row, dict):
        raise InvalidDraw(f"Draw row must be a dict, got {type(row).__name__}")

    draw_id = row.get("id", row.get("draw_id", default_id))
    name = row.get("name") or row.get("draw_name") or ""
    draw_date = _safe_parse_date(row.get("date") or row.get("draw_date"))

    main = _parse_numbers(row.get("main_numbers", row.get("numbers", row.get("gagnants"))))
    if main is None:
        raise InvalidDraw(f"Draw {draw_id}: missing main numbers")
    secondary = _parse_numbers(row.get("secondary_numbers", row.get("machine")))

    try:
        draw_id = int(draw_id)
    except (TypeError, ValueError):
        raise InvalidDraw(f"Draw id must be an integer, got {draw_id!r}")

    return Draw(
        id=draw_id,
        name=str(name),
        date=draw_date,
        main_numbers=tuple(main),
        secondary_numbers=tuple(secondary) if secondary else None,
    )


def sort_draws(draws):
    """Chronological order, oldest first. Same-day draws keep id order."""
    return sorted(draws, key=lambda d: (d.date, d.id))


def process_historical_data(rows, pipeline=None):
    """
    Validates every row and returns the sorted list of Draw records.

    Parameters:
    - rows: iterable of dict rows or Draw objects.
    - pipeline (DataPipeline, optional): receives the result under "historical_data".

    Raises:
    - InvalidDraw on the first malformed row. Ingestion never drops rows silently.
    """
    rows = list(rows or [])
    if not rows:
        logger.warning("No historical data provided to pipeline.")
        if pipeline is not None:
            pipeline.add_data("historical_data", [])
        return []

    draws = [parse_draw(row, default_id=idx + 1) for idx, row in enumerate(rows)]
    draws = sort_draws(draws)

    if pipeline is not None:
        pipeline.add_data("historical_data", draws)

    logger.info(f"Processed {len(draws)} valid historical draws into the pipeline.")
    return draws
