from datetime import date

import pytest

from config.errors import InvalidDraw
from pipeline import DataPipeline
from steps.historical import parse_draw, process_historical_data


def test_parse_draw_accepts_feed_keys():
    draw = parse_draw({
        "draw_id": "12",
        "draw_name": "Fortune",
        "date": "15/03/2024",
        "gagnants": "4, 18, 27, 60, 88",
        "machine": [1, 2, 3, 4, 5],
    })
    assert draw.id == 12
    assert draw.name == "Fortune"
    assert draw.date == date(2024, 3, 15)
    assert draw.main_numbers == (4, 18, 27, 60, 88)
    assert draw.secondary_numbers == (1, 2, 3, 4, 5)


def test_parse_draw_missing_numbers():
    with pytest.raises(InvalidDraw):
        parse_draw({"id": 1, "date": "2024-01-01"})


def test_parse_draw_bad_date():
    with pytest.raises(InvalidDraw):
        parse_draw({"id": 1, "date": "not a date", "main_numbers": [1, 2, 3, 4, 5]})


def test_process_sorts_and_stores_in_pipeline():
    pipeline = DataPipeline()
    rows = [
        {"id": 3, "date": "2024-02-01", "main_numbers": [1, 2, 3, 4, 5]},
        {"id": 1, "date": "2024-01-01", "main_numbers": [6, 7, 8, 9, 10]},
        {"id": 2, "date": "2024-01-01", "main_numbers": [11, 12, 13, 14, 15]},
    ]
    draws = process_historical_data(rows, pipeline)
    assert [d.id for d in draws] == [1, 2, 3]
    assert pipeline.get_data("historical_data") == draws


def test_first_malformed_row_aborts_ingestion():
    rows = [
        {"id": 1, "date": "2024-01-01", "main_numbers": [1, 2, 3, 4, 5]},
        {"id": 2, "date": "2024-01-02", "main_numbers": [1, 2, 3, 4, 95]},
    ]
    with pytest.raises(InvalidDraw):
        process_historical_data(rows)


def test_empty_history():
    pipeline = DataPipeline()
    assert process_historical_data([], pipeline) == []
    assert pipeline.get_data("historical_data") == []
