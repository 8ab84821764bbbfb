from datetime import date

import pytest

from config.errors import InvalidDraw
from records import Draw, FeatureVector, validate_numbers


def test_draw_keeps_numbers_as_int_tuple():
    draw = Draw(id=1, name="National", date=date(2024, 3, 2), main_numbers=["5", 17, 33, 48, 90])
    assert draw.main_numbers == (5, 17, 33, 48, 90)
    assert draw.secondary_numbers is None


@pytest.mark.parametrize("numbers", [
    (1, 2, 3, 4),
    (1, 2, 3, 4, 5, 6),
    (1, 1, 2, 3, 4),
    (0, 2, 3, 4, 5),
    (1, 2, 3, 4, 91),
    ("a", 2, 3, 4, 5),
])
def test_malformed_draws_are_rejected(numbers):
    with pytest.raises(InvalidDraw):
        Draw(id=1, name="", date=date(2024, 1, 1), main_numbers=numbers)


def test_draw_rejects_non_date():
    with pytest.raises(InvalidDraw):
        Draw(id=1, name="", date="2024-01-01", main_numbers=(1, 2, 3, 4, 5))


def test_secondary_numbers_are_validated():
    with pytest.raises(InvalidDraw):
        Draw(id=1, name="", date=date(2024, 1, 1), main_numbers=(1, 2, 3, 4, 5), secondary_numbers=(1, 2))


def test_invalid_draw_is_a_value_error():
    with pytest.raises(ValueError):
        validate_numbers([1, 2, 3])


def test_to_dict_uses_iso_date():
    draw = Draw(id=4, name="Etoile", date=date(2024, 5, 6), main_numbers=(1, 2, 3, 4, 5), secondary_numbers=(6, 7, 8, 9, 10))
    assert draw.to_dict() == {
        "id": 4,
        "name": "Etoile",
        "date": "2024-05-06",
        "main_numbers": [1, 2, 3, 4, 5],
        "secondary_numbers": [6, 7, 8, 9, 10],
    }


def test_feature_vector_lookup_by_name():
    fv = FeatureVector(names=("a", "b"), values=(1.0, 2.0))
    assert fv["b"] == 2.0
    assert len(fv) == 2
    assert fv.as_dict() == {"a": 1.0, "b": 2.0}
