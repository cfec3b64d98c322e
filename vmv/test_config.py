import pytest
from pydantic import ValidationError

from vmv.config import DEFAULT_LENGTH_L, DEFAULT_LENGTH_N, ElectionOptions


def test_defaults():
    options = ElectionOptions()

    assert options.length_l == DEFAULT_LENGTH_L
    assert options.length_n == DEFAULT_LENGTH_N
    assert options.number_of_tellers == 0
    assert not options.has_explicit_group


def test_explicit_group():
    options = ElectionOptions(p=23, q=11, g=4)
    assert options.has_explicit_group


@pytest.mark.parametrize("values", [
    {"p": 23, "q": 11},
    {"g": 4},
    {"number_of_tellers": 2, "threshold_tellers": 3},
    {"number_of_tellers": -1},
    {"length_l": 0},
])
def test_invalid_options(values):
    with pytest.raises(ValidationError):
        ElectionOptions(**values)
