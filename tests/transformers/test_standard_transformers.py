import pytest

from fieldmap.transformers.standard import (
    STANDARD_TRANSFORMERS,
    BooleanToYNTransformer,
    FormatPhoneTransformer,
    ToBooleanTransformer,
    ToUpperTransformer,
)
from tests.fixtures.sample_data import MALFORMED_INPUTS

ARGS_VARIANTS = [None, {}, {"unknown": "x"}, {"digits": None}]


@pytest.mark.parametrize("transformer_cls", STANDARD_TRANSFORMERS)
@pytest.mark.parametrize("value", MALFORMED_INPUTS)
def test_builtin_transformers_are_total(transformer_cls, value):
    """Every built-in returns a string for any input and any args."""
    transformer = transformer_cls()
    for args in ARGS_VARIANTS:
        assert isinstance(transformer.transform(value, args), str)


@pytest.mark.parametrize("value,expected", [
    ("(555) 123-4567", "5551234567"),
    ("+1-555-123-4567", "15551234567"),
    ("abc", "abc"),
    ("", ""),
    (None, ""),
    ("ext. 12", "12"),
])
def test_format_phone(value, expected):
    assert FormatPhoneTransformer().transform(value) == expected


def test_format_phone_ignores_args():
    transformer = FormatPhoneTransformer()
    assert transformer.transform("(555) 123-4567", {"country": "US"}) == transformer.transform("(555) 123-4567")


@pytest.mark.parametrize("value,expected", [
    ("YES", "True"),
    ("true", "True"),
    (" T ", "True"),
    ("y", "True"),
    ("1", "True"),
    ("0", "False"),
    ("no", "False"),
    ("maybe", "False"),
    ("", "False"),
    (None, "False"),
])
def test_to_boolean(value, expected):
    assert ToBooleanTransformer().transform(value) == expected


@pytest.mark.parametrize("value,expected", [
    ("abc", "ABC"),
    ("", ""),
    (None, ""),
])
def test_to_upper(value, expected):
    assert ToUpperTransformer().transform(value) == expected


@pytest.mark.parametrize("value,expected", [
    ("true", "Y"),
    ("TRUE", "Y"),
    (" false ", "N"),
    ("yes", ""),
    ("", ""),
    (None, ""),
])
def test_boolean_to_yn(value, expected):
    assert BooleanToYNTransformer().transform(value) == expected


def test_transformer_is_callable():
    assert ToBooleanTransformer()("yes") == "True"
