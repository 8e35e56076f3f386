import pytest

from monitor.errors import InvalidSizeFormat, UnknownDimension
from monitor.size import DIMENSIONS, parse_size


def test_binary_and_decimal_dimensions():
    assert parse_size("1Ki") == 1024
    assert parse_size("1K") == 1000
    assert parse_size("8Gi") == 8 * 1024**3
    assert parse_size("500M") == 500_000_000
    assert parse_size("2Ei") == 2 * 1024**6


def test_plain_number_is_bytes():
    assert parse_size("4096") == 4096


def test_fraction_is_truncated_not_rounded():
    assert parse_size("1.5Ki") == 1536
    assert parse_size("1.9") == 1
    assert parse_size("0.0009K") == 0


def test_large_values_are_exact():
    # 1.1Ei does not fit a float exactly
    assert parse_size("1.1Ei") == 11 * 1024**6 // 10


@pytest.mark.parametrize("text", ["garbage", "", "8Gb", "-1Gi", "1.2.3G", "G", "8 Gi", "8gi", "8Gi\n", "\uff18Gi", "\u0668K", 8])
def test_invalid_format(text):
    with pytest.raises(InvalidSizeFormat):
        parse_size(text)


def test_unknown_dimension_is_reported(monkeypatch):
    monkeypatch.delitem(DIMENSIONS, "P")
    with pytest.raises(UnknownDimension):
        parse_size("1P")
