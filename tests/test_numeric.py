import pytest

from civbridge.utils.numeric import JS_SAFE_MAX, to_bitset_text, to_int


@pytest.mark.parametrize("value,expected", [
    (7, 7),
    (True, 1),
    (False, 0),
    ("0x1f", 31),
    ("42", 42),
    (" 0X10 ", 16),
])
def test_to_int(value, expected):
    assert to_int(value) == expected


def test_to_int_rejects_unknown_types():
    with pytest.raises(TypeError):
        to_int(None)
    with pytest.raises(TypeError):
        to_int(1.5)


def test_to_int_overflow():
    assert to_int(JS_SAFE_MAX) == JS_SAFE_MAX
    with pytest.raises(OverflowError):
        to_int(JS_SAFE_MAX + 1)
    assert to_int(2**251, limit=None) == 2**251


def test_bitset_text_keeps_precision():
    assert to_bitset_text(2**200 + 1) == str(2**200 + 1)
    assert to_bitset_text("0x0") == "0"
