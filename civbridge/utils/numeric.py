from typing import Any

# Largest integer a browser Number holds exactly.
JS_SAFE_MAX = 2**53 - 1


def to_int(value: Any, limit: int | None = JS_SAFE_MAX) -> int:
    """Normalize a value returned by the chain into a plain int.

    starknet-py yields ints for felt/u8..u256 and bools for `bool`, but hex or
    decimal strings show up from raw RPC results too. Anything above `limit`
    raises OverflowError instead of being silently rounded on the client.
    Pass limit=None for unbounded values.
    """
    if isinstance(value, bool):
        result = int(value)
    elif isinstance(value, int):
        result = value
    elif isinstance(value, str):
        text = value.strip()
        result = int(text, 16) if text.lower().startswith("0x") else int(text)
    else:
        raise TypeError(f"cannot normalize {type(value).__name__} to int")
    if limit is not None and abs(result) > limit:
        raise OverflowError(f"{result} exceeds {limit}")
    return result


def to_bitset_text(value: Any) -> str:
    """Bitsets can use all 252 felt bits; keep them as decimal text."""
    return str(to_int(value, limit=None))
