import re
from typing import Mapping
from app.core.validator import Validator

# ASCII digits with an optional sign; int() alone also takes "1_0", " 5" and "５"
INT_RX = re.compile(r"[+-]?[0-9]+")


def read_string(qs: Mapping[str, str], key: str, default: str) -> str:
    """Return a query string value, or default when absent or empty."""
    value = qs.get(key, "")
    return value if value != "" else default


def read_int(qs: Mapping[str, str], key: str, default: int, v: Validator) -> int:
    """
    Return a query string value as an int.

    A value that does not parse records an error on v and yields the default,
    so parsing can continue and every bad field is reported together.
    """
    value = qs.get(key, "")
    if value == "":
        return default

    if INT_RX.fullmatch(value) is None:
        v.add_error(key, "must be an integer value")
        return default
    return int(value)
