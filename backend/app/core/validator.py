from typing import Dict


class Validator:
    """
    Accumulates field errors instead of failing on the first one.

    Callers run every check, then inspect valid() once so the client gets
    all violations in a single response.
    """

    def __init__(self) -> None:
        self.errors: Dict[str, str] = {}

    def valid(self) -> bool:
        return not self.errors

    def add_error(self, key: str, message: str) -> None:
        # First message for a field wins
        self.errors.setdefault(key, message)

    def check(self, ok: bool, key: str, message: str) -> None:
        if not ok:
            self.add_error(key, message)


def permitted_value(value, *permitted) -> bool:
    return value in permitted
