# vpq/models/result.py
from typing import NamedTuple


class OpResult(NamedTuple):
    """Outcome of a user-facing queue control."""
    ok: bool
    message: str = ""

    def __bool__(self) -> bool:
        return self.ok


OK = OpResult(True)


def refused(message: str) -> OpResult:
    return OpResult(False, message)
