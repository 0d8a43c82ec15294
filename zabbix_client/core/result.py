"""Result object returned by every monitoring operation."""

from dataclasses import dataclass
from typing import Any


@dataclass
class OperationResult:
    """Outcome of one operation call: a success flag plus payload or error message."""

    success: bool
    data: Any = None

    def to_dict(self) -> dict:
        return {"success": self.success, "data": self.data}
