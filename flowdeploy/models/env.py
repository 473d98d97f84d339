"""
Environment Variable Models
"""

import uuid
from dataclasses import dataclass, field


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class EnvVarEntry:
    """One editable KEY=VALUE row. Identity is the entry id, not the key."""

    key: str = ""
    value: str = ""
    revealed: bool = False
    id: str = field(default_factory=_new_id)

    @property
    def is_complete(self) -> bool:
        """Both key and value are non-empty."""
        return bool(self.key.strip()) and bool(self.value)

    def display_value(self) -> str:
        """Value as shown in the UI, masked unless revealed."""
        if self.revealed or not self.value:
            return self.value
        return "•" * min(len(self.value), 12)

    def __repr__(self) -> str:
        return f"EnvVarEntry(key={self.key}, revealed={self.revealed})"
