"""
EnvManager - environment variables for a deployment submission

Handles:
- Parsing KEY=VALUE env files
- The editable, ordered list of EnvVarEntry rows
- Collapsing the rows into the env_vars map sent with a deployment

Example .env:
    # comment
    API_URL=https://api.example.com
    SECRET="hello world"
"""

from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from flowdeploy.models.env import EnvVarEntry


def _unquote(value: str) -> str:
    """Strip one layer of matching surrounding quotes."""
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_env_text(text: str) -> List[EnvVarEntry]:
    """
    Parse env file content into entries, in file order.

    Blank lines, comments, lines without '=' and lines with an empty key are
    skipped. The line is split on the first '=', key and value are trimmed and
    one layer of matching quotes is removed from the value. Everything else is
    taken literally: no inline comments, escapes or `export` prefix.
    Duplicate keys are kept as separate entries.

    Args:
        text: Raw env file content

    Returns:
        List of EnvVarEntry
    """
    entries: List[EnvVarEntry] = []

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            continue

        entries.append(EnvVarEntry(key=key, value=_unquote(value.strip())))

    return entries


def parse_env_file(path: Union[str, Path]) -> List[EnvVarEntry]:
    """
    Parse an env file from disk.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    with open(path, "r", encoding="utf-8") as f:
        return parse_env_text(f.read())


class EnvVarList:
    """
    Ordered, user-editable list of env var rows.

    Rows are addressed by entry id so two rows may share a key while being
    edited; to_env_map() resolves duplicates (last write wins).
    """

    def __init__(self, entries: Optional[List[EnvVarEntry]] = None):
        self._entries: List[EnvVarEntry] = list(entries or [])

    def __iter__(self) -> Iterator[EnvVarEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> List[EnvVarEntry]:
        return list(self._entries)

    def get(self, entry_id: str) -> EnvVarEntry:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        raise KeyError(f"No env var entry with id '{entry_id}'")

    def add(self, key: str = "", value: str = "") -> EnvVarEntry:
        """Append a new row and return it."""
        entry = EnvVarEntry(key=key, value=value)
        self._entries.append(entry)
        return entry

    def remove(self, entry_id: str) -> None:
        """Remove a row by id (no-op if absent)."""
        self._entries = [e for e in self._entries if e.id != entry_id]

    def update(
        self, entry_id: str, key: Optional[str] = None, value: Optional[str] = None
    ) -> EnvVarEntry:
        """Edit a row's key and/or value in place."""
        entry = self.get(entry_id)
        if key is not None:
            entry.key = key
        if value is not None:
            entry.value = value
        return entry

    def toggle_reveal(self, entry_id: str) -> bool:
        """Flip the revealed flag of a row and return the new value."""
        entry = self.get(entry_id)
        entry.revealed = not entry.revealed
        return entry.revealed

    def extend(self, entries: List[EnvVarEntry]) -> None:
        self._entries.extend(entries)

    def extend_from_file(self, path: Union[str, Path]) -> int:
        """Append every entry parsed from an env file; returns how many were added."""
        parsed = parse_env_file(path)
        self._entries.extend(parsed)
        return len(parsed)

    def extend_from_pairs(self, pairs: List[str]) -> None:
        """
        Append KEY=VALUE strings (e.g. from repeated --env options).

        Raises:
            ValueError: If a pair has no '=' or an empty key
        """
        for pair in pairs:
            if "=" not in pair:
                raise ValueError(f"Invalid env var '{pair}', expected KEY=VALUE")
            key, value = pair.split("=", 1)
            if not key.strip():
                raise ValueError(f"Invalid env var '{pair}', key is empty")
            self.add(key.strip(), value)

    def to_env_map(self) -> Dict[str, str]:
        """
        Collapse rows into the submission map.

        Rows with an empty key or empty value are dropped; for duplicate keys
        the last row wins.
        """
        env: Dict[str, str] = {}
        for entry in self._entries:
            if not entry.is_complete:
                continue
            env[entry.key.strip()] = entry.value
        return env
