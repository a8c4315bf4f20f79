"""Key-value preference stores used to persist the encoded forest."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from . import config


class PreferenceStore(Protocol):
    """Two-method string store provided by the host."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryPreferenceStore:
    """Process-local store; useful for tests and ephemeral windows."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value

    def delete(self, key: str) -> None:
        self.values.pop(key, None)


class JsonPreferenceStore:
    """String values stored as top-level keys of the JSON config file.

    Reads are defensive (non-string values read as missing); writes raise
    on filesystem errors so callers can report them.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path

    def get(self, key: str) -> str | None:
        value = config.load_config(self.path).get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = config.load_config(self.path)
        data[key] = value
        config.write_config(data, self.path)

    def delete(self, key: str) -> None:
        data = config.load_config(self.path)
        if key in data:
            del data[key]
            config.write_config(data, self.path)
