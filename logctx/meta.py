"""Flat string metadata that can be serialised into a structured log field."""
from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Optional, Protocol, runtime_checkable


class ObjectEncoder(Protocol):
    """Receives the members of an object-valued log field."""

    def add_string(self, key: str, value: str) -> None:
        ...


@runtime_checkable
class ObjectMarshaler(Protocol):
    """Anything that knows how to write itself into an :class:`ObjectEncoder`."""

    def marshal_log_object(self, encoder: ObjectEncoder) -> None:
        ...


class Meta(Mapping[str, str]):
    """Read-only mapping of string keys to string values.

    Instances are never modified after construction. Combining metadata goes
    through :meth:`merged`, which returns a new instance, so a ``Meta`` stored
    in one context can safely be shared by every context derived from it.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Optional[Mapping[str, str]] = None, /, **values: str) -> None:
        items: dict[str, str] = {}
        if data:
            items.update(data)
        items.update(values)
        for key, value in items.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise TypeError(
                    f"metadata keys and values must be str, got {key!r}: {value!r}"
                )
        self._data = items

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Meta({self._data!r})"

    def __hash__(self) -> int:
        return hash(frozenset(self._data.items()))

    def merged(self, other: Mapping[str, str]) -> "Meta":
        """Return the union of both mappings, ``other`` winning on collisions."""

        if not other:
            return self
        combined = dict(self._data)
        combined.update(other)
        return Meta(combined)

    def marshal_log_object(self, encoder: ObjectEncoder) -> None:
        """Write every entry as a string member of ``encoder``."""

        for key, value in self._data.items():
            encoder.add_string(key, value)


__all__ = ["Meta", "ObjectEncoder", "ObjectMarshaler"]
