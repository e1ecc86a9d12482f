"""Opaque wrapper for the source credential.

A :class:`Secret` never shows its value in ``repr``, ``str``, logs or pickles,
and cannot be copied. The only accessor is :meth:`reveal`, which the source
client calls while building the ``Authorization`` header of an outbound request.
"""
from __future__ import annotations

import hmac

_MASK = "**********"


class Secret:
    __slots__ = ("_value",)

    def __init__(self, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError("Secret value must be a string")
        self._value = value

    def reveal(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"Secret('{_MASK}')"

    def __str__(self) -> str:
        return _MASK

    def __format__(self, format_spec: str) -> str:
        return _MASK

    def __bool__(self) -> bool:
        return bool(self._value)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Secret):
            return hmac.compare_digest(self._value.encode(), other._value.encode())
        return NotImplemented

    def __hash__(self) -> int:
        return hash((Secret, len(self._value)))

    def __copy__(self) -> Secret:
        raise TypeError("Secret values cannot be copied")

    def __deepcopy__(self, memo: dict[int, object]) -> Secret:
        raise TypeError("Secret values cannot be copied")

    def __reduce__(self) -> tuple[object, ...]:
        raise TypeError("Secret values cannot be pickled")
