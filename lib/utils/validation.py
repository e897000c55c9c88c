"""Validation helpers."""

from typing import Type


def ensure(condition: bool, message: str, exc: Type[Exception] = ValueError) -> None:
    if not condition:
        raise exc(message)
