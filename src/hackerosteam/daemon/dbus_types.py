"""D-Bus type aliases and decorator wrappers for type-safe interfaces.

Type aliases combine the Python type with its D-Bus signature using
Annotated, so the interface reads as plain Python to a type checker
while dbus-fast still gets signature strings at runtime:

    class Manager(ServiceInterface):
        @method()
        def Status(self) -> DBusBool:
            return True
"""

from __future__ import annotations

import typing
from typing import Annotated, Any, Callable, TypeVar, get_args, get_origin

from dbus_fast.constants import PropertyAccess
from dbus_fast.service import dbus_property as _dbus_property
from dbus_fast.service import method as _method
from dbus_fast.service import signal as _signal

F = TypeVar("F", bound=Callable[..., Any])

DBusStr = Annotated[str, "s"]
DBusBool = Annotated[bool, "b"]
DBusDouble = Annotated[float, "d"]

# Multi-argument signal bodies
DBusMessage = Annotated[tuple[int, str], "is"]
DBusCompletion = Annotated[tuple[bool, str, int], "bsi"]


def extract_dbus_signature(annotation: Any) -> str | Any:
    """Signature string of an Annotated type, or the annotation unchanged."""
    if get_origin(annotation) is Annotated:
        args = get_args(annotation)
        if len(args) >= 2 and isinstance(args[1], str):
            return args[1]
    return annotation


def _convert_annotations(fn: F) -> F:
    """Replace Annotated[T, "sig"] annotations on fn with "sig".

    Handles the stringified annotations produced by
    `from __future__ import annotations`.
    """
    try:
        hints = typing.get_type_hints(
            fn, globalns=getattr(fn, "__globals__", None), include_extras=True
        )
    except (NameError, TypeError):
        hints = getattr(fn, "__annotations__", {})

    fn.__annotations__ = {name: extract_dbus_signature(hint) for name, hint in hints.items()}
    return fn


def dbus_property(access: PropertyAccess = PropertyAccess.READ) -> Callable[[Callable[..., Any]], Any]:
    def decorator(fn: Callable[..., Any]) -> Any:
        _convert_annotations(fn)
        return _dbus_property(access=access)(fn)
    return decorator


def method(name: str | None = None) -> Callable[[F], F]:
    def decorator(fn: F) -> F:
        _convert_annotations(fn)
        return _method(name=name)(fn)  # type: ignore[return-value]
    return decorator


def signal() -> Callable[[F], F]:
    def decorator(fn: F) -> F:
        _convert_annotations(fn)
        return _signal()(fn)  # type: ignore[return-value]
    return decorator


__all__ = [
    "DBusBool",
    "DBusCompletion",
    "DBusDouble",
    "DBusMessage",
    "DBusStr",
    "PropertyAccess",
    "dbus_property",
    "method",
    "signal",
]
