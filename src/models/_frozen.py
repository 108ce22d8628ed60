"""
Read-only containers and a model base for finished results.

Once a run is done or failed, its result and everything reachable from it
(items, totals, rules, observation lists) must stay as they were. finish()
replaces nested lists and dicts with the read-only variants below and
marks nested models finalized; attribute assignment on any of them then
raises ResultFinalizedError.

Deep copies come back as ordinary, mutable objects.
"""

from typing import Any

from pydantic import BaseModel, PrivateAttr

from domain.exceptions import ResultFinalizedError


def _read_only(operation: str):
    def method(self, *args, **kwargs):
        raise ResultFinalizedError(
            f"Cannot {operation} a {type(self).__name__} of a finished result"
        )
    method.__name__ = operation
    return method


class FrozenList(list):
    """List that rejects every in-place change."""

    append = _read_only("append")
    extend = _read_only("extend")
    insert = _read_only("insert")
    remove = _read_only("remove")
    pop = _read_only("pop")
    clear = _read_only("clear")
    sort = _read_only("sort")
    reverse = _read_only("reverse")
    __setitem__ = _read_only("__setitem__")
    __delitem__ = _read_only("__delitem__")
    __iadd__ = _read_only("__iadd__")
    __imul__ = _read_only("__imul__")

    def __reduce_ex__(self, protocol):
        return (list, (list(self),))


class FrozenDict(dict):
    """Dict that rejects every in-place change."""

    __setitem__ = _read_only("__setitem__")
    __delitem__ = _read_only("__delitem__")
    clear = _read_only("clear")
    pop = _read_only("pop")
    popitem = _read_only("popitem")
    setdefault = _read_only("setdefault")
    update = _read_only("update")
    __ior__ = _read_only("__ior__")

    def __reduce_ex__(self, protocol):
        return (dict, (dict(self),))


def freeze_value(value: Any) -> Any:
    """Read-only version of a field value; nested models are copied first."""
    if isinstance(value, FreezableModel):
        frozen = value.model_copy()
        frozen.finalize()
        return frozen
    if isinstance(value, list):
        return FrozenList(freeze_value(v) for v in value)
    if isinstance(value, dict):
        return FrozenDict((k, freeze_value(v)) for k, v in value.items())
    return value


class FreezableModel(BaseModel):
    """Model that can be made read-only, together with its nested values."""

    _finalized: bool = PrivateAttr(default=False)

    @property
    def is_finalized(self) -> bool:
        private = getattr(self, "__pydantic_private__", None) or {}
        return bool(private.get("_finalized", False))

    def __setattr__(self, name, value):
        if self.is_finalized:
            raise ResultFinalizedError(
                f"{type(self).__name__} belongs to a finished result; cannot set {name}"
            )
        super().__setattr__(name, value)

    def __deepcopy__(self, memo=None):
        copied = super().__deepcopy__(memo)
        copied.__pydantic_private__["_finalized"] = False
        return copied

    def finalize(self) -> None:
        """Freeze every field value in place and reject later assignments."""
        for name in type(self).model_fields:
            self.__dict__[name] = freeze_value(self.__dict__[name])
        self.__pydantic_private__["_finalized"] = True
