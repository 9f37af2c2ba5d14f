"""The two named outputs emitted by ``logged-evaluation.nix``.

The instrumentation script traces exactly two attributes, ``primary`` (the
evaluated derivation) and ``primary_gc_rooted`` (the same derivation rewritten
so its environment survives as a GC root). ``NamedOutputs`` carries one value
per attribute and is generic over what that value is: an optional derivation
while stderr is being folded, a derivation once both are confirmed, a realized
store path after the build.

Only ``primary_gc_rooted`` is realized today. ``primary`` is kept because the
script still emits it; dropping it means changing both sides together.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict

from buildtrace.core.errors import InternalInvariantError

T = TypeVar("T")
U = TypeVar("U")

PRIMARY = "primary"
PRIMARY_GC_ROOTED = "primary_gc_rooted"


class NamedOutputs(BaseModel, Generic[T]):
    """Output derivations generated by ``logged-evaluation.nix``."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    primary: T
    """Original derivation."""

    primary_gc_rooted: T
    """Derivation modified to work as a GC root."""

    def map(self, f: Callable[[T], U]) -> NamedOutputs[U]:
        """Apply *f* to both slots."""
        return NamedOutputs(
            primary=f(self.primary),
            primary_gc_rooted=f(self.primary_gc_rooted),
        )

    def map_res(self, f: Callable[[T], U]) -> NamedOutputs[U]:
        """Like ``map``, for a function that may raise.

        ``primary`` is evaluated first; if *f* raises for it, the exception
        propagates and ``primary_gc_rooted`` is never attempted.
        """
        primary = f(self.primary)
        primary_gc_rooted = f(self.primary_gc_rooted)
        return NamedOutputs(primary=primary, primary_gc_rooted=primary_gc_rooted)

    def zip(self, other: NamedOutputs[U]) -> NamedOutputs[tuple[T, U]]:
        """Pair up corresponding slots of two ``NamedOutputs``."""
        return NamedOutputs(
            primary=(self.primary, other.primary),
            primary_gc_rooted=(self.primary_gc_rooted, other.primary_gc_rooted),
        )

    def with_slot(self, name: str, value: Any) -> NamedOutputs[T]:
        """Return a copy with slot *name* set to *value*.

        Slots are set at most once. Assigning to a populated slot means the
        instrumentation script traced the same attribute twice, which it
        never does; this raises ``InternalInvariantError``.
        """
        if name not in (PRIMARY, PRIMARY_GC_ROOTED):
            raise InternalInvariantError(f"`NamedOutputs` has no slot `{name}`")
        old = getattr(self, name)
        if old is not None:
            raise InternalInvariantError(
                f"got attribute `{name}` a second time, "
                f"first path was {old!s} and second {value!s}"
            )
        return self.model_copy(update={name: value})

    @classmethod
    def empty(cls) -> NamedOutputs[Any]:
        """Both slots unset, ready for ``with_slot``."""
        return NamedOutputs(primary=None, primary_gc_rooted=None)


def output_attr_names() -> NamedOutputs[str]:
    """Return the attribute name of each ``NamedOutputs`` slot."""
    return NamedOutputs(primary=PRIMARY, primary_gc_rooted=PRIMARY_GC_ROOTED)
