"""
Interned symbols.

Symbol("x") always returns the same object for the same name, so symbol
comparison is an identity check. The intern table is process-wide,
populated on first use and never evicted.
"""

import threading
from typing import Dict, Tuple

_cache: Dict[str, 'Symbol'] = {}
_cache_lock = threading.Lock()


class Symbol:
    """
    A named variable.

    Examples:
        x = Symbol("x")
        x is Symbol("x")       # => True
        x.name                 # => "x"
    """

    __slots__ = ('name', '_hash')

    def __new__(cls, name: str):
        if not isinstance(name, str) or not name:
            raise ValueError(f"symbol name must be a non-empty string, got {name!r}")
        with _cache_lock:
            symbol = _cache.get(name)
            if symbol is None:
                symbol = super().__new__(cls)
                object.__setattr__(symbol, 'name', name)
                object.__setattr__(symbol, '_hash', hash(('Symbol', name)))
                _cache[name] = symbol
        return symbol

    def __setattr__(self, name, value):
        raise AttributeError("Symbol is immutable")

    def __reduce__(self):
        return (Symbol, (self.name,))

    def __eq__(self, other):
        if isinstance(other, Symbol):
            return self.name == other.name
        return NotImplemented

    def __hash__(self):
        return self._hash

    def __lt__(self, other):
        if not isinstance(other, Symbol):
            return NotImplemented
        return self.name < other.name

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"Symbol({self.name!r})"


def symbols(names: str) -> Tuple[Symbol, ...]:
    """
    Create several symbols from a space or comma separated string.

    Example:
        x, y, z = symbols("x y z")
    """
    return tuple(Symbol(name) for name in names.replace(',', ' ').split())


def cache_size() -> int:
    """Number of interned symbols."""
    with _cache_lock:
        return len(_cache)
