"""
WDL primitive types

Values and the operator tables deal only in the atomic types ``Boolean``, ``Int``, ``Float``,
``String`` and ``File``, plus the symbolic ``Any`` carried by the ``None`` literal. Each type is
represented by an immutable instance of a Python class inheriting from ``WDLParser.Type.Base``,
e.g. ``WDLParser.Type.Int()``. An atomic type can be checked either with
``isinstance(t, WDLParser.Type.Int)``, which ignores the optional quantifier, or with
``t == WDLParser.Type.Int(optional=True)`` to include the quantifier in the comparison.

Coercion rules among the atomic types:

1. ``Int`` coerces to ``Float``
2. ``String`` and ``File`` coerce to each other
3. ``T`` coerces to ``T?``, and the ``None`` literal coerces to any optional type

Declarations keep their type as surface text (e.g. ``Array[File]``); :func:`from_surface` maps
the atomic ones back to instances of these classes.
"""
import copy
from abc import ABC
from typing import Optional, Dict


class Base(ABC):
    """The abstract base class for WDL types

    All instances are immutable.
    """

    _optional: bool = False  # immutable!!!

    def __init__(self, optional: bool = False) -> None:
        self._optional = optional

    def coerces(self, rhs: "Base") -> bool:
        """
        True if this is the same type as, or can be coerced to, ``rhs``.
        """
        return (type(self) is type(rhs) or isinstance(rhs, Any)) and self._check_optional(rhs)

    def _check_optional(self, rhs: "Base") -> bool:
        return not (self.optional and not rhs.optional and not isinstance(rhs, Any))

    @property
    def optional(self) -> bool:
        """
        :type: bool

        True when the type has the optional quantifier, ``T?``"""
        return self._optional

    def copy(self, optional: Optional[bool] = None) -> "Base":
        """
        Create a copy of the type, possibly with a different setting of the ``optional``
        quantifier.
        """
        ans: "Base" = copy.copy(self)
        if optional is not None:
            ans._optional = optional
        return ans

    def __str__(self) -> str:
        return type(self).__name__ + ("?" if self.optional else "")

    def __repr__(self) -> str:
        return "Type." + str(self)

    def __eq__(self, rhs: object) -> bool:
        return isinstance(rhs, Base) and str(self) == str(rhs)

    def __hash__(self) -> int:
        return hash(str(self))


class Any(Base):
    """
    A symbolic type which coerces to any other type; it's the type of the WDL ``None`` literal.

    The ``optional`` attribute shall be true only for ``None`` literals.
    """

    def __init__(self, optional: bool = False, null: bool = False) -> None:
        super().__init__(null)

    def coerces(self, rhs: Base) -> bool:
        return self._check_optional(rhs) or rhs.optional


class Boolean(Base):
    pass


class Int(Base):
    def coerces(self, rhs: Base) -> bool:
        """"""
        if isinstance(rhs, Float):
            return self._check_optional(rhs)
        return super().coerces(rhs)


class Float(Base):
    pass


class String(Base):
    def coerces(self, rhs: Base) -> bool:
        """"""
        if isinstance(rhs, File):
            return self._check_optional(rhs)
        return super().coerces(rhs)


class File(Base):
    def coerces(self, rhs: Base) -> bool:
        """"""
        if isinstance(rhs, String):
            return self._check_optional(rhs)
        return super().coerces(rhs)


_SURFACE: Dict[str, type] = {
    "Boolean": Boolean,
    "Int": Int,
    "Float": Float,
    "String": String,
    "File": File,
}


def from_surface(text: str) -> Optional[Base]:
    """
    Map the surface text of a declared type onto an atomic type, e.g. ``"Int?"`` to
    ``Type.Int(optional=True)``. Returns ``None`` for compound and struct types.
    """
    text = text.strip()
    optional = text.endswith("?")
    if optional:
        text = text[:-1].rstrip()
    klass = _SURFACE.get(text)
    return klass(optional=optional) if klass else None
