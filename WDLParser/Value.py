"""
WDL values produced by evaluating expressions

Each value is represented by an instance of a Python class inheriting from
``WDLParser.Value.Base``, carrying its ``type`` and the "raw" Python payload in ``value``. Literals
appear in compiled RPN as instances of these same classes.
"""
import json
import math
from abc import ABC
from decimal import Decimal
from typing import Any, Optional
from . import Error, Type


class Base(ABC):
    """The abstract base class for WDL values"""

    type: Type.Base
    ":type: WDLParser.Type.Base"

    value: Any
    """The "raw" Python value"""

    def __init__(self, type: Type.Base, value: Any) -> None:
        assert isinstance(type, Type.Base)
        self.type = type
        self.value = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Base):
            return NotImplemented
        if self.value is None:
            return other.value is None
        return self.type == other.type and self.value == other.value

    def __hash__(self) -> int:
        return hash((str(self.type), self.value))

    def __str__(self) -> str:
        return json.dumps(self.json)

    def __repr__(self) -> str:
        return "{}({})".format(type(self).__name__, repr(self.value))

    @property
    def text(self) -> str:
        """
        :type: str

        The value rendered as a WDL string, as by string interpolation
        """
        return str(self.value)

    def coerce(self, desired_type: Optional[Type.Base] = None) -> "Base":
        """
        Coerce the value to the desired atomic type and return it.

        :raises WDLParser.Error.IncompatibleOperand: if the value's type doesn't coerce
        """
        if isinstance(desired_type, Type.String) and not isinstance(self, (Null, String)):
            return String(self.text)
        if desired_type and not self.type.coerces(desired_type):
            raise Error.IncompatibleOperand(
                None, "cannot coerce {} to {}".format(str(self.type), str(desired_type))
            )
        return self

    @property
    def json(self) -> Any:
        """Return a value representation which can be serialized to JSON using ``json.dumps``"""
        return self.value


class Boolean(Base):
    """``value`` has Python type ``bool``"""

    def __init__(self, value: bool) -> None:
        super().__init__(Type.Boolean(), value)

    @property
    def text(self) -> str:
        """"""
        return "true" if self.value else "false"


class Float(Base):
    """``value`` has Python type ``float``"""

    def __init__(self, value: float) -> None:
        super().__init__(Type.Float(), value)

    def __str__(self) -> str:
        return repr(self.value)

    @property
    def text(self) -> str:
        """
        The shortest digits which round-trip, without a trailing ``.0``; in exponent notation
        (``1.5E+07``) when the decimal exponent is below -4 or at least 6
        """
        v = self.value
        if math.isnan(v):
            return "NaN"
        if math.isinf(v):
            return "+Inf" if v > 0 else "-Inf"
        sign = "-" if math.copysign(1.0, v) < 0 else ""
        digits = Decimal(repr(abs(v))).normalize()
        _, mantissa, exponent = digits.as_tuple()
        exp = len(mantissa) + exponent - 1
        if exp < -4 or exp >= 6:
            first, rest = str(mantissa[0]), "".join(str(d) for d in mantissa[1:])
            return "{}{}{}E{:+03d}".format(sign, first, "." + rest if rest else "", exp)
        return sign + format(digits, "f")


class Int(Base):
    """``value`` has Python type ``int`` within the signed 64-bit range"""

    def __init__(self, value: int) -> None:
        super().__init__(Type.Int(), value)

    def coerce(self, desired_type: Optional[Type.Base] = None) -> Base:
        """"""
        if isinstance(desired_type, Type.Float):
            return Float(float(self.value))
        return super().coerce(desired_type)


class String(Base):
    """``value`` has Python type ``str``"""

    def __init__(self, value: str, subtype: Optional[Type.Base] = None) -> None:
        super().__init__(subtype or Type.String(), value)

    def coerce(self, desired_type: Optional[Type.Base] = None) -> Base:
        """"""
        if isinstance(desired_type, Type.String) and isinstance(self, File):
            return String(self.value)
        if isinstance(desired_type, Type.File) and not isinstance(self, File):
            return File(self.value)
        return super().coerce(desired_type)


class File(String):
    """``value`` has Python type ``str``"""

    def __init__(self, value: str) -> None:
        super().__init__(value, subtype=Type.File())


class Null(Base):
    """Represents the WDL ``None`` literal; ``value`` is None and the type is ``Any``"""

    def __init__(self) -> None:
        super().__init__(Type.Any(null=True), None)

    def __str__(self) -> str:
        return "None"

    @property
    def text(self) -> str:
        """"""
        return ""

    def coerce(self, desired_type: Optional[Type.Base] = None) -> Base:
        """"""
        if desired_type and not desired_type.optional and not isinstance(desired_type, Type.Any):
            raise Error.IncompatibleOperand(
                None, "'None' for non-optional {}".format(str(desired_type))
            )
        return self


def from_json(type: Type.Base, value: Any) -> Base:
    """
    Instantiate a WDL value of the specified atomic type from a parsed JSON value (str, int,
    float, bool or null).

    If type is :class:`WDLParser.Type.Any()`, infers the WDL type from the JSON's intrinsic type
    (Files can't be distinguished from Strings this way).

    :raise WDLParser.Error.IncompatibleOperand: if the given value isn't coercible to the type
    """
    if isinstance(type, Type.Any):
        return _infer_from_json(value)
    if isinstance(type, Type.Boolean) and value in [True, False]:
        return Boolean(value)
    if isinstance(type, Type.Int) and isinstance(value, int) and not isinstance(value, bool):
        return Int(value)
    if isinstance(type, Type.Float) and isinstance(value, (float, int)):
        return Float(float(value))
    if isinstance(type, Type.File) and isinstance(value, str):
        return File(value)
    if isinstance(type, Type.String) and isinstance(value, str):
        return String(value)
    if type.optional and value is None:
        return Null()
    raise Error.IncompatibleOperand(
        None, f"couldn't construct {str(type)} from {json.dumps(value)}"
    )


def _infer_from_json(j: Any) -> Base:
    if isinstance(j, str):
        return String(j)
    if isinstance(j, bool):
        return Boolean(j)
    if isinstance(j, int):
        return Int(j)
    if isinstance(j, float):
        return Float(j)
    if j is None:
        return Null()
    raise Error.IncompatibleOperand(None, f"couldn't construct value from: {json.dumps(j)}")
