# pylint: disable=protected-access
"""
Operator tables and the library of primitive-typed functions available to the evaluator

An instance of :class:`Base` has an attribute for each operator (``_add``, ``_lt``, ...) and each
callable function (``floor``, ``sub``, ...), holding a :class:`Function` object which checks the
operand types, applies WDL's promotion rules and computes the result.

Subclasses may replace these objects or add new ones, e.g.::

    class MyStdLib(WDLParser.StdLib.Base):
        def __init__(self):
            super().__init__()
            self.length = WDLParser.StdLib.StaticFunction(
                "length", [WDLParser.Type.String()], WDLParser.Type.Int(),
                lambda s: WDLParser.Value.Int(len(s.value)),
            )
"""
import math
import os
from typing import List, Callable, Optional, Union
from abc import ABC, abstractmethod
import regex
from . import Type, Value, Error
from .Error import SourceNode, SourcePosition

Node = Union[SourceNode, SourcePosition, None]

OPERATORS = (
    "neg",
    "not",
    "str",
    "mul",
    "div",
    "mod",
    "add",
    "sub",
    "eq",
    "neq",
    "lt",
    "lte",
    "gt",
    "gte",
    "and",
    "or",
)


class Base:
    """
    Base class for standard library implementations. An instance has an attribute with the name
    of each available function and a ``Function`` object providing its implementation.
    """

    wdl_version: str

    def __init__(self, wdl_version: str = "1.1") -> None:
        self.wdl_version = wdl_version

        # operators
        self._neg = _Negate()
        self._not = StaticFunction(
            "!", [Type.Boolean()], Type.Boolean(), lambda x: Value.Boolean(not x.value)
        )
        self._str = _Stringify()
        self._add = _AddOperator()
        self._sub = _ArithmeticOperator("-", lambda l, r: l - r)
        self._mul = _ArithmeticOperator("*", lambda l, r: l * r)
        self._div = _ArithmeticOperator("/", _int_div, _float_div)
        self._mod = _ArithmeticOperator("%", _int_mod, _float_mod)
        self._eq = _ComparisonOperator("==", lambda l, r: l == r)
        self._neq = _ComparisonOperator("!=", lambda l, r: l != r)
        self._lt = _ComparisonOperator("<", lambda l, r: l < r)
        self._lte = _ComparisonOperator("<=", lambda l, r: l <= r)
        self._gt = _ComparisonOperator(">", lambda l, r: l > r)
        self._gte = _ComparisonOperator(">=", lambda l, r: l >= r)
        self._and = _LogicalOperator("&&", lambda l, r: l and r)
        self._or = _LogicalOperator("||", lambda l, r: l or r)

        # language built-ins
        self._ifthenelse = _IfThenElse()
        for name, what in [
            ("_array", "Array"),
            ("_pair", "Pair"),
            ("_map", "Map"),
            ("_object", "Object"),
            ("_struct", "struct"),
            ("_at", "Array/Map element"),
            ("_get", "member access"),
        ]:
            setattr(self, name, _Unsupported(name, what))

        # static stdlib functions
        def static(
            argument_types: List[Type.Base], return_type: Type.Base, name: Optional[str] = None
        ):
            """
            helper/decorator to create a static function from type signature and a lambda
            """
            return lambda F: setattr(
                self,
                name or F.__name__,
                StaticFunction(name or F.__name__, argument_types, return_type, F),
            )

        static([Type.Float()], Type.Int(), "floor")(lambda v: Value.Int(math.floor(v.value)))
        static([Type.Float()], Type.Int(), "ceil")(lambda v: Value.Int(math.ceil(v.value)))
        static([Type.Float()], Type.Int(), "round")(
            lambda v: Value.Int(math.floor(v.value + 0.5))
        )

        @static([Type.String(), Type.String(), Type.String()], Type.String())
        def sub(input: Value.String, pattern: Value.String, replace: Value.String) -> Value.String:
            return Value.String(
                regex.compile(pattern.value, flags=regex.POSIX).sub(replace.value, input.value)
            )

        static([Type.String(), Type.String(optional=True)], Type.String())(basename)

        @static([Type.Any(optional=True)], Type.Boolean())
        def defined(v: Value.Base):
            return Value.Boolean(not isinstance(v, Value.Null))

        self.min = _MinMax("min", min)
        self.max = _MinMax("max", max)

    def operator(self, name: str) -> "Function":
        """
        Look up the implementation of an operator by its name, e.g. ``add``
        """
        assert name in OPERATORS, name
        return getattr(self, "_" + name)

    def function(self, node: Node, name: str) -> "Function":
        """
        Look up a function by name, for an ``Apply`` item in an expression

        :raise WDLParser.Error.UnknownIdentifier: no such function
        """
        ans = None
        if not (name.startswith("_") and name[1:] in OPERATORS):
            ans = getattr(self, name, None)
        if not isinstance(ans, Function):
            raise Error.UnknownIdentifier(node, name, "No such function: " + name)
        return ans


class Function(ABC):
    # Abstract interface to a standard library function implementation; arguments are
    # evaluated eagerly by the caller

    name: str

    @abstractmethod
    def __call__(self, node: Node, arguments: List[Value.Base]) -> Value.Base:
        pass


class StaticFunction(Function):
    # Function helper for static argument and return types.
    # In this case the boilerplate can handle the coercions.

    argument_types: List[Type.Base]
    return_type: Type.Base
    F: Callable

    def __init__(
        self, name: str, argument_types: List[Type.Base], return_type: Type.Base, F: Callable
    ) -> None:
        self.name = name
        self.argument_types = argument_types
        self.return_type = return_type
        self.F = F

    def __call__(self, node: Node, arguments: List[Value.Base]) -> Value.Base:
        min_args = len(self.argument_types)
        for ty in reversed(self.argument_types):
            if ty.optional:
                min_args = min_args - 1
            else:
                break
        if len(arguments) > len(self.argument_types) or len(arguments) < min_args:
            raise Error.IncompatibleOperand(
                node,
                "{} expects {} argument(s), not {}".format(
                    self.name, len(self.argument_types), len(arguments)
                ),
            )
        argument_values = []
        for i, (arg, ty) in enumerate(zip(arguments, self.argument_types)):
            try:
                argument_values.append(arg.coerce(ty))
            except Error.IncompatibleOperand:
                raise Error.IncompatibleOperand(
                    node,
                    "{} argument #{} should be {}, not {}".format(
                        self.name, i + 1, str(ty), str(arg.type)
                    ),
                ) from None
        try:
            ans: Value.Base = self.F(*argument_values)
        except (OverflowError, ValueError, regex.error) as exn:
            msg = "function evaluation failed"
            if str(exn):
                msg += ", " + str(exn)
            raise Error.ArithmeticError(node, msg) from exn
        return ans.coerce(self.return_type)


def basename(*args) -> Value.String:
    assert len(args) in (1, 2)
    assert isinstance(args[0], Value.String)
    path = args[0].value
    if len(args) > 1 and isinstance(args[1], Value.String):
        suffix = args[1].value
        if suffix and path.endswith(suffix):
            path = path[: -len(suffix)]
    return Value.String(os.path.basename(path))


_INT_MIN = -(2 ** 63)
_INT_RANGE = 2 ** 64


def _wrap(x: int) -> int:
    # two's-complement 64-bit
    return (x - _INT_MIN) % _INT_RANGE + _INT_MIN


def _int_div(l: int, r: int) -> int:
    # truncating toward zero
    if r == 0:
        raise ZeroDivisionError("integer division by zero")
    q = abs(l) // abs(r)
    return q if (l < 0) == (r < 0) else -q


def _int_mod(l: int, r: int) -> int:
    # sign follows the dividend
    if r == 0:
        raise ZeroDivisionError("integer modulo by zero")
    return l - r * _int_div(l, r)


def _float_div(l: float, r: float) -> float:
    if r == 0.0:
        if l == 0.0 or math.isnan(l):
            return math.nan
        return math.copysign(math.inf, l) * math.copysign(1.0, r)
    return l / r


def _float_mod(l: float, r: float) -> float:
    try:
        return math.fmod(l, r)
    except ValueError:
        return math.nan


def _check_not_null(node: Node, name: str, arguments: List[Value.Base]) -> None:
    for arg in arguments:
        if isinstance(arg.type, Type.Any):
            raise Error.IncompatibleOperand(node, "None operand to {} operator".format(name))


def _numeric(arg: Value.Base) -> bool:
    return isinstance(arg, (Value.Int, Value.Float))


def _stringish(arg: Value.Base) -> bool:
    return isinstance(arg, Value.String)


class _ArithmeticOperator(Function):
    # arithmetic infix operators
    # operands may be Int or Float; return Float iff either operand is Float

    op: Callable
    float_op: Callable

    def __init__(self, name: str, op: Callable, float_op: Optional[Callable] = None) -> None:
        self.name = name
        self.op = op
        self.float_op = float_op or op

    def __call__(self, node: Node, arguments: List[Value.Base]) -> Value.Base:
        assert len(arguments) == 2
        _check_not_null(node, self.name, arguments)
        if not (_numeric(arguments[0]) and _numeric(arguments[1])):
            raise Error.IncompatibleOperand(
                node,
                "Non-numeric operand to {} operator: {} {} {}".format(
                    self.name, str(arguments[0].type), self.name, str(arguments[1].type)
                ),
            )
        if isinstance(arguments[0], Value.Int) and isinstance(arguments[1], Value.Int):
            try:
                return Value.Int(_wrap(self.op(arguments[0].value, arguments[1].value)))
            except ZeroDivisionError as exn:
                raise Error.ArithmeticError(node, str(exn)) from None
        ans = self.float_op(
            arguments[0].coerce(Type.Float()).value, arguments[1].coerce(Type.Float()).value
        )
        assert isinstance(ans, float)
        return Value.Float(ans)


class _AddOperator(_ArithmeticOperator):
    # + operator can also serve as concatenation for String and File.
    def __init__(self) -> None:
        super().__init__("+", lambda l, r: l + r)

    def __call__(self, node: Node, arguments: List[Value.Base]) -> Value.Base:
        assert len(arguments) == 2
        _check_not_null(node, self.name, arguments)
        lhs, rhs = arguments
        if _stringish(lhs) and _stringish(rhs):
            if isinstance(lhs, Value.File) or isinstance(rhs, Value.File):
                return Value.File(lhs.value + rhs.value)
            return Value.String(lhs.value + rhs.value)
        if (isinstance(lhs, Value.String) and not isinstance(lhs, Value.File) and _numeric(rhs)) or (
            isinstance(rhs, Value.String) and not isinstance(rhs, Value.File) and _numeric(lhs)
        ):
            return Value.String(lhs.text + rhs.text)
        if _stringish(lhs) or _stringish(rhs):
            raise Error.IncompatibleOperand(
                node,
                "Cannot add/concatenate {} and {}".format(str(lhs.type), str(rhs.type)),
            )
        return super().__call__(node, arguments)


class _ComparisonOperator(Function):
    # Comparison operators compare two operands of the same type. Given one Int and one Float,
    # coerces the Int to Float for comparison. Booleans compare by their text ("false" < "true");
    # Files support only equality.

    op: Callable

    def __init__(self, name: str, op: Callable) -> None:
        self.name = name
        self.op = op

    def __call__(self, node: Node, arguments: List[Value.Base]) -> Value.Base:
        assert len(arguments) == 2
        _check_not_null(node, self.name, arguments)
        lhs, rhs = arguments
        if isinstance(lhs, Value.Boolean) and isinstance(rhs, Value.Boolean):
            return Value.Boolean(self.op(lhs.text, rhs.text))
        if _numeric(lhs) and _numeric(rhs):
            if isinstance(lhs, Value.Float) or isinstance(rhs, Value.Float):
                return Value.Boolean(
                    self.op(lhs.coerce(Type.Float()).value, rhs.coerce(Type.Float()).value)
                )
            return Value.Boolean(self.op(lhs.value, rhs.value))
        if _stringish(lhs) and _stringish(rhs):
            if (
                isinstance(lhs, Value.File) or isinstance(rhs, Value.File)
            ) and self.name not in ("==", "!="):
                raise Error.IncompatibleOperand(
                    node, "Cannot order {} and {}".format(str(lhs.type), str(rhs.type))
                )
            return Value.Boolean(self.op(lhs.value, rhs.value))
        raise Error.IncompatibleOperand(
            node, "Cannot compare {} and {}".format(str(lhs.type), str(rhs.type))
        )


class _LogicalOperator(Function):
    op: Callable

    def __init__(self, name: str, op: Callable) -> None:
        self.name = name
        self.op = op

    def __call__(self, node: Node, arguments: List[Value.Base]) -> Value.Base:
        assert len(arguments) == 2
        _check_not_null(node, self.name, arguments)
        if not all(isinstance(arg, Value.Boolean) for arg in arguments):
            raise Error.IncompatibleOperand(
                node,
                "Non-Boolean operand to {} operator: {} {} {}".format(
                    self.name, str(arguments[0].type), self.name, str(arguments[1].type)
                ),
            )
        return Value.Boolean(bool(self.op(arguments[0].value, arguments[1].value)))


class _Negate(Function):
    name = "-"

    def __call__(self, node: Node, arguments: List[Value.Base]) -> Value.Base:
        assert len(arguments) == 1
        _check_not_null(node, self.name, arguments)
        arg = arguments[0]
        if isinstance(arg, Value.Int):
            return Value.Int(_wrap(-arg.value))
        if isinstance(arg, Value.Float):
            return Value.Float(-arg.value)
        raise Error.IncompatibleOperand(
            node, "Non-numeric operand to unary - operator: " + str(arg.type)
        )


class _Stringify(Function):
    # string interpolation: any primitive value to its text; None to the empty string
    name = "str"

    def __call__(self, node: Node, arguments: List[Value.Base]) -> Value.Base:
        assert len(arguments) == 1
        return Value.String(arguments[0].text)


class _IfThenElse(Function):
    name = "if-then-else"

    def __call__(self, node: Node, arguments: List[Value.Base]) -> Value.Base:
        if len(arguments) != 3:
            raise Error.IncompatibleOperand(
                node, "if-then-else expects 3 operands, not {}".format(len(arguments))
            )
        condition, consequent, alternative = arguments
        if not isinstance(condition, Value.Boolean):
            raise Error.IncompatibleOperand(
                node, "if-then-else condition should be Boolean, not " + str(condition.type)
            )
        ans = consequent if condition.value else alternative
        other = alternative if condition.value else consequent
        if isinstance(ans, Value.Int) and isinstance(other, Value.Float):
            return ans.coerce(Type.Float())
        return ans


class _MinMax(Function):
    op: Callable

    def __init__(self, name: str, op: Callable) -> None:
        self.name = name
        self.op = op

    def __call__(self, node: Node, arguments: List[Value.Base]) -> Value.Base:
        if len(arguments) != 2:
            raise Error.IncompatibleOperand(
                node, "{} expects 2 argument(s), not {}".format(self.name, len(arguments))
            )
        if not all(_numeric(arg) for arg in arguments):
            raise Error.IncompatibleOperand(
                node,
                "{} arguments should be Int or Float, not {} and {}".format(
                    self.name, str(arguments[0].type), str(arguments[1].type)
                ),
            )
        if all(isinstance(arg, Value.Int) for arg in arguments):
            return Value.Int(self.op(arguments[0].value, arguments[1].value))
        return Value.Float(
            self.op(arguments[0].coerce(Type.Float()).value, arguments[1].coerce(Type.Float()).value)
        )


class _Unsupported(Function):
    # compound values have no representation among the primitive values
    what: str

    def __init__(self, name: str, what: str) -> None:
        self.name = name
        self.what = what

    def __call__(self, node: Node, arguments: List[Value.Base]) -> Value.Base:
        raise Error.IncompatibleOperand(node, "{} values can't be evaluated".format(self.what))
