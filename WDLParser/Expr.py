"""
WDL expressions compiled to Reverse Polish Notation (RPN), and their evaluation

Each expression appearing in a document (declaration initializers, call inputs, runtime values,
command and string placeholders, scatter & conditional controls) is represented by an
:class:`Expression` node whose ``rpn`` is a flat postfix sequence of items:

* a ``WDLParser.Value.Base`` literal
* an :class:`Identifier` referencing a named value, possibly dotted
* an :class:`Operator`
* a nested :class:`Expression` (grouped, unary and placeholder sub-expressions), which is
  evaluated recursively and contributes a single value
* an :class:`Apply` of a function or compound-value constructor to the preceding operands

For example ``3+4*2/(1-5*2)+3`` compiles to::

    [3, 4, 2, mul, Expression([1, 5, 2, mul, sub]), div, add, 3, add]

An expression can be evaluated to a ``Value`` against an environment: a ``WDLParser.Scope.Scope``
(resolving identifiers through the scope chain, evaluating declarations' initializers as needed)
or a mapping of names to values.
"""
from enum import Enum
from typing import List, Optional, Dict, Union, Iterable, Mapping, Set, Any
from .Error import SourcePosition, SourceNode, NodeKind
from .Scope import Scope
from . import Type, Value, Error, StdLib


class Operator(Enum):
    """Operator tags appearing in RPN"""

    NEG = "neg"
    NOT = "not"
    MUL = "mul"
    DIV = "div"
    MOD = "mod"
    ADD = "add"
    SUB = "sub"
    EQ = "eq"
    NEQ = "neq"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    AND = "and"
    OR = "or"
    STR = "str"
    """string interpolation: coerce the top of the stack to String"""

    @property
    def arity(self) -> int:
        """:type: int"""
        return 1 if self in (Operator.NEG, Operator.NOT, Operator.STR) else 2

    def __str__(self) -> str:
        return self.value


class Identifier:
    """
    A reference to a named value, e.g. ``x`` or ``hello.greeting``
    """

    name: str
    """:type: str

    Name, possibly including a dot-separated namespace
    """

    is_reference: bool
    """:type: bool"""

    def __init__(self, name: str, is_reference: bool = True) -> None:
        assert name and not name.endswith(".") and not name.startswith(".") and ".." not in name
        self.name = name
        self.is_reference = is_reference

    def __eq__(self, rhs: object) -> bool:
        return (
            isinstance(rhs, Identifier)
            and self.name == rhs.name
            and self.is_reference == rhs.is_reference
        )

    def __hash__(self) -> int:
        return hash((self.name, self.is_reference))

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return "Identifier({})".format(repr(self.name))


class Apply:
    """
    Application of the named function to the ``arity`` preceding operands. Compound-value
    constructors use reserved names: ``_array``, ``_pair``, ``_map``, ``_object``, ``_struct``,
    ``_at``, ``_get`` and ``_ifthenelse``.
    """

    function_name: str
    """:type: str"""

    arity: int
    """:type: int"""

    def __init__(self, function_name: str, arity: int) -> None:
        assert arity >= 0
        self.function_name = function_name
        self.arity = arity

    def __eq__(self, rhs: object) -> bool:
        return (
            isinstance(rhs, Apply)
            and self.function_name == rhs.function_name
            and self.arity == rhs.arity
        )

    def __hash__(self) -> int:
        return hash((self.function_name, self.arity))

    def __str__(self) -> str:
        return "{}/{}".format(self.function_name, self.arity)

    def __repr__(self) -> str:
        return "Apply({}, {})".format(repr(self.function_name), self.arity)


RPNItem = Union[Value.Base, Identifier, Operator, Apply, "Expression"]

PLACEHOLDER_OPTIONS = ("sep", "true", "false", "default")


class Expression(SourceNode):
    """
    A compiled expression
    """

    kind = NodeKind.EXPRESSION
    accepts = frozenset([NodeKind.EXPRESSION])

    rpn: List[RPNItem]
    """
    :type: List[Union[WDLParser.Value.Base, Identifier, Operator, Apply, Expression]]

    Postfix item sequence
    """

    placeholder_options: Dict[str, Value.Base]
    """
    :type: Dict[str, WDLParser.Value.Base]

    For an interpolation placeholder ``~{default="x" y}``, its options (``sep``, ``true``,
    ``false``, ``default``)
    """

    _subexpressions: "List[Expression]"

    def __init__(self, start: int, end: int, pos: Optional[SourcePosition] = None) -> None:
        super().__init__(start, end, pos)
        self.rpn = []
        self.placeholder_options = {}
        self._subexpressions = []

    def __str__(self) -> str:
        return "[{}]".format(", ".join(_item_str(item) for item in self.rpn))

    def __repr__(self) -> str:
        return "Expression({})".format(str(self))

    @property
    def children(self) -> Iterable[SourceNode]:
        """"""
        return list(self._subexpressions)

    def _adopt(self, child: SourceNode) -> None:
        assert isinstance(child, Expression)
        self._subexpressions.append(child)

    def emit(self, item: RPNItem) -> None:
        """Append an item to the RPN"""
        assert isinstance(item, (Value.Base, Identifier, Operator, Apply, Expression)), item
        self.rpn.append(item)

    @property
    def literal(self) -> Optional[Value.Base]:
        """
        :type: Optional[WDLParser.Value.Base]

        If the expression consists of a single literal value, that value
        """
        if len(self.rpn) == 1 and isinstance(self.rpn[0], Value.Base):
            return self.rpn[0]
        return None

    def eval(
        self,
        env: "Union[Scope, Mapping[str, Value.Base], None]" = None,
        stdlib: Optional[StdLib.Base] = None,
        inputs: Optional[Mapping[str, Value.Base]] = None,
        max_depth: int = 100,
    ) -> Value.Base:
        """
        Evaluate the expression

        :param env: a ``WDLParser.Scope.Scope`` through which to resolve identifiers, or a mapping
                    of (possibly dotted) names to values
        :param stdlib: operator & function implementations, default ``WDLParser.StdLib.Base()``
        :param inputs: values taking precedence over the environment, keyed by name
        :param max_depth: limit on nested evaluation of declarations found through ``env``
        :raise WDLParser.Error.EvalError: evaluation failed
        :raise WDLParser.Error.UnknownIdentifier: an identifier has no value
        """
        return _Evaluator(env, stdlib, inputs, max_depth).expression(
            self, env if isinstance(env, Scope) else None
        )


def eval_rpn(
    rpn: List[RPNItem],
    env: "Union[Scope, Mapping[str, Value.Base], None]" = None,
    stdlib: Optional[StdLib.Base] = None,
    inputs: Optional[Mapping[str, Value.Base]] = None,
    max_depth: int = 100,
) -> Value.Base:
    """
    Evaluate an RPN item sequence (see :meth:`Expression.eval`)
    """
    return _Evaluator(env, stdlib, inputs, max_depth).rpn(
        rpn, env if isinstance(env, Scope) else None, None
    )


def _item_str(item: Any) -> str:
    if isinstance(item, Expression):
        return "Expression" + str(item)
    return str(item)


class _Evaluator:
    # one evaluation: environment, stdlib, and the declarations currently being evaluated

    env: "Union[Scope, Mapping[str, Value.Base], None]"
    stdlib: StdLib.Base
    inputs: Mapping[str, Value.Base]
    max_depth: int
    _active: Set[int]

    def __init__(
        self,
        env: "Union[Scope, Mapping[str, Value.Base], None]",
        stdlib: Optional[StdLib.Base],
        inputs: Optional[Mapping[str, Value.Base]],
        max_depth: int,
    ) -> None:
        self.env = env
        self.stdlib = stdlib or StdLib.Base()
        self.inputs = inputs or {}
        self.max_depth = max_depth
        self._active = set()

    def expression(self, expr: Expression, scope: Optional[Scope]) -> Value.Base:
        try:
            ans = self.rpn(expr.rpn, scope, expr)
        except (Error.EvalError, Error.ValidationError) as exn:
            if exn.node is None and exn.pos is None:
                exn.node = expr
                exn.pos = expr.pos
            raise
        opts = expr.placeholder_options
        if opts:
            if isinstance(ans, Value.Null) and "default" in opts:
                ans = opts["default"]
            elif isinstance(ans, Value.Boolean) and ("true" if ans.value else "false") in opts:
                ans = opts["true" if ans.value else "false"].coerce(Type.String())
        return ans

    def rpn(
        self, items: List[RPNItem], scope: Optional[Scope], node: Optional[Expression]
    ) -> Value.Base:
        stack: List[Value.Base] = []
        for item in items:
            if isinstance(item, Value.Base):
                stack.append(item)
            elif isinstance(item, Identifier):
                stack.append(self.lookup(item.name, scope, node))
            elif isinstance(item, Expression):
                stack.append(self.expression(item, scope))
            elif isinstance(item, Operator):
                arguments = _pop(stack, item.arity, node, str(item))
                stack.append(self.stdlib.operator(item.value)(node, arguments))
            elif isinstance(item, Apply):
                fn = self.stdlib.function(node, item.function_name)
                arguments = _pop(stack, item.arity, node, item.function_name)
                stack.append(fn(node, arguments))
            else:
                raise Error.MalformedExpression(node, "unexpected RPN item " + repr(item))
        if len(stack) != 1:
            raise Error.MalformedExpression(
                node, "expression left {} values on the stack".format(len(stack))
            )
        return stack[0]

    def lookup(self, name: str, scope: Optional[Scope], node: Optional[Expression]) -> Value.Base:
        if name in self.inputs:
            return self.inputs[name]
        if scope is None:
            if isinstance(self.env, Mapping) and name in self.env:
                return self.env[name]
            raise Error.UnknownIdentifier(node, name)
        try:
            defining, symbol = scope.find_dotted(name.split("."))
        except Error.UnknownIdentifier:
            raise Error.UnknownIdentifier(node, name) from None
        if symbol.kind != NodeKind.DECL or getattr(symbol, "declared_type", "") == "struct":
            raise Error.UnknownIdentifier(
                node, name, "{} is a {}, not a value".format(name, symbol.kind.value)
            )
        initializer = getattr(symbol, "initializer", None)
        if initializer is None:
            raise Error.UnknownIdentifier(node, name, "No value for " + name)
        if id(symbol) in self._active:
            raise Error.CircularDependencies(node, name)
        if len(self._active) >= self.max_depth:
            raise Error.EvalError(node, "declarations nested too deeply evaluating " + name)
        self._active.add(id(symbol))
        try:
            ans = self.expression(initializer, defining)
        finally:
            self._active.discard(id(symbol))
        declared = Type.from_surface(getattr(symbol, "declared_type"))
        if declared is not None:
            try:
                ans = ans.coerce(declared)
            except Error.IncompatibleOperand as exn:
                raise Error.IncompatibleOperand(symbol, "{}: {}".format(name, str(exn))) from None
        return ans


def _pop(
    stack: List[Value.Base], n: int, node: Optional[Expression], what: str
) -> List[Value.Base]:
    if len(stack) < n:
        raise Error.MalformedExpression(
            node, "{} needs {} operand(s), found {}".format(what, n, len(stack))
        )
    if not n:
        return []
    ans = stack[-n:]
    del stack[-n:]
    return ans
