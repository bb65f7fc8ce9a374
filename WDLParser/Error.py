# pyre-strict
"""
Source positions, the AST node base class, and the exceptions raised or collected while parsing
WDL documents and evaluating their expressions.

Each exception class carries a ``code`` naming its place in the error taxonomy:

* ``syntax`` -- reported by the grammar and collected; parsing continues where it can recover
* ``kind-mismatch`` -- an AST child offered to an incompatible parent; the child is dropped
* ``redefinition`` -- a name collides within a scope/section; the later definition is ignored
* ``empty-name`` -- a symbol definition with an empty name
* ``mismatch-context`` -- a closing parse event which doesn't match the open section
* ``unresolved`` -- an identifier with no binding in scope
* ``type-mismatch`` / ``arithmetic`` / ``malformed-expression`` -- raised by the evaluator
"""
import json
from enum import Enum
from typing import (
    List,
    Optional,
    Union,
    Iterable,
    TypeVar,
    Generator,
    Callable,
    Any,
    NamedTuple,
    FrozenSet,
)
from contextlib import contextmanager


class SourcePosition(NamedTuple):
    """
    Source position attached to AST nodes and exceptions: ``uri`` the filename/URI passed to
    :func:`WDLParser.parse` (possibly relative); ``abspath`` the absolute filename/URI; and
    one-based int positions ``line`` ``column`` ``end_line`` ``end_column``
    """

    uri: str
    abspath: str
    line: int
    column: int
    end_line: int
    end_column: int


class NodeKind(Enum):
    """Kind tag carried by every AST node"""

    DOCUMENT = "document"
    IMPORT = "import"
    WORKFLOW = "workflow"
    TASK = "task"
    CALL = "call"
    SCATTER = "scatter"
    CONDITIONAL = "conditional"
    INPUT_BLOCK = "input-block"
    OUTPUT_BLOCK = "output-block"
    RUNTIME_BLOCK = "runtime-block"
    META_BLOCK = "meta-block"
    PARAMETER_META_BLOCK = "parameter-meta-block"
    COMMAND = "command"
    DECL = "declaration"
    KEY_VALUE = "key-value"
    EXPRESSION = "expression"


class SyntaxError(Exception):
    """Failure to lex/parse some part of a WDL document"""

    code: str = "syntax"

    line: int
    """:type: int

    one-based line number"""

    column: int
    """:type: int

    zero-based column number"""

    message: str
    pos: Optional[SourcePosition]

    def __init__(
        self, line: int, column: int, message: str, pos: Optional[SourcePosition] = None
    ) -> None:
        super().__init__(message)
        self.line = line
        self.column = column
        self.message = message
        self.pos = pos

    def __str__(self) -> str:
        return "line {}:{} {}".format(self.line, self.column, json.dumps(self.message))


TVSourceNode = TypeVar("TVSourceNode", bound="SourceNode")


class SourceNode:
    """Base class for an AST node, recording its character span and source position"""

    kind: NodeKind
    """
    :type: NodeKind
    """

    start: int
    """
    :type: int

    Zero-based offset of the node's first character in the source buffer
    """

    end: int
    """
    :type: int

    Zero-based offset of the node's last character (inclusive)
    """

    parent: "Optional[SourceNode]"
    """
    :type: Optional[SourceNode]

    Enclosing node, set when the node is attached to the tree; ``None`` for the document and
    for nodes which the parser dropped
    """

    pos: Optional[SourcePosition]
    """
    :type: Optional[SourcePosition]

    Line/column position, when the node was produced by the parser
    """

    accepts: FrozenSet[NodeKind] = frozenset()
    """
    :type: FrozenSet[NodeKind]

    Kinds of child node which :func:`WDLParser.Tree.attach_child` may attach to this node
    """

    def __init__(self, start: int, end: int, pos: Optional[SourcePosition] = None) -> None:
        self.start = start
        self.end = end
        self.parent = None
        self.pos = pos

    def _check(self, child: "SourceNode") -> None:
        # raise a ValidationError if child (of an accepted kind) can't be adopted
        pass

    def _adopt(self, child: "SourceNode") -> None:
        raise NotImplementedError()

    def __lt__(self, rhs: "SourceNode") -> bool:
        if isinstance(rhs, SourceNode):
            return (self.start, self.end) < (rhs.start, rhs.end)
        return NotImplemented

    def __repr__(self) -> str:
        return "<{} {} [{},{}]>".format(type(self).__name__, self.kind.value, self.start, self.end)

    @property
    def children(self: TVSourceNode) -> Iterable[TVSourceNode]:
        """
        :type: Iterable[SourceNode]

        Yield all child nodes, in source order
        """
        return []


class ValidationError(Exception):
    """
    Base class for a problem found while building the AST from a syntactically valid parse
    (these are collected on ``Document.errors`` rather than raised out of the parser)
    """

    code: str = "validation"

    pos: Optional[SourcePosition] = None
    """:type: Optional[SourcePosition]"""

    node: Optional[SourceNode] = None
    """:type: Optional[SourceNode]"""

    def __init__(self, node: Union[SourceNode, SourcePosition, None], message: str) -> None:
        if isinstance(node, SourceNode):
            self.node = node
            self.pos = node.pos
        else:
            self.pos = node
        super().__init__(message)


class KindMismatch(ValidationError):
    code = "kind-mismatch"

    def __init__(self, parent: SourceNode, child: SourceNode) -> None:
        super().__init__(
            child, "{} cannot contain {}".format(parent.kind.value, child.kind.value)
        )


class MultipleDefinitions(ValidationError):
    code = "redefinition"


class EmptyName(ValidationError):
    code = "empty-name"

    def __init__(self, node: Union[SourceNode, SourcePosition, None]) -> None:
        super().__init__(node, "cannot define a symbol with an empty name")


class MismatchContext(ValidationError):
    code = "mismatch-context"

    def __init__(
        self, pos: Optional[SourcePosition], expected: NodeKind, actual: Optional[NodeKind]
    ) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            pos,
            "end of {} while inside {}".format(
                expected.value, actual.value if actual else "nothing"
            ),
        )


class UnknownIdentifier(ValidationError):
    code = "unresolved"

    def __init__(
        self, node: Union[SourceNode, SourcePosition, None], name: str, message: str = ""
    ) -> None:
        self.name = name
        super().__init__(node, message or "Unknown identifier " + name)


class MultipleValidationErrors(Exception):
    """Propagates several validation errors"""

    exceptions: List[ValidationError]
    """:type: List[ValidationError]"""

    def __init__(self, *exceptions: Union[ValidationError, "MultipleValidationErrors"]) -> None:
        super().__init__()
        self.exceptions = []
        for exn in exceptions:
            if isinstance(exn, ValidationError):
                self.exceptions.append(exn)
            elif isinstance(exn, MultipleValidationErrors):
                self.exceptions.extend(exn.exceptions)
            else:
                assert False
        assert self.exceptions

    def __str__(self) -> str:
        return "; ".join(str(exn) for exn in self.exceptions)


class _MultiContext:
    """"""

    _exceptions: List[Union[ValidationError, MultipleValidationErrors]]

    def __init__(self) -> None:
        self._exceptions = []

    def try1(self, fn: Callable[[], Any]) -> Optional[Any]:  # pyre-ignore
        try:
            return fn()
        except (ValidationError, MultipleValidationErrors) as exn:
            self._exceptions.append(exn)
            return None

    def append(self, exn: Union[ValidationError, MultipleValidationErrors]) -> None:
        self._exceptions.append(exn)

    def maybe_raise(self) -> None:
        if len(self._exceptions) == 1:
            raise self._exceptions[0]
        if self._exceptions:
            raise MultipleValidationErrors(*self._exceptions) from self._exceptions[0]


@contextmanager
def multi_context() -> Generator[_MultiContext, None, None]:
    """"""
    # Context manager to assist with catching and propagating multiple validation errors
    #
    # with WDLParser.Error.multi_context() as errors:
    #     errors.try1(lambda: scope.define(name, node))
    #     errors.append(WDLParser.Error.EmptyName(node))
    #
    # Errors recorded with try1() or append() are raised together when the context closes.
    ctx = _MultiContext()
    yield ctx
    ctx.maybe_raise()


class EvalError(Exception):
    """Error evaluating a WDL expression"""

    code: str = "eval"

    pos: Optional[SourcePosition] = None
    """:type: Optional[SourcePosition]"""

    node: Optional[SourceNode] = None
    """:type: Optional[SourceNode]"""

    def __init__(self, node: Union[SourceNode, SourcePosition, None], message: str) -> None:
        if isinstance(node, SourceNode):
            self.node = node
            self.pos = node.pos
        else:
            self.pos = node
        super().__init__(message)


class IncompatibleOperand(EvalError):
    code = "type-mismatch"


class ArithmeticError(EvalError):
    code = "arithmetic"


class MalformedExpression(EvalError):
    code = "malformed-expression"


class CircularDependencies(EvalError):
    code = "circular-dependency"

    def __init__(self, node: Optional[SourceNode], name: str) -> None:
        super().__init__(node, "circular dependencies involving " + name)
