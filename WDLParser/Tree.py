"""
Abstract syntax tree (AST) for WDL documents, containing imports, struct definitions, tasks and
a workflow, which contain declarations, calls, sections of key/value pairs, and scatter & if
sections. The AST is typically constructed by :func:`~WDLParser.parse`.

Every node carries a ``kind`` tag, its character span ``start``/``end`` (zero-based, inclusive)
within the source buffer, and a ``parent`` back-reference. Nodes are attached to their parents
with :func:`attach_child`, which checks that the parent accepts the child's kind and files the
child in the parent's typed lists (``Document.tasks``, ``Workflow.calls``, ...).

The ``WDLParser.Tree.*`` classes are also exported by the base ``WDLParser`` module, i.e.
``WDLParser.Tree.Document`` can be abbreviated ``WDLParser.Document``.
"""
import posixpath
from typing import Any, List, Optional, Dict, Iterable, Callable
from .Error import SourcePosition, SourceNode, NodeKind
from .Expr import Expression
from .Scope import Scope
from . import Error


def attach_child(
    parent: SourceNode, child: SourceNode, define: Optional[Callable[[], None]] = None
) -> SourceNode:
    """
    Attach ``child`` beneath ``parent``, returning the attached node.

    * The parent must accept the child's kind, else :class:`~WDLParser.Error.KindMismatch`.
    * A child of the same kind and identical span as an existing child is the same node: the
      existing one is returned and nothing changes.
    * The parent may reject the child on its own terms, e.g. a second workflow in a document or a
      duplicate key in a meta section (:class:`~WDLParser.Error.MultipleDefinitions`).
    * ``define``, if given, is called last before adoption (to define the child's name in some
      scope); an exception it raises also leaves the child unattached.
    """
    if child.kind not in parent.accepts:
        raise Error.KindMismatch(parent, child)
    for existing in parent.children:
        if existing.kind == child.kind and (existing.start, existing.end) == (
            child.start,
            child.end,
        ):
            return existing
    parent._check(child)
    if define:
        define()
    parent._adopt(child)
    child.parent = parent
    return child


class Decl(SourceNode):
    """
    A value declaration, ``Type name`` or ``Type name = expr``
    """

    kind = NodeKind.DECL
    accepts = frozenset([NodeKind.EXPRESSION])

    identifier: str
    """:type: str"""

    declared_type: str
    """
    :type: str

    Type as written, e.g. ``Array[File]+`` or ``Int?``
    """

    initializer: Optional[Expression]
    """
    :type: Optional[WDLParser.Expr.Expression]

    Bound expression, if any"""

    def __init__(
        self,
        start: int,
        end: int,
        identifier: str,
        declared_type: str,
        pos: Optional[SourcePosition] = None,
    ) -> None:
        super().__init__(start, end, pos)
        self.identifier = identifier
        self.declared_type = declared_type
        self.initializer = None

    def __str__(self) -> str:
        if self.initializer is None:
            return "{} {}".format(self.declared_type, self.identifier)
        return "{} {} = {}".format(self.declared_type, self.identifier, str(self.initializer))

    @property
    def children(self) -> Iterable[SourceNode]:
        """"""
        return [self.initializer] if self.initializer else []

    def _check(self, child: SourceNode) -> None:
        if self.initializer is not None:
            raise Error.MultipleDefinitions(
                child, "declaration of {} already has an initializer".format(self.identifier)
            )

    def _adopt(self, child: SourceNode) -> None:
        assert isinstance(child, Expression)
        self.initializer = child


class StructTypeDef(Decl):
    """WDL struct type definition, ``struct Name { Type member ... }``"""

    accepts = frozenset([NodeKind.DECL])

    members: List[Decl]
    """
    :type: List[WDLParser.Tree.Decl]

    Member declarations, in order
    """

    def __init__(
        self, start: int, end: int, name: str, pos: Optional[SourcePosition] = None
    ) -> None:
        super().__init__(start, end, name, "struct", pos)
        self.members = []

    @property
    def name(self) -> str:
        """:type: str"""
        return self.identifier

    def __str__(self) -> str:
        return "struct {}".format(self.identifier)

    @property
    def children(self) -> Iterable[SourceNode]:
        """"""
        return list(self.members)

    def _check(self, child: SourceNode) -> None:
        assert isinstance(child, Decl)
        if isinstance(child, StructTypeDef):
            raise Error.KindMismatch(self, child)
        if any(member.identifier == child.identifier for member in self.members):
            raise Error.MultipleDefinitions(
                child,
                "struct {} has multiple members named {}".format(self.identifier, child.identifier),
            )

    def _adopt(self, child: SourceNode) -> None:
        assert isinstance(child, Decl)
        self.members.append(child)


class KeyValue(SourceNode):
    """
    A ``key: value`` entry of a meta, parameter_meta or runtime section, or a ``key = value``
    call input. ``value`` is the right-hand side's source text, as written (string literals keep
    their quotes); for a call input in shorthand form (``input: x``) it's the key itself.
    """

    kind = NodeKind.KEY_VALUE
    accepts = frozenset([NodeKind.EXPRESSION])

    key: str
    """:type: str"""

    value: str
    """:type: str"""

    expression: Optional[Expression]
    """
    :type: Optional[WDLParser.Expr.Expression]

    Compiled right-hand side (runtime entries and call inputs)"""

    def __init__(
        self, start: int, end: int, key: str, value: str, pos: Optional[SourcePosition] = None
    ) -> None:
        super().__init__(start, end, pos)
        self.key = key
        self.value = value
        self.expression = None

    def __str__(self) -> str:
        return "{}: {}".format(self.key, self.value)

    @property
    def children(self) -> Iterable[SourceNode]:
        """"""
        return [self.expression] if self.expression else []

    def _check(self, child: SourceNode) -> None:
        if self.expression is not None:
            raise Error.MultipleDefinitions(child, "{} already has a value".format(self.key))

    def _adopt(self, child: SourceNode) -> None:
        assert isinstance(child, Expression)
        self.expression = child


class Block(SourceNode):
    """
    A section within a task or workflow: ``input{}``, ``output{}``, ``meta{}``,
    ``parameter_meta{}``, ``runtime{}`` or ``command``. The block node keeps its own items in
    ``items`` and files them in the owning task/workflow's typed lists (``inputs``, ``meta``, ...)
    once it's attached there.
    """

    items: List[SourceNode]
    """:type: List[WDLParser.Error.SourceNode]"""

    _ACCEPTS = {
        NodeKind.INPUT_BLOCK: frozenset([NodeKind.DECL]),
        NodeKind.OUTPUT_BLOCK: frozenset([NodeKind.DECL]),
        NodeKind.META_BLOCK: frozenset([NodeKind.KEY_VALUE]),
        NodeKind.PARAMETER_META_BLOCK: frozenset([NodeKind.KEY_VALUE]),
        NodeKind.RUNTIME_BLOCK: frozenset([NodeKind.KEY_VALUE]),
        NodeKind.COMMAND: frozenset([NodeKind.EXPRESSION]),
    }

    def __init__(
        self, start: int, end: int, kind: NodeKind, pos: Optional[SourcePosition] = None
    ) -> None:
        assert kind in Block._ACCEPTS
        super().__init__(start, end, pos)
        self.kind = kind
        self.accepts = Block._ACCEPTS[kind]
        self.items = []

    @property
    def children(self) -> Iterable[SourceNode]:
        """"""
        return list(self.items)

    def _check(self, child: SourceNode) -> None:
        if isinstance(child, StructTypeDef):
            raise Error.KindMismatch(self, child)
        if isinstance(child, KeyValue):
            for item in self.items:
                if isinstance(item, KeyValue) and item.key == child.key:
                    raise Error.MultipleDefinitions(
                        child,
                        "duplicate key {} in {} section; the first definition is kept".format(
                            child.key, self.kind.value.replace("-block", "")
                        ),
                    )

    def _adopt(self, child: SourceNode) -> None:
        self.items.append(child)
        owner = self.parent
        if isinstance(owner, _Executable):
            owner._file_block_item(self, child)


class _Executable(SourceNode):
    # common structure of Workflow and Task

    name: str
    """:type: str"""

    inputs: List[Decl]
    """:type: List[WDLParser.Tree.Decl]

    Declarations in the ``input{}`` section"""

    private_decls: List[Decl]
    """:type: List[WDLParser.Tree.Decl]

    Declarations in the body, outside of the ``input{}`` and ``output{}`` sections"""

    outputs: List[Decl]
    """:type: List[WDLParser.Tree.Decl]

    Declarations in the ``output{}`` section"""

    meta: Dict[str, str]
    """:type: Dict[str,str]

    ``meta{}`` section, keys to values' source text"""

    parameter_meta: Dict[str, str]
    """:type: Dict[str,str]

    ``parameter_meta{}`` section, keys to values' source text"""

    raw_elements: List[str]
    """:type: List[str]

    Source text of each element of the body, in order"""

    scope: Scope
    """:type: WDLParser.Scope.Scope"""

    input_block: Optional[Block] = None
    output_block: Optional[Block] = None
    meta_block: Optional[Block] = None
    parameter_meta_block: Optional[Block] = None

    _BLOCK_ATTRS = {
        NodeKind.INPUT_BLOCK: "input_block",
        NodeKind.OUTPUT_BLOCK: "output_block",
        NodeKind.META_BLOCK: "meta_block",
        NodeKind.PARAMETER_META_BLOCK: "parameter_meta_block",
        NodeKind.RUNTIME_BLOCK: "runtime_block",
        NodeKind.COMMAND: "command_block",
    }

    def __init__(
        self, start: int, end: int, name: str, pos: Optional[SourcePosition] = None
    ) -> None:
        super().__init__(start, end, pos)
        self.name = name
        self.inputs = []
        self.private_decls = []
        self.outputs = []
        self.meta = {}
        self.parameter_meta = {}
        self.raw_elements = []
        self.scope = Scope(self)

    def __str__(self) -> str:
        return "{} {}".format(self.kind.value, self.name)

    def _blocks(self) -> List[Block]:
        return [
            getattr(self, attr)
            for attr in self._BLOCK_ATTRS.values()
            if getattr(self, attr, None) is not None
        ]

    def _check(self, child: SourceNode) -> None:
        if isinstance(child, StructTypeDef):
            raise Error.KindMismatch(self, child)
        if isinstance(child, Block) and getattr(self, self._BLOCK_ATTRS[child.kind]) is not None:
            raise Error.MultipleDefinitions(
                child,
                "redundant {} section in {} {}".format(
                    child.kind.value.replace("-block", ""), self.kind.value, self.name
                ),
            )

    def _adopt(self, child: SourceNode) -> None:
        if isinstance(child, Block):
            setattr(self, self._BLOCK_ATTRS[child.kind], child)
            for item in child.items:
                self._file_block_item(child, item)
        elif isinstance(child, Decl):
            self.private_decls.append(child)
        else:
            assert False, child

    def _file_block_item(self, block: Block, item: SourceNode) -> None:
        if block.kind == NodeKind.INPUT_BLOCK:
            assert isinstance(item, Decl)
            self.inputs.append(item)
        elif block.kind == NodeKind.OUTPUT_BLOCK:
            assert isinstance(item, Decl)
            self.outputs.append(item)
        elif block.kind == NodeKind.META_BLOCK:
            assert isinstance(item, KeyValue)
            self.meta[item.key] = item.value
        elif block.kind == NodeKind.PARAMETER_META_BLOCK:
            assert isinstance(item, KeyValue)
            self.parameter_meta[item.key] = item.value


class Task(_Executable):
    """
    WDL Task
    """

    kind = NodeKind.TASK
    accepts = frozenset(
        [
            NodeKind.INPUT_BLOCK,
            NodeKind.OUTPUT_BLOCK,
            NodeKind.META_BLOCK,
            NodeKind.PARAMETER_META_BLOCK,
            NodeKind.RUNTIME_BLOCK,
            NodeKind.COMMAND,
            NodeKind.DECL,
        ]
    )

    command: List[str]
    """:type: List[str]

    The command template's source text, split into literal parts and placeholders (each
    placeholder's text including its delimiters ``~{`` ``}``); their concatenation is the exact
    text of the ``command`` section"""

    command_placeholders: List[Expression]
    """:type: List[WDLParser.Expr.Expression]

    Compiled expressions of the command placeholders, in order"""

    runtime: Dict[str, str]
    """:type: Dict[str,str]

    ``runtime{}`` section, keys to values' source text"""

    runtime_entries: List[KeyValue]
    """:type: List[WDLParser.Tree.KeyValue]

    ``runtime{}`` section entries, with their compiled expressions"""

    runtime_block: Optional[Block] = None
    command_block: Optional[Block] = None

    def __init__(
        self, start: int, end: int, name: str, pos: Optional[SourcePosition] = None
    ) -> None:
        super().__init__(start, end, name, pos)
        self.command = []
        self.command_placeholders = []
        self.runtime = {}
        self.runtime_entries = []

    @property
    def children(self) -> Iterable[SourceNode]:
        """"""
        return sorted(self._blocks() + self.private_decls)

    def _file_block_item(self, block: Block, item: SourceNode) -> None:
        if block.kind == NodeKind.RUNTIME_BLOCK:
            assert isinstance(item, KeyValue)
            self.runtime[item.key] = item.value
            self.runtime_entries.append(item)
        elif block.kind == NodeKind.COMMAND:
            assert isinstance(item, Expression)
            self.command_placeholders.append(item)
        else:
            super()._file_block_item(block, item)

    def add_command_part(self, text: str) -> None:
        """Append a part of the command template's source text"""
        self.command.append(text)


class Call(SourceNode):
    """A call (within a workflow) to a task or sub-workflow"""

    kind = NodeKind.CALL
    accepts = frozenset([NodeKind.KEY_VALUE])

    target: str
    """
    :type: str

    Name of the callee, possibly dotted with an import namespace"""

    alias: str
    """:type: str

    Name given by ``call ... as alias``, or empty"""

    afters: List[str]
    """:type: List[str]

    Names of calls given by ``after`` clauses, in order"""

    inputs: List[KeyValue]
    """:type: List[WDLParser.Tree.KeyValue]

    Call inputs, in order"""

    def __init__(
        self,
        start: int,
        end: int,
        target: str,
        alias: str = "",
        pos: Optional[SourcePosition] = None,
    ) -> None:
        super().__init__(start, end, pos)
        self.target = target
        self.alias = alias
        self.afters = []
        self.inputs = []

    def __str__(self) -> str:
        return "call {}{}".format(self.target, " as " + self.alias if self.alias else "")

    @property
    def name(self) -> str:
        """:type: str

        Name of the call within the workflow (the alias if given, otherwise the last segment of
        the target)
        """
        return self.alias or self.target.split(".")[-1]

    @property
    def after(self) -> str:
        """:type: str

        The first ``after`` clause, or empty"""
        return self.afters[0] if self.afters else ""

    @property
    def children(self) -> Iterable[SourceNode]:
        """"""
        return list(self.inputs)

    def _check(self, child: SourceNode) -> None:
        assert isinstance(child, KeyValue)
        if any(inp.key == child.key for inp in self.inputs):
            raise Error.MultipleDefinitions(
                child, "duplicate input {} for call {}".format(child.key, self.name)
            )

    def _adopt(self, child: SourceNode) -> None:
        assert isinstance(child, KeyValue)
        self.inputs.append(child)


class _Section(SourceNode):
    # common structure of scatter & if sections

    expression: Optional[Expression]
    """:type: Optional[WDLParser.Expr.Expression]"""

    private_decls: List[Decl]
    """:type: List[WDLParser.Tree.Decl]"""

    calls: List[Call]
    """:type: List[WDLParser.Tree.Call]"""

    sections: "List[_Section]"
    """:type: List[Union[WDLParser.Tree.Scatter,WDLParser.Tree.Conditional]]

    Nested scatter & if sections"""

    scope: Scope
    """:type: WDLParser.Scope.Scope"""

    accepts = frozenset(
        [
            NodeKind.DECL,
            NodeKind.CALL,
            NodeKind.SCATTER,
            NodeKind.CONDITIONAL,
            NodeKind.EXPRESSION,
        ]
    )

    def __init__(self, start: int, end: int, pos: Optional[SourcePosition] = None) -> None:
        super().__init__(start, end, pos)
        self.expression = None
        self.private_decls = []
        self.calls = []
        self.sections = []
        self.scope = Scope(self)

    @property
    def children(self) -> Iterable[SourceNode]:
        """"""
        ans: List[SourceNode] = [self.expression] if self.expression else []
        return sorted(ans + self.private_decls + self.calls + self.sections)

    def _check(self, child: SourceNode) -> None:
        if isinstance(child, StructTypeDef):
            raise Error.KindMismatch(self, child)
        if isinstance(child, Expression) and self.expression is not None:
            raise Error.MultipleDefinitions(child, "{} already has an expression".format(self))

    def _adopt(self, child: SourceNode) -> None:
        _adopt_workflow_element(self, child)


class Scatter(_Section):
    """``scatter (variable in expression) { ... }``"""

    kind = NodeKind.SCATTER

    variable: str
    """
    :type: str

    Scatter variable name, defined in the section's scope"""

    def __init__(
        self, start: int, end: int, variable: str, pos: Optional[SourcePosition] = None
    ) -> None:
        super().__init__(start, end, pos)
        self.variable = variable

    def __str__(self) -> str:
        return "scatter {}".format(self.variable)


class Conditional(_Section):
    """``if (expression) { ... }``"""

    kind = NodeKind.CONDITIONAL

    def __str__(self) -> str:
        return "if"


def _adopt_workflow_element(parent: Any, child: SourceNode) -> None:
    if isinstance(child, Expression):
        parent.expression = child
    elif isinstance(child, Decl):
        parent.private_decls.append(child)
    elif isinstance(child, Call):
        parent.calls.append(child)
    elif isinstance(child, _Section):
        parent.sections.append(child)
    else:
        assert False, child


class Workflow(_Executable):
    """WDL Workflow"""

    kind = NodeKind.WORKFLOW
    accepts = frozenset(
        [
            NodeKind.INPUT_BLOCK,
            NodeKind.OUTPUT_BLOCK,
            NodeKind.META_BLOCK,
            NodeKind.PARAMETER_META_BLOCK,
            NodeKind.DECL,
            NodeKind.CALL,
            NodeKind.SCATTER,
            NodeKind.CONDITIONAL,
        ]
    )

    calls: List[Call]
    """:type: List[WDLParser.Tree.Call]

    Calls at the top level of the workflow body"""

    sections: List[_Section]
    """:type: List[Union[WDLParser.Tree.Scatter,WDLParser.Tree.Conditional]]

    Scatter & if sections at the top level of the workflow body"""

    def __init__(
        self, start: int, end: int, name: str, pos: Optional[SourcePosition] = None
    ) -> None:
        super().__init__(start, end, name, pos)
        self.calls = []
        self.sections = []

    @property
    def children(self) -> Iterable[SourceNode]:
        """"""
        return sorted(self._blocks() + self.private_decls + self.calls + self.sections)

    def _adopt(self, child: SourceNode) -> None:
        if isinstance(child, (Call, _Section)):
            _adopt_workflow_element(self, child)
        else:
            super()._adopt(child)


class Import(SourceNode):
    """``import "uri" as alias``, with optional struct aliases"""

    kind = NodeKind.IMPORT

    uri: str
    """:type: str

    Import path or URL, as written"""

    name: str
    """:type: str

    Basename of the URI, stripped of ``.wdl``"""

    alias: str
    """:type: str

    Namespace given by ``as alias``, or empty"""

    struct_aliases: Dict[str, str]
    """:type: Dict[str,str]

    ``alias Original as Local`` clauses"""

    def __init__(
        self, start: int, end: int, uri: str, pos: Optional[SourcePosition] = None
    ) -> None:
        super().__init__(start, end, pos)
        self.uri = uri
        name = posixpath.basename(uri.split("?")[0].split("#")[0].rstrip("/"))
        if name.endswith(".wdl"):
            name = name[:-4]
        self.name = name
        self.alias = ""
        self.struct_aliases = {}

    def __str__(self) -> str:
        return "import {}".format(self.uri)

    @property
    def namespace(self) -> str:
        """:type: str

        Name under which the imported document is referred to: the alias if given, otherwise
        ``name``"""
        return self.alias or self.name


class Document(SourceNode):
    """
    Top-level document, with imports, struct definitions, tasks and at most one workflow
    """

    kind = NodeKind.DOCUMENT
    accepts = frozenset([NodeKind.IMPORT, NodeKind.WORKFLOW, NodeKind.TASK, NodeKind.DECL])

    path: str
    """:type: str"""

    version: str
    """:type: str

    Version number from the ``version`` statement"""

    imports: List[Import]
    """:type: List[WDLParser.Tree.Import]"""

    workflow: Optional[Workflow]
    """:type: Optional[WDLParser.Tree.Workflow]"""

    tasks: List[Task]
    """:type: List[WDLParser.Tree.Task]"""

    structs: List[StructTypeDef]
    """:type: List[WDLParser.Tree.StructTypeDef]"""

    scope: Scope
    """:type: WDLParser.Scope.Scope

    Root scope: defines import namespaces, struct, task and workflow names"""

    source_text: str
    """:type: str

    Document source text"""

    errors: List[Error.ValidationError]
    """:type: List[WDLParser.Error.ValidationError]

    Problems, other than syntax errors, found while building the AST; the offending elements are
    absent from the tree"""

    def __init__(self, path: str, size: int, pos: Optional[SourcePosition] = None) -> None:
        super().__init__(0, size - 1, pos)
        self.path = path
        self.version = ""
        self.imports = []
        self.workflow = None
        self.tasks = []
        self.structs = []
        self.scope = Scope(self)
        self.source_text = ""
        self.errors = []

    def __str__(self) -> str:
        return "document {}".format(self.path)

    @property
    def children(self) -> Iterable[SourceNode]:
        """"""
        ans: List[SourceNode] = [self.workflow] if self.workflow else []
        return sorted(ans + self.imports + self.structs + self.tasks)

    def _check(self, child: SourceNode) -> None:
        if isinstance(child, Workflow) and self.workflow is not None:
            raise Error.MultipleDefinitions(
                child,
                "Document has multiple workflows: {} and {}".format(
                    self.workflow.name, child.name
                ),
            )
        if isinstance(child, Decl) and not isinstance(child, StructTypeDef):
            raise Error.KindMismatch(self, child)

    def _adopt(self, child: SourceNode) -> None:
        if isinstance(child, Import):
            self.imports.append(child)
        elif isinstance(child, Workflow):
            self.workflow = child
        elif isinstance(child, Task):
            self.tasks.append(child)
        elif isinstance(child, StructTypeDef):
            self.structs.append(child)
        else:
            assert False, child
