# pyre-strict
"""
Lexical scopes for symbol resolution

The parser builds a tree of :class:`Scope` objects mirroring the document's lexical structure:
the document scope at the root, a child scope for the workflow and for each task, and further
children for scatter and conditional sections. Each scope maps names to the AST node declaring
them (a declaration, workflow, task, import, call, struct definition or scatter variable).

::

    doc, errors = WDLParser.parse("hello.wdl")
    decl = doc.workflow.scope.resolve("name")      # nearest binding, searching outwards
    node = doc.workflow.scope.resolve_dotted(["hello", "greeting"])
"""
from typing import Dict, List, Optional, Tuple, Sequence, Mapping, Iterator, Any
from .Error import SourceNode, NodeKind
from . import Error

_SCOPED_KINDS = (
    NodeKind.DOCUMENT,
    NodeKind.WORKFLOW,
    NodeKind.TASK,
    NodeKind.SCATTER,
    NodeKind.CONDITIONAL,
)


class Scope:
    """
    A lexical region owning a name-to-symbol mapping, chained to its enclosing scope
    """

    node: Optional[SourceNode]
    """
    :type: Optional[SourceNode]

    The AST node which introduces this scope
    """

    parent: "Optional[Scope]"
    """:type: Optional[Scope]"""

    children: "List[Scope]"
    """:type: List[Scope]"""

    symbols: Dict[str, SourceNode]
    """
    :type: Dict[str, SourceNode]

    Symbols defined directly in this scope, in definition order
    """

    def __init__(self, node: Optional[SourceNode] = None) -> None:
        self.node = node
        self.parent = None
        self.children = []
        self.symbols = {}

    def __repr__(self) -> str:
        return "<Scope {} {}>".format(
            self.node.kind.value if self.node else "(detached)", sorted(self.symbols.keys())
        )

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name in self.symbols

    def __iter__(self) -> Iterator[str]:
        return iter(self.symbols)

    def define(self, name: str, symbol: SourceNode) -> None:
        """
        Bind ``name`` to ``symbol`` in this scope

        :raise WDLParser.Error.EmptyName: ``name`` is empty
        :raise WDLParser.Error.MultipleDefinitions: ``name`` is already defined in this scope
        """
        if not name:
            raise Error.EmptyName(symbol)
        if name in self.symbols:
            raise Error.MultipleDefinitions(
                symbol,
                "{} is already defined in this {}".format(
                    name, self.node.kind.value if self.node else "scope"
                ),
            )
        self.symbols[name] = symbol

    def push_child(self, child: "Scope") -> "Scope":
        """Append ``child`` to this scope's children, set its parent, and return it"""
        child.parent = self
        self.children.append(child)
        return child

    def find(self, name: str) -> "Tuple[Scope, SourceNode]":
        """
        Find the nearest binding of ``name``, searching this scope and then its ancestors; return
        the scope holding the binding and the bound symbol

        :raise WDLParser.Error.UnknownIdentifier: no binding up to and including the root
        """
        pos: Optional[Scope] = self
        while pos is not None:
            if name in pos.symbols:
                return (pos, pos.symbols[name])
            pos = pos.parent
        raise Error.UnknownIdentifier(self.node, name, "{} not defined".format(name))

    def resolve(self, name: str) -> SourceNode:
        """
        Return the nearest binding of ``name``

        :raise WDLParser.Error.UnknownIdentifier: no binding up to and including the root
        """
        return self.find(name)[1]

    def find_dotted(
        self, segments: Sequence[str], documents: "Optional[Mapping[str, Any]]" = None
    ) -> "Tuple[Scope, SourceNode]":
        """
        Like :meth:`find` for a dot-separated name given as its segments. The first segment is
        resolved outwards from this scope; each further segment is looked up directly within the
        scope introduced by the previous symbol:

        * a workflow, task, scatter or conditional: its own scope
        * a call: the scope of the called task/workflow, resolved from the document root
        * an import: the scope of the imported document, if given in ``documents`` (a mapping of
          import namespace to parsed ``WDLParser.Tree.Document``); imported documents are never
          loaded here

        :raise WDLParser.Error.UnknownIdentifier: some segment can't be resolved
        """
        if not segments or not segments[0]:
            raise Error.UnknownIdentifier(self.node, ".".join(segments))
        scope, symbol = self.find(segments[0])
        for i in range(1, len(segments)):
            inner = _member_scope(scope, symbol, documents)
            if inner is None or segments[i] not in inner.symbols:
                raise Error.UnknownIdentifier(
                    symbol, ".".join(segments[: i + 1]), "{} not defined".format(
                        ".".join(segments[: i + 1])
                    )
                )
            scope, symbol = inner, inner.symbols[segments[i]]
        return (scope, symbol)

    def resolve_dotted(
        self, segments: Sequence[str], documents: "Optional[Mapping[str, Any]]" = None
    ) -> SourceNode:
        """
        Resolve a dot-separated name given as its segments, e.g. ``["hello", "greeting"]``; see
        :meth:`find_dotted`

        :raise WDLParser.Error.UnknownIdentifier: some segment can't be resolved
        """
        return self.find_dotted(segments, documents)[1]

    @property
    def root(self) -> "Scope":
        """:type: Scope

        The outermost (document) scope"""
        pos = self
        while pos.parent is not None:
            pos = pos.parent
        return pos


def _member_scope(
    scope: Scope, symbol: SourceNode, documents: "Optional[Mapping[str, Any]]"
) -> Optional[Scope]:
    if symbol.kind in _SCOPED_KINDS:
        return getattr(symbol, "scope", None)
    if symbol.kind == NodeKind.IMPORT:
        doc = (documents or {}).get(getattr(symbol, "namespace"))
        return getattr(doc, "scope", None) if doc is not None else None
    if symbol.kind == NodeKind.CALL:
        target = getattr(symbol, "target").split(".")
        try:
            callee = scope.root.resolve_dotted(target, documents)
        except Error.UnknownIdentifier:
            return None
        if callee.kind in (NodeKind.WORKFLOW, NodeKind.TASK):
            return getattr(callee, "scope", None)
    return None
