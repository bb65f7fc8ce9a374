# pylint: disable=assignment-from-no-return
from typing import Any, Dict, List, Optional, Tuple
from . import Error, Expr, Tree


class Base:
    """
    Helper base class for traversing the WDL abstract syntax tree. When called
    on a node, invokes the appropriate method (document, import_doc, workflow,
    task, struct_typedef, block, call, scatter, conditional, decl, key_value,
    expr). The base implementations of these methods recurse into the node's
    "children." Overriding subclasses can thus invoke their super at the
    appropriate point for preorder or postorder traversal (or omit super to
    prevent further descent).

    ``
    class PrintUnconditionalCallNames(Walker.Base):
        def conditional(self, obj):
            # skip everything inside conditionals by NOT calling
            #   super().conditional(obj)
            pass
        def call(self, obj):
            print(obj.name)
    walker = PrintUnconditionalCallNames()
    walker(wdl_document)
    ``

    If initialized with ``auto_descend=True``, then super invocations do
    do nothing (they can be omitted) and child nodes are recursed just after
    each method invocation (preorder traversal).
    """

    auto_descend: bool

    def __init__(self, auto_descend: bool = False) -> None:
        self.auto_descend = auto_descend

    def __call__(self, obj: Error.SourceNode, descend: Optional[bool] = None) -> Any:
        ans = None
        if isinstance(obj, Tree.Document):
            ans = self.document(obj)
        elif isinstance(obj, Tree.Import):
            ans = self.import_doc(obj)
        elif isinstance(obj, Tree.Workflow):
            ans = self.workflow(obj)
        elif isinstance(obj, Tree.Task):
            ans = self.task(obj)
        elif isinstance(obj, Tree.StructTypeDef):
            ans = self.struct_typedef(obj)
        elif isinstance(obj, Tree.Block):
            ans = self.block(obj)
        elif isinstance(obj, Tree.Call):
            ans = self.call(obj)
        elif isinstance(obj, Tree.Scatter):
            ans = self.scatter(obj)
        elif isinstance(obj, Tree.Conditional):
            ans = self.conditional(obj)
        elif isinstance(obj, Tree.Decl):
            ans = self.decl(obj)
        elif isinstance(obj, Tree.KeyValue):
            ans = self.key_value(obj)
        elif isinstance(obj, Expr.Expression):
            ans = self.expr(obj)
        else:
            assert False
        if descend is None:
            descend = self.auto_descend
        if descend:
            for ch in obj.children:
                self(ch)
        return ans

    def _descend(self, obj: Error.SourceNode) -> Any:
        if not self.auto_descend:
            for ch in obj.children:
                self(ch)

    def document(self, obj: Tree.Document) -> Any:
        self._descend(obj)

    def import_doc(self, obj: Tree.Import) -> Any:
        self._descend(obj)

    def workflow(self, obj: Tree.Workflow) -> Any:
        self._descend(obj)

    def task(self, obj: Tree.Task) -> Any:
        self._descend(obj)

    def struct_typedef(self, obj: Tree.StructTypeDef) -> Any:
        self._descend(obj)

    def block(self, obj: Tree.Block) -> Any:
        self._descend(obj)

    def call(self, obj: Tree.Call) -> Any:
        self._descend(obj)

    def scatter(self, obj: Tree.Scatter) -> Any:
        self._descend(obj)

    def conditional(self, obj: Tree.Conditional) -> Any:
        self._descend(obj)

    def decl(self, obj: Tree.Decl) -> Any:
        self._descend(obj)

    def key_value(self, obj: Tree.KeyValue) -> Any:
        self._descend(obj)

    def expr(self, obj: Expr.Expression) -> Any:
        self._descend(obj)


class CheckSpans(Base):
    """
    Collect ``violations`` of the AST's structural invariants: each node's span is non-empty,
    each child lies within its parent's span and refers back to it as ``parent``, and siblings
    are listed in source order without overlapping.
    """

    violations: List[Tuple[Error.SourceNode, str]]

    def __init__(self) -> None:
        super().__init__(auto_descend=True)
        self.violations = []

    def _check(self, obj: Error.SourceNode) -> None:
        if obj.start > obj.end:
            self.violations.append((obj, "span [{},{}] is inverted".format(obj.start, obj.end)))
        prev: Optional[Error.SourceNode] = None
        for ch in obj.children:
            if ch.parent is not obj:
                self.violations.append((ch, "parent of {} isn't {}".format(repr(ch), repr(obj))))
            if ch.start < obj.start or ch.end > obj.end:
                self.violations.append(
                    (ch, "{} lies outside of {}".format(repr(ch), repr(obj)))
                )
            if prev is not None and prev.end >= ch.start:
                self.violations.append(
                    (ch, "{} overlaps or precedes {}".format(repr(ch), repr(prev)))
                )
            prev = ch

    def document(self, obj: Tree.Document) -> None:
        self._check(obj)

    def import_doc(self, obj: Tree.Import) -> None:
        self._check(obj)

    def workflow(self, obj: Tree.Workflow) -> None:
        self._check(obj)

    def task(self, obj: Tree.Task) -> None:
        self._check(obj)

    def struct_typedef(self, obj: Tree.StructTypeDef) -> None:
        self._check(obj)

    def block(self, obj: Tree.Block) -> None:
        self._check(obj)

    def call(self, obj: Tree.Call) -> None:
        self._check(obj)

    def scatter(self, obj: Tree.Scatter) -> None:
        self._check(obj)

    def conditional(self, obj: Tree.Conditional) -> None:
        self._check(obj)

    def decl(self, obj: Tree.Decl) -> None:
        self._check(obj)

    def key_value(self, obj: Tree.KeyValue) -> None:
        self._check(obj)

    def expr(self, obj: Expr.Expression) -> None:
        self._check(obj)


def check_spans(node: Error.SourceNode) -> List[Tuple[Error.SourceNode, str]]:
    """
    Check the structural invariants of the AST beneath ``node``, returning a list of
    ``(node, problem)``; empty if all is well
    """
    walker = CheckSpans()
    walker(node)
    return walker.violations


class _ToJSON(Base):
    # render each node as a dict, recursing into children
    def __call__(self, obj: Error.SourceNode, descend: Optional[bool] = None) -> Any:
        ans: Dict[str, Any] = {"kind": obj.kind.value, "start": obj.start, "end": obj.end}
        ans.update(super().__call__(obj, False) or {})
        children = [self(ch) for ch in obj.children]
        if children:
            ans["children"] = children
        return ans

    def document(self, obj: Tree.Document) -> Any:
        return {"path": obj.path, "version": obj.version}

    def import_doc(self, obj: Tree.Import) -> Any:
        return {
            "uri": obj.uri,
            "name": obj.name,
            "alias": obj.alias,
            "struct_aliases": obj.struct_aliases,
        }

    def workflow(self, obj: Tree.Workflow) -> Any:
        return {"name": obj.name, "meta": obj.meta, "parameter_meta": obj.parameter_meta}

    def task(self, obj: Tree.Task) -> Any:
        return {
            "name": obj.name,
            "command": obj.command,
            "runtime": obj.runtime,
            "meta": obj.meta,
            "parameter_meta": obj.parameter_meta,
        }

    def struct_typedef(self, obj: Tree.StructTypeDef) -> Any:
        return {"name": obj.name}

    def block(self, obj: Tree.Block) -> Any:
        return {}

    def call(self, obj: Tree.Call) -> Any:
        return {"target": obj.target, "alias": obj.alias, "after": obj.afters}

    def scatter(self, obj: Tree.Scatter) -> Any:
        return {"variable": obj.variable}

    def conditional(self, obj: Tree.Conditional) -> Any:
        return {}

    def decl(self, obj: Tree.Decl) -> Any:
        return {"identifier": obj.identifier, "type": obj.declared_type}

    def key_value(self, obj: Tree.KeyValue) -> Any:
        return {"key": obj.key, "value": obj.value}

    def expr(self, obj: Expr.Expression) -> Any:
        ans: Dict[str, Any] = {"rpn": [_rpn_json(item) for item in obj.rpn]}
        if obj.placeholder_options:
            ans["placeholder_options"] = {k: v.json for k, v in obj.placeholder_options.items()}
        return ans


def _rpn_json(item: Any) -> Any:
    if isinstance(item, Expr.Expression):
        return {"expression": [_rpn_json(sub) for sub in item.rpn]}
    if isinstance(item, Expr.Identifier):
        return {"identifier": item.name}
    if isinstance(item, Expr.Operator):
        return {"operator": item.value}
    if isinstance(item, Expr.Apply):
        return {"apply": item.function_name, "arity": item.arity}
    return {"value": item.json, "type": str(item.type)}


def to_json(node: Error.SourceNode) -> Dict[str, Any]:
    """
    Render the AST beneath ``node`` as a JSON-serializable dict: each node's ``kind``, span,
    salient attributes, and ``children``
    """
    return _ToJSON()(node)
