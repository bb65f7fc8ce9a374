"""
Parse-tree listener: builds the AST, the scope chain and each expression's RPN from the
enter/exit events of a walk over the lark parse tree (see ``WDLParser._parser.walk``)

The listener keeps a stack of open sections (document, workflow, task, blocks, calls,
declarations...) to which new nodes are attached, and a stack of expression frames for the
expression compiler. Each ``expr`` production opens a new :class:`~WDLParser.Expr.Expression`;
nested ``expr`` productions become sub-expressions which the enclosing operator or construct
emits into its RPN when it exits.

Problems found while building the AST are recorded on ``Document.errors`` (and logged); syntax
problems noticed here, like a keyword used as a name, join the parser's syntax errors.
"""
import logging
from typing import Any, Dict, List, NamedTuple, Optional, Set, Tuple, Callable
import regex
import lark
from .Error import SourcePosition, SourceNode, NodeKind
from .Scope import Scope
from .Expr import Expression, Identifier, Apply, Operator, PLACEHOLDER_OPTIONS
from .Tree import (
    attach_child,
    Document,
    Import,
    Workflow,
    Task,
    Call,
    Scatter,
    Conditional,
    Decl,
    StructTypeDef,
    KeyValue,
    Block,
)
from ._parser import decode_escapes, BadCharacterEncoding
from ._util import StructuredLogMessage as _
from . import Error, Value

_logger = logging.getLogger("wdlparser.listener")

_INT_MAX = 2 ** 63 - 1

_NAMESPACE_RE = regex.compile(r"[a-zA-Z][a-zA-Z0-9_]*")

# parse tree productions which open a section, and the AST node kind each one builds
_SECTION_KINDS = {
    "workflow": NodeKind.WORKFLOW,
    "task": NodeKind.TASK,
    "struct": NodeKind.DECL,
    "input_block": NodeKind.INPUT_BLOCK,
    "output_block": NodeKind.OUTPUT_BLOCK,
    "meta_section": NodeKind.META_BLOCK,
    "parameter_meta_section": NodeKind.PARAMETER_META_BLOCK,
    "runtime_section": NodeKind.RUNTIME_BLOCK,
    "command": NodeKind.COMMAND,
    "call": NodeKind.CALL,
    "decl": NodeKind.DECL,
    "runtime_kv": NodeKind.KEY_VALUE,
    "call_input": NodeKind.KEY_VALUE,
    "scatter": NodeKind.SCATTER,
    "conditional": NodeKind.CONDITIONAL,
}

# binary operator productions
_BINARY = {
    "lor": Operator.OR,
    "land": Operator.AND,
    "eqeq": Operator.EQ,
    "neq": Operator.NEQ,
    "lte": Operator.LTE,
    "gte": Operator.GTE,
    "lt": Operator.LT,
    "gt": Operator.GT,
    "add": Operator.ADD,
    "sub": Operator.SUB,
    "mul": Operator.MUL,
    "div": Operator.DIV,
    "rem": Operator.MOD,
}

# constructs compiling to their sub-expressions followed by Apply
_APPLY = {"array": "_array", "pair": "_pair", "ifthenelse": "_ifthenelse"}

_COMMAND_FRAGMENTS = ("COMMAND1_FRAGMENT", "COMMAND2_FRAGMENT")


class _Context(NamedTuple):
    # an open section
    tree: Optional[lark.Tree]
    node: SourceNode
    scope: Optional[Scope]
    rooted: bool  # node is attached (transitively) to the document


class _Frame(NamedTuple):
    # an open expression
    tree: lark.Tree
    expression: Expression
    subexpressions: List[Expression]


class Listener:
    """
    Consumes parse tree events for one document; construct, walk, then :meth:`finish`
    """

    document: Document
    """:type: WDLParser.Tree.Document"""

    syntax_errors: List[Error.SyntaxError]
    """:type: List[WDLParser.Error.SyntaxError]"""

    expression: Optional[Expression]
    """
    :type: Optional[WDLParser.Expr.Expression]

    The last expression compiled outside of any section (when walking a standalone expression)
    """

    _source: str
    _keywords: Set[str]
    _uri: str
    _abspath: str
    _context: List[_Context]
    _frames: List[_Frame]
    _last_expression: Optional[Expression]
    _walked: bool

    def __init__(
        self,
        document: Document,
        keywords: Set[str],
        syntax_errors: Optional[List[Error.SyntaxError]] = None,
        source: Optional[str] = None,
        uri: str = "",
        abspath: str = "",
    ) -> None:
        self.document = document
        self.syntax_errors = syntax_errors if syntax_errors is not None else []
        self.expression = None
        self._source = source if source is not None else document.source_text
        self._keywords = keywords
        self._uri = uri or document.path or "(buffer)"
        self._abspath = abspath or self._uri
        self._context = [_Context(None, document, document.scope, True)]
        self._frames = []
        self._last_expression = None
        self._walked = False

    # event dispatch

    def enter(self, tree: lark.Tree) -> None:
        handler = getattr(self, "enter_" + tree.data, None)
        if handler is not None:
            self._guard(handler, tree)

    def exit(self, tree: lark.Tree) -> None:
        handler = getattr(self, "exit_" + tree.data, None)
        if handler is not None:
            self._guard(handler, tree)
        elif tree.data in _BINARY:
            self._emit(_BINARY[tree.data])
        elif tree.data in _APPLY:
            self._emit_apply(tree, _APPLY[tree.data])
        elif tree.data in _SECTION_KINDS:
            self._guard(self._pop_context, tree)

    def visit_terminal(self, token: lark.Token) -> None:
        if token.type in _COMMAND_FRAGMENTS:
            self._add_command_part(str(token))

    def _guard(self, handler: Callable[[Any], None], arg: Any) -> None:
        try:
            handler(arg)
        except Error.SyntaxError as exn:
            self._syntax_error(exn)
        except BadCharacterEncoding as exn:
            pos = exn.pos
            self._syntax_error(
                Error.SyntaxError(
                    pos.line if pos else 1,
                    pos.column - 1 if pos else 0,
                    "Bad escape sequence in string literal",
                    pos,
                )
            )
        except Error.MultipleValidationErrors as exn:
            for exn1 in exn.exceptions:
                self._error(exn1)
        except Error.ValidationError as exn:
            self._error(exn)

    def finish(self) -> Tuple[Document, List[Error.SyntaxError]]:
        """
        Conclude the walk, returning the document and all syntax errors sorted by position
        """
        while len(self._context) > 1:
            ctx = self._context.pop()
            self._error(Error.MismatchContext(ctx.node.pos, ctx.node.kind, None))
        if self._walked and not self.document.version:
            self._syntax_error(Error.SyntaxError(1, 0, "missing version statement", self._pos()))
        self.syntax_errors.sort(key=lambda err: (err.line, err.column))
        return (self.document, self.syntax_errors)

    # error reporting

    def _error(self, exn: Error.ValidationError) -> None:
        self.document.errors.append(exn)
        _logger.warning(
            _(
                str(exn),
                code=exn.code,
                line=exn.pos.line if exn.pos else None,
                column=exn.pos.column if exn.pos else None,
            )
        )

    def _syntax_error(self, exn: Error.SyntaxError) -> None:
        _logger.debug(_("syntax error", line=exn.line, column=exn.column, message=exn.message))
        self.syntax_errors.append(exn)

    def _syntax_error_at(self, tree: Any, message: str) -> None:
        pos = self._pos(tree)
        self._syntax_error(Error.SyntaxError(pos.line, pos.column - 1, message, pos))

    def _check_keyword(self, tree: Any, name: str) -> None:
        if name in self._keywords:
            self._syntax_error_at(tree, "unexpected keyword {}".format(name))

    # source positions

    def _span(self, tree: lark.Tree) -> Tuple[int, int]:
        meta = tree.meta
        if meta.empty:
            return (0, 0)
        return (meta.start_pos, meta.end_pos - 1)

    def _pos(self, item: Any = None) -> SourcePosition:
        if isinstance(item, lark.Token):
            return SourcePosition(
                uri=self._uri,
                abspath=self._abspath,
                line=item.line,
                column=item.column,
                end_line=item.end_line,
                end_column=item.end_column,
            )
        if isinstance(item, lark.Tree) and not item.meta.empty:
            meta = item.meta
            return SourcePosition(
                uri=self._uri,
                abspath=self._abspath,
                line=meta.line,
                column=meta.column,
                end_line=meta.end_line,
                end_column=meta.end_column,
            )
        return SourcePosition(
            uri=self._uri, abspath=self._abspath, line=1, column=1, end_line=1, end_column=1
        )

    def _text(self, item: Any) -> str:
        # source text of a subtree or token
        if isinstance(item, lark.Token):
            return str(item)
        if item.meta.empty:
            return ""
        return self._source[item.meta.start_pos : item.meta.end_pos]

    # section contexts

    @property
    def _current(self) -> _Context:
        return self._context[-1]

    def _scope(self) -> Scope:
        for ctx in reversed(self._context):
            if ctx.scope is not None:
                return ctx.scope
        assert False

    def _open(
        self,
        tree: lark.Tree,
        node: SourceNode,
        name: Optional[str] = None,
        scope: Optional[Scope] = None,
    ) -> SourceNode:
        # attach node to the current section and open a context for it; if given, define name
        # in the current scope. The context is opened even if attachment fails, so that the
        # node's contents can still be built (but not defined in any scope).
        parent = self._current
        enclosing = self._scope()
        define = None
        if name is not None and parent.rooted:

            def define() -> None:
                enclosing.define(name, node)

        rooted = parent.rooted
        try:
            node = attach_child(parent.node, node, define)
        except Error.ValidationError as exn:
            self._error(exn)
            rooted = False
        if scope is not None and rooted:
            enclosing.push_child(scope)
        self._context.append(_Context(tree, node, scope, rooted))
        return node

    def _pop_context(self, tree: lark.Tree) -> Optional[_Context]:
        expected = _SECTION_KINDS[tree.data]
        for i in range(len(self._context) - 1, 0, -1):
            if self._context[i].tree is tree:
                if i != len(self._context) - 1:
                    self._error(
                        Error.MismatchContext(self._pos(tree), expected, self._current.node.kind)
                    )
                ctx = self._context[i]
                del self._context[i:]
                return ctx
        self._error(
            Error.MismatchContext(
                self._pos(tree),
                expected,
                self._current.node.kind if len(self._context) > 1 else None,
            )
        )
        return None

    def _nearest(self, kind: NodeKind) -> Optional[_Context]:
        for ctx in reversed(self._context):
            if ctx.node.kind == kind:
                return ctx
        return None

    # document

    def enter_document(self, tree: lark.Tree) -> None:
        self._walked = True

    def enter_version(self, tree: lark.Tree) -> None:
        version = "".join(str(tok) for tok in tree.children if isinstance(tok, lark.Token))
        self.document.version = version
        if version != "1.1":
            self._syntax_error_at(tree, "unknown WDL version {}; choices: 1.1".format(version))

    def enter_import_doc(self, tree: lark.Tree) -> None:
        literal = next(ch for ch in tree.children if isinstance(ch, lark.Tree))
        raw = self._string_literal(literal)
        start, end = self._span(tree)
        node = Import(start, end, raw, self._pos(tree))
        for ch in tree.children:
            if isinstance(ch, lark.Tree) and ch.data == "import_as":
                node.alias = str(ch.children[0])
        namespace = node.namespace
        valid = bool(_NAMESPACE_RE.fullmatch(namespace)) and namespace not in self._keywords
        if not valid:
            self._syntax_error_at(tree, "invalid or missing import namespace")
        parent = self._current
        with Error.multi_context() as errors:
            for ch in tree.children:
                if isinstance(ch, lark.Tree) and ch.data == "import_alias":
                    original, alias = str(ch.children[0]), str(ch.children[1])
                    if original in node.struct_aliases:
                        errors.append(
                            Error.MultipleDefinitions(
                                self._pos(ch), "multiple aliases for struct " + original
                            )
                        )
                    else:
                        node.struct_aliases[original] = alias

            def define() -> None:
                self.document.scope.define(namespace, node)

            errors.try1(
                lambda: attach_child(
                    parent.node, node, define if valid and parent.rooted else None
                )
            )

    def _string_literal(self, tree: lark.Tree) -> str:
        # contents of a string_literal between the quotes, as written (escapes validated)
        raw = str(tree.children[0])[1:-1]
        decode_escapes(self._pos(tree), raw)
        return raw

    # struct/workflow/task

    def enter_struct(self, tree: lark.Tree) -> None:
        name = str(tree.children[0])
        start, end = self._span(tree)
        self._open(tree, StructTypeDef(start, end, name, self._pos(tree)), name)
        self._check_keyword(tree, name)

    def _executable(self, tree: lark.Tree, node: Any) -> None:
        for ch in tree.children:
            if isinstance(ch, lark.Tree):
                node.raw_elements.append(self._text(ch))
        self._open(tree, node, node.name, node.scope)
        self._check_keyword(tree, node.name)

    def enter_workflow(self, tree: lark.Tree) -> None:
        start, end = self._span(tree)
        self._executable(tree, Workflow(start, end, str(tree.children[0]), self._pos(tree)))

    def enter_task(self, tree: lark.Tree) -> None:
        start, end = self._span(tree)
        self._executable(tree, Task(start, end, str(tree.children[0]), self._pos(tree)))

    # blocks

    def _block(self, tree: lark.Tree) -> None:
        start, end = self._span(tree)
        self._open(tree, Block(start, end, _SECTION_KINDS[tree.data], self._pos(tree)))

    enter_input_block = _block
    enter_output_block = _block
    enter_meta_section = _block
    enter_parameter_meta_section = _block
    enter_runtime_section = _block
    enter_command = _block

    def enter_meta_kv(self, tree: lark.Tree) -> None:
        # entry of meta or parameter_meta, recording the value's source text only
        key = str(tree.children[0])
        start, end = self._span(tree)
        node = KeyValue(start, end, key, self._text(tree.children[1]), self._pos(tree))
        attach_child(self._current.node, node)

    def enter_runtime_kv(self, tree: lark.Tree) -> None:
        key = str(tree.children[0])
        start, end = self._span(tree)
        self._open(tree, KeyValue(start, end, key, self._text(tree.children[1]), self._pos(tree)))

    def _add_command_part(self, text: str) -> None:
        if self._current.node.kind != NodeKind.COMMAND or not self._current.rooted:
            return
        task = self._nearest(NodeKind.TASK)
        if task is not None and isinstance(task.node, Task):
            task.node.add_command_part(text)

    def exit_command_placeholder(self, tree: lark.Tree) -> None:
        self._add_command_part(self._text(tree))

    # workflow body

    def enter_call(self, tree: lark.Tree) -> None:
        target = ""
        alias = ""
        afters = []
        for ch in tree.children:
            if isinstance(ch, lark.Tree):
                if ch.data == "call_target":
                    target = ".".join(str(tok) for tok in ch.children)
                elif ch.data == "call_alias":
                    alias = str(ch.children[0])
                elif ch.data == "call_after":
                    afters.append(str(ch.children[0]))
        start, end = self._span(tree)
        node = Call(start, end, target, alias, self._pos(tree))
        node.afters = afters
        self._open(tree, node, node.name)
        if alias:
            self._check_keyword(tree, alias)

    def enter_call_input(self, tree: lark.Tree) -> None:
        key = str(tree.children[0])
        value = self._text(tree.children[1]) if len(tree.children) > 1 else key
        start, end = self._span(tree)
        self._open(tree, KeyValue(start, end, key, value, self._pos(tree)))

    def enter_scatter(self, tree: lark.Tree) -> None:
        variable = str(tree.children[0])
        start, end = self._span(tree)
        node = Scatter(start, end, variable, self._pos(tree))
        node = self._open(tree, node, scope=node.scope)
        self._check_keyword(tree, variable)
        if self._current.rooted:
            assert isinstance(node, Scatter)
            node.scope.define(variable, node)

    def enter_conditional(self, tree: lark.Tree) -> None:
        start, end = self._span(tree)
        node = Conditional(start, end, self._pos(tree))
        self._open(tree, node, scope=node.scope)

    # declarations

    def enter_decl(self, tree: lark.Tree) -> None:
        declared_type = "".join(self._text(tree.children[0]).split())
        identifier = str(tree.children[1])
        start, end = self._span(tree)
        node = Decl(start, end, identifier, declared_type, self._pos(tree))
        in_struct = isinstance(self._current.node, StructTypeDef)
        self._open(tree, node, None if in_struct else identifier)
        self._check_keyword(tree.children[1], identifier)

    # expressions

    def enter_expr(self, tree: lark.Tree) -> None:
        start, end = self._span(tree)
        expr = Expression(start, end, self._pos(tree))
        if self._frames:
            frame = self._frames[-1]
            attach_child(frame.expression, expr)
            frame.subexpressions.append(expr)
        else:
            self._last_expression = expr
            parent = self._current.node
            if parent.kind == NodeKind.DOCUMENT:
                self.expression = expr
            else:
                try:
                    attach_child(parent, expr)
                except Error.ValidationError as exn:
                    self._error(exn)
        self._frames.append(_Frame(tree, expr, []))

    enter_expr_operand = enter_expr

    def exit_expr(self, tree: lark.Tree) -> None:
        if self._frames and self._frames[-1].tree is tree:
            self._frames.pop()
        else:
            self._error(
                Error.MismatchContext(
                    self._pos(tree),
                    NodeKind.EXPRESSION,
                    NodeKind.EXPRESSION if self._frames else None,
                )
            )
            while self._frames and self._frames[-1].tree is not tree:
                self._frames.pop()
            if self._frames:
                self._frames.pop()

    exit_expr_operand = exit_expr

    def _emit(self, item: Any) -> None:
        if self._frames:
            self._frames[-1].expression.emit(item)

    def _pop_subexpressions(self, n: int) -> List[Expression]:
        if not self._frames or n <= 0:
            return []
        subs = self._frames[-1].subexpressions
        ans = subs[-n:]
        del subs[-n:]
        return ans

    def _emit_subexpressions(self, n: int) -> None:
        for sub in self._pop_subexpressions(n):
            self._emit(sub)

    def _count_expr(self, tree: lark.Tree) -> int:
        return sum(1 for ch in tree.children if isinstance(ch, lark.Tree) and ch.data == "expr")

    def _emit_apply(self, tree: lark.Tree, function_name: str) -> None:
        n = self._count_expr(tree)
        self._emit_subexpressions(n)
        self._emit(Apply(function_name, n))

    # literals

    def exit_boolean_true(self, tree: lark.Tree) -> None:
        self._emit(Value.Boolean(True))

    def exit_boolean_false(self, tree: lark.Tree) -> None:
        self._emit(Value.Boolean(False))

    def exit_null(self, tree: lark.Tree) -> None:
        self._emit(Value.Null())

    def exit_int(self, tree: lark.Tree) -> None:
        value = int(tree.children[0])
        if value > _INT_MAX:
            self._syntax_error_at(tree, "integer literal out of range: {}".format(value))
            value = _INT_MAX
        self._emit(Value.Int(value))

    def exit_float(self, tree: lark.Tree) -> None:
        self._emit(Value.Float(float(tree.children[0])))

    def exit_left_name(self, tree: lark.Tree) -> None:
        name = str(tree.children[0])
        self._check_keyword(tree, name)
        self._emit(Identifier(name))

    # operators

    def exit_expression_group(self, tree: lark.Tree) -> None:
        self._emit_subexpressions(1)

    def exit_negate(self, tree: lark.Tree) -> None:
        self._emit_subexpressions(1)
        self._emit(Operator.NOT)

    def exit_unary_minus(self, tree: lark.Tree) -> None:
        self._emit_subexpressions(1)
        self._emit(Operator.NEG)

    def exit_unary_plus(self, tree: lark.Tree) -> None:
        self._emit_subexpressions(1)

    # strings

    def exit_string_part(self, tree: lark.Tree) -> None:
        fragment = "".join(str(tok) for tok in tree.children if isinstance(tok, lark.Token))
        decode_escapes(self._pos(tree), fragment)
        self._emit(Value.String(fragment))

    def exit_string_expr_part(self, tree: lark.Tree) -> None:
        self._emit_subexpressions(1)
        self._emit(Operator.STR)

    def exit_string_expr_with_string_part(self, tree: lark.Tree) -> None:
        self._emit(Operator.ADD)
        self._emit(Operator.ADD)

    def exit_placeholder(self, tree: lark.Tree) -> None:
        if self._frames:
            subs = self._frames[-1].subexpressions
            target = subs[-1] if subs else None
        else:
            target = self._last_expression
        options: Dict[str, Value.Base] = {}
        with Error.multi_context() as errors:
            for ch in tree.children:
                if isinstance(ch, lark.Tree) and ch.data == "placeholder_option":
                    name = str(ch.children[0])
                    if name not in PLACEHOLDER_OPTIONS:
                        self._syntax_error_at(ch, "unknown placeholder option " + name)
                    elif name in options:
                        errors.append(
                            Error.MultipleDefinitions(
                                self._pos(ch), "repeated placeholder option " + name
                            )
                        )
                    else:
                        options[name] = self._placeholder_value(ch.children[1])
            if target is not None:
                target.placeholder_options.update(options)

    def _placeholder_value(self, tree: lark.Tree) -> Value.Base:
        item = tree.children[0]
        if isinstance(item, lark.Tree):
            return Value.String(self._string_literal(item))
        if item.type == "INT":
            return Value.Int(int(item))
        return Value.Float(float(item))

    # compound values

    def exit_apply(self, tree: lark.Tree) -> None:
        self._emit_apply(tree, str(tree.children[0]))

    def exit_map_kv(self, tree: lark.Tree) -> None:
        self._emit_subexpressions(1)

    def exit_map(self, tree: lark.Tree) -> None:
        n = sum(1 for ch in tree.children if isinstance(ch, lark.Tree) and ch.data == "map_kv")
        self._emit(Apply("_map", 2 * n))

    def enter_obj(self, tree: lark.Tree) -> None:
        name = str(tree.children[0])
        if name != "object":
            self._check_keyword(tree, name)
            self._emit(Value.String(name))

    def exit_object_kv(self, tree: lark.Tree) -> None:
        key = tree.children[0]
        if isinstance(key, lark.Tree):
            self._emit(Value.String(self._string_literal(key)))
        else:
            self._check_keyword(key, str(key))
            self._emit(Value.String(str(key)))
        self._emit_subexpressions(1)

    def exit_obj(self, tree: lark.Tree) -> None:
        n = sum(
            1 for ch in tree.children if isinstance(ch, lark.Tree) and ch.data == "object_kv"
        )
        if str(tree.children[0]) == "object":
            self._emit(Apply("_object", 2 * n))
        else:
            self._emit(Apply("_struct", 2 * n + 1))

    def exit_at(self, tree: lark.Tree) -> None:
        self._emit_subexpressions(1)
        self._emit(Apply("_at", 2))

    def exit_get_name(self, tree: lark.Tree) -> None:
        base, member = tree.children[0], str(tree.children[1])
        if member not in ("left", "right"):
            self._check_keyword(tree, member)
        rpn = self._frames[-1].expression.rpn if self._frames else []
        if (
            isinstance(base, lark.Tree)
            and base.data in ("left_name", "get_name")
            and rpn
            and isinstance(rpn[-1], Identifier)
        ):
            # member of a name: extend the dotted identifier
            rpn[-1] = Identifier(rpn[-1].name + "." + member)
        else:
            self._emit(Value.String(member))
            self._emit(Apply("_get", 2))
