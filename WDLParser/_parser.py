# pylint: skip-file
"""
Construction of the lark parsers, syntax error recovery, and the walker which replays a parse
tree as enter/exit events to a listener (see ``WDLParser.Listener``)
"""
import threading
import logging
import regex
import codecs
from typing import Any, Dict, List, Optional, Tuple
import lark
from .Error import SourcePosition
from . import Error, _grammar
from ._util import StructuredLogMessage as _

_logger = logging.getLogger("wdlparser.parser")

# memoize Lark parsers constructed for version & start symbol
_lark_cache: Dict[Tuple[str, str], lark.Lark] = {}
_lark_lock = threading.Lock()

# tokens which can be fed to close a construct left open at end of input
_CLOSERS = ("}", ")", "]", ">>>", '"', "'")
_MAX_CLOSERS = 256

# terminals matching runs of arbitrary text, which the grammar expects only within string
# literals, commands, and the version statement
_RUNS = (
    "STRING1_FRAGMENT",
    "STRING2_FRAGMENT",
    "COMMAND1_FRAGMENT",
    "COMMAND2_FRAGMENT",
    "VERSION_NUMBER",
)


def parser(version: Optional[str] = None, start: str = "document") -> lark.Lark:
    grammar = _grammar.get(version)[0]
    with _lark_lock:
        if (grammar, start) not in _lark_cache:
            _lark_cache[(grammar, start)] = lark.Lark(
                grammar,
                start=start,
                parser="lalr",
                maybe_placeholders=False,
                propagate_positions=True,
            )
        return _lark_cache[(grammar, start)]


class BadCharacterEncoding(Exception):
    pos: Optional[SourcePosition]

    def __init__(self, pos: Optional[SourcePosition]):
        self.pos = pos


# Decode backslash-escape sequences in a str that may also contain unescaped, non-ASCII unicode
# characters. Inspired by: https://stackoverflow.com/a/24519338/13393076 however that solution
# fails to reject some invalid escape sequences.
ASCII_PARTS_RE = regex.compile(r"[\x01-\x7f]+", regex.UNICODE)


def decode_escapes(pos: Optional[SourcePosition], s: str) -> str:
    try:
        return ASCII_PARTS_RE.sub(lambda match: codecs.decode(match.group(0), "unicode-escape"), s)
    except (SyntaxError, ValueError, UnicodeError):
        raise BadCharacterEncoding(pos)


class _Recovery:
    # on_error handler for lark's LALR parser: record each error and skip the offending
    # token/character, and at end of input try to close whatever constructs are still open

    def __init__(
        self,
        lark_parser: lark.Lark,
        errors: List[Error.SyntaxError],
        max_errors: int,
        pos_args: Dict[str, str],
    ) -> None:
        self.errors = errors
        self.max_errors = max_errors
        self.pos_args = pos_args
        self.patterns = {t.name: t.pattern for t in lark_parser.terminals}
        self.closers = [
            name
            for closer in _CLOSERS
            for name, pattern in self.patterns.items()
            if pattern.value == closer
        ]
        self.regexps = {
            name: regex.compile(pattern.to_regexp())
            for name, pattern in self.patterns.items()
            if name not in _RUNS
        }
        self.seen = set()
        self.completions = 0

    def __call__(self, exn: lark.exceptions.UnexpectedInput) -> bool:
        self.record(exn)
        if len(self.errors) >= self.max_errors:
            _logger.debug(_("giving up after too many syntax errors", errors=len(self.errors)))
            return False
        if isinstance(exn, lark.exceptions.UnexpectedToken):
            if exn.token.type == "$END":
                return self.complete(exn)
            if self.stray(exn):
                self.rewind(exn)
        return True

    def stray(self, exn: lark.exceptions.UnexpectedToken) -> bool:
        # Outside of a string or command, lark's contextual lexer falls back on lexing with all
        # terminals, which yields a fragment running over whatever follows the bad character.
        return exn.token.type in _RUNS and exn.token.type not in exn.expected

    def relex(self, text: str) -> Tuple[str, str]:
        # longest non-fragment terminal matching at the start of text, if any
        best = ("", "")
        for name, pattern in self.regexps.items():
            match = pattern.match(text)
            if match and len(match.group(0)) > len(best[1]):
                best = (name, match.group(0))
        return best

    def rewind(self, exn: lark.exceptions.UnexpectedToken) -> None:
        # resume lexing just after the stray token (or character) instead of after the fragment
        token = exn.token
        skip = self.relex(token.value)[1] or token.value[:1]
        line_ctr = exn.interactive_parser.lexer_thread.state.line_ctr
        line_ctr.char_pos = token.start_pos
        line_ctr.line = token.line
        line_ctr.column = token.column
        line_ctr.line_start_pos = token.start_pos - token.column + 1
        line_ctr.feed(skip)

    def record(self, exn: lark.exceptions.UnexpectedInput) -> None:
        line = exn.line if isinstance(exn.line, int) and exn.line > 0 else 1
        column = exn.column - 1 if isinstance(exn.column, int) and exn.column > 0 else 0
        if isinstance(exn, lark.exceptions.UnexpectedCharacters):
            message = "token recognition error at: '{}'".format(exn.char)
        elif isinstance(exn, lark.exceptions.UnexpectedToken):
            name, value = exn.token.type, exn.token.value
            if self.stray(exn):
                name, value = self.relex(value)
                if not name:
                    message = "token recognition error at: '{}'".format(exn.token.value[:1])
            if name:
                message = "mismatched input {} expecting {{{}}}".format(
                    self.terminal(name, value),
                    ", ".join(sorted(self.terminal(name) for name in exn.expected)),
                )
        else:
            message = str(exn).strip().split("\n")[0]
        if (line, column, message) in self.seen:
            return
        self.seen.add((line, column, message))
        pos = SourcePosition(
            line=line, column=column + 1, end_line=line, end_column=column + 1, **self.pos_args
        )
        err = Error.SyntaxError(line, column, message, pos)
        _logger.debug(_("syntax error", line=line, column=column, message=message))
        self.errors.append(err)

    def terminal(self, name: str, value: Optional[str] = None) -> str:
        if name == "$END":
            return "<EOF>"
        if value is not None:
            return "'{}'".format(value)
        pattern = self.patterns.get(name)
        if isinstance(pattern, lark.lexer.PatternStr):
            return "'{}'".format(pattern.value)
        return name

    def complete(self, exn: lark.exceptions.UnexpectedToken) -> bool:
        # feed closing tokens until the parser accepts end of input
        self.completions += 1
        if self.completions > 1:
            return False
        interactive = exn.interactive_parser
        for _i in range(_MAX_CLOSERS):
            accepts = interactive.accepts()
            if "$END" in accepts:
                return True
            closer = next((name for name in self.closers if name in accepts), None)
            if closer is None:
                return False
            value = self.patterns[closer].value
            interactive.feed_token(lark.Token.new_borrow_pos(closer, value, exn.token))
        return False


def parse_tree(
    txt: str,
    start: str = "document",
    version: Optional[str] = None,
    max_errors: int = 100,
    errors: Optional[List[Error.SyntaxError]] = None,
    uri: str = "",
    abspath: str = "",
) -> Optional[lark.Tree]:
    """
    Parse ``txt`` into a lark parse tree, appending syntax errors to ``errors``. Unexpected tokens
    and characters are skipped so that parsing can continue, until ``max_errors`` have been
    reported. Returns ``None`` if no tree could be salvaged.
    """
    if errors is None:
        errors = []
    lark_parser = parser(version, start)
    recovery = _Recovery(
        lark_parser,
        errors,
        max(max_errors, 1),
        {"uri": uri or "(buffer)", "abspath": abspath or uri or "(buffer)"},
    )
    try:
        return lark_parser.parse(txt, on_error=recovery)
    except lark.exceptions.UnexpectedInput as exn:
        recovery.record(exn)
        return None


class _Walker(lark.visitors.Interpreter):
    # replays the parse tree in document order as enter/exit/terminal events

    def __init__(self, listener: Any) -> None:
        super().__init__()
        self._listener = listener

    def __default__(self, tree: lark.Tree) -> None:
        self._listener.enter(tree)
        for child in tree.children:
            if isinstance(child, lark.Tree):
                self.visit(child)
            else:
                self._listener.visit_terminal(child)
        self._listener.exit(tree)


def walk(tree: lark.Tree, listener: Any) -> None:
    """
    Walk ``tree`` depth-first, calling ``listener.enter(tree)`` and ``listener.exit(tree)`` around
    each subtree and ``listener.visit_terminal(token)`` for each token kept in the tree
    """
    _Walker(listener).visit(tree)
