"""
``wdlparser`` parses documents in the `Workflow Description Language (WDL) <http://openwdl.org/>`_,
version 1.1, into an abstract syntax tree with source positions, lexical scopes, and expressions
compiled to Reverse Polish Notation which can be evaluated against an environment. Simply
``import WDLParser``:

::

    doc, errors = WDLParser.parse("hello.wdl")
    for err in errors:
        print(err)                                 # line 3:10 "mismatched input ..."
    task = doc.tasks[0]
    print(task.command)
    print(task.scope.resolve("name").initializer.eval(task.scope))
"""
import os
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple
from . import _util, _parser, _grammar, Error, Type, Value, Expr, Tree, Scope, StdLib, Walker
from . import config
from .Listener import Listener
from .Tree import (
    Decl,
    StructTypeDef,
    KeyValue,
    Block,
    Task,
    Call,
    Scatter,
    Conditional,
    Workflow,
    Import,
    Document,
    attach_child,
)
from .Expr import Expression, Identifier, Apply, Operator, eval_rpn

SourcePosition = Error.SourcePosition
SourceNode = Error.SourceNode
NodeKind = Error.NodeKind

_logger = logging.getLogger("wdlparser")

_default_cfg: Optional[config.Loader] = None
_default_cfg_lock = threading.Lock()


def default_config() -> config.Loader:
    """
    Configuration loaded from the environment and the packaged defaults, on first use
    """
    global _default_cfg
    with _default_cfg_lock:
        if _default_cfg is None:
            _default_cfg = config.Loader(logging.getLogger("wdlparser.config"))
        return _default_cfg


def parse(
    path_or_source: str, uri: Optional[str] = None, cfg: Optional[config.Loader] = None
) -> Tuple[Document, List[Error.SyntaxError]]:
    """
    Parse a WDL document given its filename, or its source text, into an abstract syntax tree.
    Imported documents are not loaded.

    :param path_or_source: if it names an existing file, the file is read (UTF-8); otherwise it's
                           taken as the WDL source text
    :param uri: filename/URI for source positions (default: the filename, or ``(buffer)``)
    :return: the document and the syntax errors found, sorted by position. The document is
             complete only if there are no syntax errors; other problems found while building it
             are listed in ``Document.errors``.
    :raise OSError: the file couldn't be read
    """
    if "\n" not in path_or_source and os.path.isfile(path_or_source):
        with open(path_or_source, "r", encoding="utf-8") as infile:
            txt = infile.read()
        return parse_document(
            txt, uri or path_or_source, os.path.abspath(path_or_source), cfg=cfg
        )
    return parse_document(path_or_source, uri or "", cfg=cfg)


def parse_document(
    source_text: str, uri: str = "", abspath: str = "", cfg: Optional[config.Loader] = None
) -> Tuple[Document, List[Error.SyntaxError]]:
    """
    Parse WDL document text into an abstract syntax tree (see :func:`parse`)

    :param uri: filename/URI for source positions (not otherwise used)
    """
    cfg = cfg or default_config()
    version = cfg["parser"]["wdl_version"]
    if version not in _grammar.versions:
        raise ValueError(
            "unsupported WDL version {} in configuration option [parser] wdl_version".format(
                version
            )
        )
    keywords = _grammar.get(version)[1]
    txt = source_text if source_text.endswith("\n") else source_text + "\n"

    doc = Document(uri, max(len(source_text), 1))
    doc.source_text = source_text
    errors: List[Error.SyntaxError] = []
    _logger.debug(_util.StructuredLogMessage("parse", uri=uri, size=len(source_text)))
    tree = _parser.parse_tree(
        txt,
        "document",
        version,
        cfg["parser"].get_int("max_syntax_errors"),
        errors,
        uri,
        abspath,
    )
    listener = Listener(doc, keywords, errors, txt, uri, abspath)
    if tree is not None:
        _parser.walk(tree, listener)
    listener.finish()
    _logger.debug(
        _util.StructuredLogMessage(
            "parsed",
            uri=uri,
            syntax_errors=len(errors),
            errors=len(doc.errors),
            tasks=len(doc.tasks),
            workflow=(doc.workflow.name if doc.workflow else None),
        )
    )
    return (doc, errors)


def load(path: str, cfg: Optional[config.Loader] = None) -> Document:
    """
    Read and parse a WDL document from a file

    :raise WDLParser.Error.SyntaxError: the first syntax error, if any
    :raise OSError: the file couldn't be read
    """
    with open(path, "r", encoding="utf-8") as infile:
        txt = infile.read()
    doc, errors = parse_document(txt, path, os.path.abspath(path), cfg=cfg)
    if errors:
        raise errors[0]
    return doc


def parse_expr(txt: str, cfg: Optional[config.Loader] = None) -> Expression:
    """
    Compile an isolated WDL expression

    :raise WDLParser.Error.SyntaxError: the expression has a syntax error
    """
    cfg = cfg or default_config()
    version = cfg["parser"]["wdl_version"]
    errors: List[Error.SyntaxError] = []
    tree = _parser.parse_tree(txt, "expr", version, 1, errors)
    doc = Document("", max(len(txt), 1))
    doc.source_text = txt
    listener = Listener(doc, _grammar.get(version)[1], errors, txt)
    if tree is not None and not errors:
        _parser.walk(tree, listener)
    listener.finish()
    if errors:
        raise errors[0]
    if doc.errors:
        raise doc.errors[0]
    assert listener.expression is not None
    return listener.expression


def values_from_json(bindings: Dict[str, Any]) -> Dict[str, Value.Base]:
    """
    Convert a dict of names to JSON scalars into values for :meth:`WDLParser.Expr.Expression.eval`
    (the WDL type of each is inferred from the JSON type)

    :raise WDLParser.Error.IncompatibleOperand: a value isn't a JSON scalar
    """
    return {name: Value.from_json(Type.Any(), value) for name, value in bindings.items()}
