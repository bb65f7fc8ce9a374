"""
wdlparser command-line interface
"""
# PYTHON_ARGCOMPLETE_OK
import sys
import os
import json
import logging
from argparse import ArgumentParser, RawDescriptionHelpFormatter
from contextlib import ExitStack
import argcomplete
from . import parse_document, parse_expr, values_from_json, config, Error, Walker
from ._util import VERBOSE_LEVEL, NOTICE_LEVEL, configure_logger, ANSI
from ._util import StructuredLogMessage as _


def main(args=None):
    sys.setrecursionlimit(1_000_000)  # permit as much call stack depth as OS can give us

    parser = create_arg_parser()
    argcomplete.autocomplete(parser)

    replace_COLUMNS = os.environ.get("COLUMNS", None)
    os.environ["COLUMNS"] = "100"  # make help descriptions wider
    args = parser.parse_args(args if args is not None else sys.argv[1:])
    if replace_COLUMNS is not None:
        os.environ["COLUMNS"] = replace_COLUMNS
    else:
        del os.environ["COLUMNS"]

    level = NOTICE_LEVEL
    if args.verbose:
        level = VERBOSE_LEVEL
    if args.debug:
        level = logging.DEBUG
    else:
        logging.raiseExceptions = False
    logging.basicConfig(level=level)
    logger = logging.getLogger("wdlparser")

    with ExitStack() as cleanup:
        cleanup.enter_context(configure_logger(json=args.log_json))

        cfg_arg = None
        if args.cfg_file:
            if not os.path.isfile(args.cfg_file):
                print_error(OSError("--cfg file not found: " + args.cfg_file))
                sys.exit(2)
            cfg_arg = [args.cfg_file]
        cfg = config.Loader(logger, filenames=cfg_arg)
        cfg.log_all()

        try:
            if args.command == "check":
                rc = check(cfg=cfg, **vars(args))
            elif args.command == "eval":
                rc = eval_expr(cfg=cfg, **vars(args))
            else:
                assert False
        except (Error.SyntaxError, Error.EvalError, Error.ValidationError) as exn:
            print_error(exn)
            if args.debug:
                raise exn
            rc = 1
        except OSError as exn:
            print_error(exn)
            if args.debug:
                raise exn
            rc = 2
    sys.exit(rc)


def create_arg_parser():
    parser = ArgumentParser("wdlparser")
    subparsers = parser.add_subparsers()
    subparsers.required = True
    subparsers.dest = "command"
    fill_common(fill_check_subparser(subparsers))
    fill_common(fill_eval_subparser(subparsers))
    return parser


def fill_common(subparser):
    group = subparser.add_argument_group("logging")
    group.add_argument(
        "--debug", action="store_true", help="maximally verbose logging & exception tracebacks"
    )
    group.add_argument("-v", "--verbose", action="store_true", help="increase logging detail")
    group.add_argument("--log-json", action="store_true", help="write all logs in JSON")
    group = subparser.add_argument_group("configuration")
    group.add_argument(
        "--cfg",
        metavar="FILE",
        dest="cfg_file",
        type=str,
        default=None,
        help="configuration file to load (in preference to file named by WDLPARSER_CFG environment)",
    )
    return subparser


def fill_check_subparser(subparsers):
    check_parser = subparsers.add_parser(
        "check",
        help="Parse WDL documents, reporting syntax errors",
        description="Parse WDL 1.1 documents, reporting syntax errors one per line as\n"
        '    line L:C "message"\n'
        "and problems building the syntax tree (duplicate definitions, misplaced elements...) as\n"
        "warnings. Exit status is 1 if any document has syntax errors, 2 if one can't be read.",
        formatter_class=RawDescriptionHelpFormatter,
    )
    check_parser.add_argument(
        "uri", metavar="WDL_FILE", type=str, nargs="+", help="WDL document filename"
    )
    check_parser.add_argument(
        "--outline", action="store_true", help="print an outline of each document"
    )
    check_parser.add_argument(
        "--json", action="store_true", help="print the syntax tree of each document as JSON"
    )
    check_parser.add_argument(
        "--strict",
        action="store_true",
        help="exit with nonzero status code if any warnings are shown (in addition to syntax errors)",
    )
    return check_parser


def check(uri=None, cfg=None, outline=False, json=False, strict=False, **kwargs):
    logger = logging.getLogger("wdlparser.check")
    rc = 0
    for uri1 in uri or []:
        with open(uri1, "r", encoding="utf-8") as infile:
            txt = infile.read()
        doc, errors = parse_document(txt, uri1, os.path.abspath(uri1), cfg=cfg)
        for err in errors:
            print_error(err)
        for exn in doc.errors:
            print_warning(exn)
        logger.verbose(
            _("checked", uri=uri1, syntax_errors=len(errors), warnings=len(doc.errors))
        )
        if errors or (strict and doc.errors):
            rc = 1
        if outline:
            print(os.path.basename(uri1))
            _Outline(sys.stdout)(doc)
        if json:
            print(_json_dumps(Walker.to_json(doc)))
    return rc


def _json_dumps(obj):
    return json.dumps(obj, indent=2)


class _Outline(Walker.Base):
    # recursively pretty-print a brief outline of the document
    def __init__(self, file):
        super().__init__()
        self._file = file
        self._level = 1

    def _print(self, txt):
        print("{}{}".format(" " * (self._level * 4), txt), file=self._file)

    def _indent(self, obj):
        self._level += 1
        self._descend(obj)
        self._level -= 1

    def document(self, obj):
        if obj.version:
            self._print("version {}".format(obj.version))
        for imp in obj.imports:
            self._print("import {} : {}".format(imp.namespace, imp.uri))
        for st in obj.structs:
            self(st)
        if obj.workflow:
            self(obj.workflow)
        for task in obj.tasks:
            self(task)

    def struct_typedef(self, obj):
        self._print("struct {}".format(obj.name))
        self._indent(obj)

    def workflow(self, obj):
        self._print("workflow {}".format(obj.name))
        self._level += 1
        for elt in obj.inputs + obj.private_decls + obj.calls + obj.sections + obj.outputs:
            self(elt)
        self._level -= 1

    def task(self, obj):
        self._print("task {}".format(obj.name))
        self._level += 1
        for decl in obj.inputs + obj.private_decls + obj.outputs:
            self(decl)
        self._level -= 1

    def call(self, obj):
        if obj.alias:
            self._print("call {} as {}".format(obj.target, obj.alias))
        else:
            self._print("call {}".format(obj.target))

    def scatter(self, obj):
        self._print("scatter {}".format(obj.variable))
        self._indent(obj)

    def conditional(self, obj):
        self._print("if")
        self._indent(obj)

    def decl(self, obj):
        self._print(str(obj.declared_type) + " " + obj.identifier)

    def expr(self, obj):
        pass


def fill_eval_subparser(subparsers):
    eval_parser = subparsers.add_parser(
        "eval",
        help="Evaluate a WDL expression",
        description="Compile a WDL expression and evaluate it with the given bindings, printing the\n"
        "resulting value as JSON, e.g.\n"
        "    wdlparser eval '\"~{greeting}, ~{n + 1}\"' greeting='\"hello\"' n=41",
        formatter_class=RawDescriptionHelpFormatter,
    )
    eval_parser.add_argument("expr", metavar="EXPR", type=str, help="WDL expression")
    eval_parser.add_argument(
        "bindings",
        metavar="NAME=JSON",
        type=str,
        nargs="*",
        help="value bound to an identifier, as a JSON scalar",
    )
    return eval_parser


def eval_expr(expr=None, bindings=None, cfg=None, **kwargs):
    env = {}
    for binding in bindings or []:
        name, eq, value = binding.partition("=")
        if not eq or not name:
            raise Error.EvalError(None, "invalid binding (expected NAME=JSON): " + binding)
        try:
            env[name.strip()] = json.loads(value)
        except ValueError:
            # bare words are taken as strings
            env[name.strip()] = value
    expression = parse_expr(expr, cfg=cfg)
    ans = expression.eval(
        values_from_json(env), max_depth=cfg["eval"].get_int("max_depth") if cfg else 100
    )
    print(_json_dumps(ans.json))
    return 0


def print_error(exn):
    if sys.stderr.isatty():
        sys.stderr.write(ANSI.BHRED)
    if isinstance(exn, Error.SyntaxError):
        print(str(exn), file=sys.stderr)
    elif isinstance(getattr(exn, "pos", None), Error.SourcePosition):
        print(f"({exn.pos.uri} Ln {exn.pos.line} Col {exn.pos.column}) {exn}", file=sys.stderr)
    else:
        print(str(exn), file=sys.stderr)
    if sys.stderr.isatty():
        sys.stderr.write(ANSI.RESET)


def print_warning(exn):
    if sys.stderr.isatty():
        sys.stderr.write(ANSI.YELLOW)
    if isinstance(getattr(exn, "pos", None), Error.SourcePosition):
        print(
            f"(Ln {exn.pos.line} Col {exn.pos.column}) {exn.code}, {exn}",
            file=sys.stderr,
        )
    else:
        print(f"{exn.code}, {exn}", file=sys.stderr)
    if sys.stderr.isatty():
        sys.stderr.write(ANSI.RESET)
