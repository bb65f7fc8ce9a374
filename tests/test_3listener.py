import logging
import unittest
from .context import WDLParser
from WDLParser import Error, config, _grammar, _parser
from WDLParser.Error import NodeKind
from WDLParser.Listener import Listener
from WDLParser.Tree import attach_child, Call, Decl, Document, KeyValue, Task


class TestSyntaxErrors(unittest.TestCase):
    def test_bad_character(self):
        doc, errors = WDLParser.parse_document("version 1.1\nworkflow w { Int x = 1 @ }\n")
        self.assertEqual(len(errors), 1)
        self.assertEqual(str(errors[0]), 'line 2:23 "token recognition error at: \'@\'"')
        self.assertEqual(errors[0].code, "syntax")
        self.assertEqual((errors[0].line, errors[0].column), (2, 23))
        # parsing continued past the bad character
        self.assertEqual(doc.workflow.name, "w")
        self.assertEqual([str(d) for d in doc.workflow.private_decls], ["Int x = [1]"])

    def test_mismatched_input(self):
        doc, errors = WDLParser.parse_document("version 1.1\nworkflow w {\n  Int x = \n}\n")
        self.assertTrue(errors)
        self.assertEqual(errors[0].line, 4)
        self.assertTrue(errors[0].message.startswith("mismatched input '}' expecting {"))

    def test_version(self):
        _, errors = WDLParser.parse_document("workflow w {}\n")
        self.assertEqual([str(err) for err in errors], ['line 1:0 "missing version statement"'])
        doc, errors = WDLParser.parse_document("version 1.0\nworkflow w {}\n")
        self.assertEqual(doc.version, "1.0")
        self.assertEqual(
            [str(err) for err in errors], ['line 1:0 "unknown WDL version 1.0; choices: 1.1"']
        )

    def test_keywords(self):
        _, errors = WDLParser.parse_document("version 1.1\nworkflow w {\n  Int input = 1\n}\n")
        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0].message, "unexpected keyword input")
        self.assertEqual(errors[0].line, 3)
        _, errors = WDLParser.parse_document(
            "version 1.1\ntask scatter {\n  command {}\n}\nstruct call {\n  Int x\n}\n"
        )
        self.assertEqual(
            [(err.line, err.message) for err in errors],
            [(2, "unexpected keyword scatter"), (5, "unexpected keyword call")],
        )

    def test_sorted(self):
        _, errors = WDLParser.parse_document("workflow w {\n  Int x = 1 @\n  Int y = 2 #\n  $\n}\n")
        self.assertEqual(len(errors), 3)
        self.assertEqual(errors[0].message, "missing version statement")
        self.assertEqual([err.line for err in errors], [1, 2, 4])
        self.assertEqual(errors, sorted(errors, key=lambda err: (err.line, err.column)))

    def test_max_errors(self):
        src = "version 1.1\nworkflow w {\n" + "  Int x = 1 @\n" * 10 + "}\n"
        _, errors = WDLParser.parse_document(src)
        self.assertEqual(len(errors), 10)
        cfg = config.Loader(
            logging.getLogger("test_max_errors"),
            filenames=[],
            overrides={"parser": {"max_syntax_errors": 3}},
        )
        doc, errors = WDLParser.parse_document(src, cfg=cfg)
        self.assertEqual(len(errors), 3)
        self.assertIsNone(doc.workflow)

    def test_unclosed(self):
        doc, errors = WDLParser.parse_document("version 1.1\ntask t {\n  command {\n    echo\n")
        self.assertTrue(errors)
        self.assertIn("<EOF>", errors[0].message)
        # the open constructs were closed to salvage the tree
        self.assertEqual([task.name for task in doc.tasks], ["t"])
        self.assertEqual(doc.tasks[0].command, ["\n    echo\n"])


class TestListener(unittest.TestCase):
    src = "version 1.1\nworkflow w {\n  input {\n  }\n}\n"

    def _listener(self):
        tree = _parser.parse_tree(self.src)
        doc = Document("", len(self.src))
        listener = Listener(doc, _grammar.keywords["1.1"], [], self.src)
        wf = tree.children[1]
        self.assertEqual(wf.data, "workflow")
        inp = wf.children[1]
        self.assertEqual(inp.data, "input_block")
        return (doc, listener, wf, inp)

    def test_mismatch_context(self):
        doc, listener, wf, inp = self._listener()
        listener.enter(wf)
        listener.enter(inp)
        listener.exit(wf)
        self.assertEqual(len(doc.errors), 1)
        self.assertIsInstance(doc.errors[0], Error.MismatchContext)
        self.assertEqual(str(doc.errors[0]), "end of workflow while inside input-block")
        self.assertEqual(doc.errors[0].code, "mismatch-context")
        listener.exit(inp)
        self.assertEqual(str(doc.errors[1]), "end of input-block while inside nothing")
        self.assertEqual(doc.errors[1].expected, NodeKind.INPUT_BLOCK)
        self.assertIsNone(doc.errors[1].actual)
        # the workflow stays attached
        self.assertEqual(doc.workflow.name, "w")
        self.assertIsNotNone(doc.workflow.input_block)

    def test_unfinished(self):
        doc, listener, wf, _ = self._listener()
        listener.enter(wf)
        _, syntax_errors = listener.finish()
        self.assertEqual(syntax_errors, [])
        self.assertEqual([str(err) for err in doc.errors], ["end of workflow while inside nothing"])

    def test_walk(self):
        doc, listener, _, _ = self._listener()
        _parser.walk(_parser.parse_tree(self.src), listener)
        doc2, syntax_errors = listener.finish()
        self.assertIs(doc2, doc)
        self.assertEqual(syntax_errors, [])
        self.assertEqual(doc.errors, [])
        self.assertEqual(doc.version, "1.1")
        self.assertEqual(doc.workflow.raw_elements, ["input {\n  }"])

    def test_warnings_logged(self):
        with self.assertLogs("wdlparser.listener", level="WARNING") as logs:
            doc, errors = WDLParser.parse_document(
                "version 1.1\nworkflow w {\n  Int x = 1\n  Int x = 2\n}\n"
            )
        self.assertEqual(errors, [])
        self.assertEqual(len(doc.errors), 1)
        self.assertEqual(len(logs.records), 1)
        self.assertIn("x is already defined", logs.output[0])


class TestAttach(unittest.TestCase):
    def test_kind_mismatch(self):
        call = Call(0, 10, "t")
        decl = Decl(2, 8, "x", "Int")
        with self.assertRaises(Error.KindMismatch) as ctx:
            attach_child(call, decl)
        self.assertEqual(str(ctx.exception), "call cannot contain declaration")
        self.assertIsNone(decl.parent)
        self.assertEqual(list(call.children), [])

        doc = Document("", 100)
        with self.assertRaises(Error.KindMismatch):
            attach_child(doc, Decl(2, 8, "x", "Int"))
        self.assertEqual(list(doc.children), [])

    def test_dedup(self):
        doc = Document("", 100)
        defined = []
        task = Task(10, 50, "t")
        self.assertIs(attach_child(doc, task, lambda: defined.append("t")), task)
        self.assertIs(task.parent, doc)
        again = Task(10, 50, "t")
        self.assertIs(attach_child(doc, again, lambda: defined.append("t")), task)
        self.assertIsNone(again.parent)
        self.assertEqual(doc.tasks, [task])
        self.assertEqual(defined, ["t"])

        # same span but different kind is a distinct child
        call = Call(0, 10, "t")
        kv = KeyValue(3, 7, "x", "1")
        attach_child(call, kv)
        with self.assertRaises(Error.MultipleDefinitions):
            attach_child(call, KeyValue(8, 9, "x", "2"))
        self.assertIs(attach_child(call, KeyValue(3, 7, "x", "1")), kv)
        self.assertEqual(call.inputs, [kv])

    def test_define_failure(self):
        doc = Document("", 100)

        def define():
            raise Error.MultipleDefinitions(None, "t is already defined")

        task = Task(10, 50, "t")
        with self.assertRaises(Error.MultipleDefinitions):
            attach_child(doc, task, define)
        self.assertIsNone(task.parent)
        self.assertEqual(doc.tasks, [])

    def test_spans(self):
        doc, errors = WDLParser.parse_document(
            "version 1.1\ntask t {\n  command {}\n}\nworkflow w {\n  call t\n}\n"
        )
        self.assertEqual(errors, [])
        for node in [doc.tasks[0], doc.workflow, doc.workflow.calls[0]]:
            parent = node.parent
            self.assertTrue(parent.start <= node.start <= node.end <= parent.end)
        self.assertEqual((doc.start, doc.end), (0, len(doc.source_text) - 1))
        self.assertEqual(doc.source_text[doc.workflow.start : doc.workflow.end + 1][:8], "workflow")
        self.assertEqual(doc.source_text[doc.workflow.end], "}")
