import unittest
from .context import WDLParser
from WDLParser import Error, Value
from WDLParser.Scope import Scope
from WDLParser.Tree import Decl, Workflow, Document


class TestScope(unittest.TestCase):
    def setUp(self):
        self.doc = Document("test.wdl", 100)
        self.wf = Workflow(10, 90, "w")
        self.doc.scope.define("w", self.wf)
        self.doc.scope.push_child(self.wf.scope)
        self.inner = self.wf.scope.push_child(Scope())
        self.a = Decl(20, 25, "a", "Int")
        self.b = Decl(30, 35, "b", "Int")
        self.a2 = Decl(40, 45, "a", "String")
        self.wf.scope.define("a", self.a)
        self.wf.scope.define("b", self.b)
        self.inner.define("a", self.a2)

    def test_define(self):
        with self.assertRaises(Error.EmptyName) as ctx:
            self.wf.scope.define("", Decl(0, 1, "", "Int"))
        self.assertEqual(ctx.exception.code, "empty-name")
        with self.assertRaises(Error.MultipleDefinitions) as ctx:
            self.wf.scope.define("a", Decl(50, 55, "a", "Float"))
        self.assertEqual(ctx.exception.code, "redefinition")
        self.assertIn("already defined", str(ctx.exception))
        # the later definition is ignored
        self.assertIs(self.wf.scope.symbols["a"], self.a)
        self.assertEqual(list(self.wf.scope), ["a", "b"])
        self.assertIn("b", self.wf.scope)
        self.assertNotIn("c", self.wf.scope)

    def test_resolve(self):
        self.assertIs(self.inner.resolve("a"), self.a2)
        self.assertIs(self.inner.resolve("b"), self.b)
        self.assertIs(self.wf.scope.resolve("a"), self.a)
        self.assertIs(self.inner.resolve("w"), self.wf)
        scope, symbol = self.inner.find("b")
        self.assertIs(scope, self.wf.scope)
        self.assertIs(symbol, self.b)
        with self.assertRaises(Error.UnknownIdentifier) as ctx:
            self.inner.resolve("c")
        self.assertEqual(ctx.exception.code, "unresolved")
        self.assertEqual(ctx.exception.name, "c")
        # lookup doesn't descend into children
        with self.assertRaises(Error.UnknownIdentifier):
            self.doc.scope.resolve("a")

    def test_nearest_binding(self):
        # every resolved symbol is found by walking outwards, and is the nearest binding
        for scope in [self.doc.scope, self.wf.scope, self.inner]:
            for name in ["a", "b", "w"]:
                try:
                    symbol = scope.resolve(name)
                except Error.UnknownIdentifier:
                    continue
                pos = scope
                while name not in pos.symbols:
                    pos = pos.parent
                self.assertIs(pos.symbols[name], symbol)

    def test_tree(self):
        self.assertIs(self.inner.parent, self.wf.scope)
        self.assertIs(self.wf.scope.parent, self.doc.scope)
        self.assertEqual(self.doc.scope.children, [self.wf.scope])
        self.assertEqual(self.wf.scope.children, [self.inner])
        self.assertIs(self.inner.root, self.doc.scope)
        self.assertIs(self.doc.scope.root, self.doc.scope)
        self.assertIs(self.wf.scope.node, self.wf)
        self.assertIsNone(self.inner.node)

    def test_dotted(self):
        self.assertIs(self.doc.scope.resolve_dotted(["w", "b"]), self.b)
        self.assertIs(self.inner.resolve_dotted(["a"]), self.a2)
        with self.assertRaises(Error.UnknownIdentifier):
            self.doc.scope.resolve_dotted(["w", "c"])
        with self.assertRaises(Error.UnknownIdentifier):
            self.doc.scope.resolve_dotted(["w", "b", "c"])
        with self.assertRaises(Error.UnknownIdentifier):
            self.doc.scope.resolve_dotted([])


class TestDocumentScopes(unittest.TestCase):
    def test_calls_and_imports(self):
        doc, errors = WDLParser.parse_document(
            """
            version 1.1
            import "lib.wdl" as lib
            workflow w {
                input {
                    Int n = 1
                }
                call t { input: x = n }
                call lib.u as u2
                Int m = t.out + 1
            }
            task t {
                input {
                    Int x
                }
                command {}
                output {
                    Int out = x * 2
                }
            }
            """
        )
        self.assertEqual(errors, [])
        self.assertEqual(list(doc.scope.symbols), ["lib", "w", "t"])
        wf = doc.workflow
        self.assertEqual(list(wf.scope.symbols), ["n", "t", "u2", "m"])
        self.assertIs(wf.scope.resolve("t"), wf.calls[0])
        self.assertIs(wf.scope.resolve_dotted(["t", "out"]), doc.tasks[0].outputs[0])
        self.assertIs(wf.scope.resolve_dotted(["t", "x"]), doc.tasks[0].inputs[0])
        # imported documents are only consulted when given
        with self.assertRaises(Error.UnknownIdentifier):
            wf.scope.resolve_dotted(["u2", "x"])
        with self.assertRaises(Error.UnknownIdentifier):
            wf.scope.resolve_dotted(["lib", "u"])
        lib, errors = WDLParser.parse_document(
            "version 1.1\ntask u {\n  input {\n    Int x\n  }\n  command {}\n}\n"
        )
        self.assertEqual(errors, [])
        self.assertIs(
            wf.scope.resolve_dotted(["lib", "u", "x"], {"lib": lib}), lib.tasks[0].inputs[0]
        )
        self.assertIs(wf.scope.resolve_dotted(["u2", "x"], {"lib": lib}), lib.tasks[0].inputs[0])

        # t.out refers to the task's output, evaluated with the call's input supplied
        m = wf.scope.resolve("m")
        self.assertEqual(
            m.initializer.eval(wf.scope, inputs={"t.out": Value.Int(6)}), Value.Int(7)
        )
        self.assertEqual(
            doc.tasks[0].outputs[0].initializer.eval(doc.tasks[0].scope, inputs={"x": Value.Int(3)}),
            Value.Int(6),
        )

    def test_circular(self):
        doc, errors = WDLParser.parse_document(
            "version 1.1\nworkflow w {\n  Int a = b + 1\n  Int b = a + 1\n  Int c = 1\n  String d = c\n}\n"
        )
        self.assertEqual(errors, [])
        a = doc.workflow.scope.resolve("a")
        with self.assertRaises(Error.CircularDependencies):
            a.initializer.eval(doc.workflow.scope)
        # the String declaration coerces the Int it refers to
        self.assertEqual(WDLParser.parse_expr("d").eval(doc.workflow.scope), Value.String("1"))
        self.assertEqual(WDLParser.parse_expr("c").eval(doc.workflow.scope), Value.Int(1))
        # the workflow's own name is visible from inside it, but isn't a value
        self.assertIs(doc.workflow.scope.resolve("w"), doc.workflow)
        expr = WDLParser.parse_expr("w + 1")
        with self.assertRaises(Error.UnknownIdentifier) as ctx:
            expr.eval(doc.workflow.scope)
        self.assertIn("not a value", str(ctx.exception))

    def test_depth(self):
        decls = "\n".join("  Int x{} = x{} + 1".format(i + 1, i) for i in range(20))
        doc, errors = WDLParser.parse_document(
            "version 1.1\nworkflow w {\n  Int x0 = 0\n" + decls + "\n}\n"
        )
        self.assertEqual(errors, [])
        x20 = doc.workflow.scope.resolve("x20")
        self.assertEqual(x20.initializer.eval(doc.workflow.scope), Value.Int(20))
        with self.assertRaises(Error.EvalError):
            x20.initializer.eval(doc.workflow.scope, max_depth=10)
