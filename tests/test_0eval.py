import unittest, inspect, math
from .context import WDLParser
from WDLParser import Value, Error
from WDLParser.Expr import Operator, eval_rpn


class TestCompile(unittest.TestCase):
    def test_rpn(self):
        for txt, rpn in [
            ("3+4*2/(1-5*2)+3", "[3, 4, 2, mul, Expression[1, 5, 2, mul, sub], div, add, 3, add]"),
            ('"~{1 + i}"', '["", Expression[1, i, add], str, "", add, add]'),
            ("1 - 2 - 3", "[1, 2, sub, 3, sub]"),
            ("a || b && c", "[a, b, c, and, or]"),
            (
                "1 + 2 == 3 && x < 4 || !y",
                "[1, 2, add, 3, eq, x, 4, lt, and, Expression[y], not, or]",
            ),
            ("-x", "[Expression[x], neg]"),
            ("!b", "[Expression[b], not]"),
            ("+x", "[Expression[x]]"),
            ("-(1 + 2)", "[Expression[Expression[1, 2, add]], neg]"),
            ("(1)", "[Expression[1]]"),
            ("None", "[None]"),
            ("1.5", "[1.5]"),
            ("true", "[true]"),
            ("a.b.c", "[a.b.c]"),
            ("p.left", "[p.left]"),
            ("f(1, x)", "[Expression[1], Expression[x], f/2]"),
            ("stdout()", "[stdout/0]"),
            ('f(x).y', '[Expression[x], f/1, "y", _get/2]'),
            ("[1, 2]", "[Expression[1], Expression[2], _array/2]"),
            ("(1, 2)", "[Expression[1], Expression[2], _pair/2]"),
            ('{"k": 1}', '["k", Expression[1], _map/2]'),
            ("object { a: 1 }", '["a", Expression[1], _object/2]'),
            ('Person { name: "x" }', '["Person", "name", Expression["x"], _struct/3]'),
            ("if c then 1 else 2", "[Expression[c], Expression[1], Expression[2], _ifthenelse/3]"),
            ("xs[0]", "[xs, Expression[0], _at/2]"),
            ("[1][0]", "[Expression[1], _array/1, Expression[0], _at/2]"),
        ]:
            self.assertEqual(str(WDLParser.parse_expr(txt)), rpn, txt)

    def test_subexpressions(self):
        expr = WDLParser.parse_expr("3+4*2/(1-5*2)+3")
        self.assertEqual(len(list(expr.children)), 1)
        sub = expr.rpn[4]
        self.assertIsInstance(sub, WDLParser.Expression)
        self.assertIs(sub.parent, expr)
        self.assertEqual((sub.start, sub.end), (7, 11))
        self.assertEqual(sub.rpn[:3], [Value.Int(1), Value.Int(5), Value.Int(2)])
        self.assertEqual(sub.rpn[3:], [Operator.MUL, Operator.SUB])

        expr = WDLParser.parse_expr('"~{1 + i}"')
        self.assertEqual(expr.rpn[0], Value.String(""))
        self.assertEqual(expr.rpn[1].rpn[1], WDLParser.Identifier("i"))
        self.assertTrue(expr.rpn[1].rpn[1].is_reference)
        self.assertEqual(expr.rpn[2:], [Operator.STR, Value.String(""), Operator.ADD, Operator.ADD])

    def test_literal(self):
        self.assertEqual(WDLParser.parse_expr("42").literal, Value.Int(42))
        self.assertEqual(WDLParser.parse_expr("'hi'").literal, Value.String("hi"))
        self.assertIsNone(WDLParser.parse_expr("1 + 1").literal)
        with self.assertRaises(Error.SyntaxError):
            WDLParser.parse_expr("9223372036854775808")
        self.assertEqual(WDLParser.parse_expr("9223372036854775807").literal.value, 2 ** 63 - 1)

    def test_syntax_errors(self):
        for txt in ["1 +", "(1", "1 2", "x.", '"\\x"', "3 @ 4"]:
            with self.assertRaises(Error.SyntaxError, msg=txt):
                WDLParser.parse_expr(txt)
        with self.assertRaises(Error.SyntaxError):
            WDLParser.parse_expr('"~{bogus="x" y}"')
        with self.assertRaises(Error.MultipleDefinitions):
            WDLParser.parse_expr('"~{sep="," sep=";" y}"')


class TestEval(unittest.TestCase):
    def _test_tuples(self, *tuples):
        for tuple in tuples:
            assert len(tuple) >= 2
            expr = tuple[0]
            expected = tuple[1]
            env = None
            exn = None
            for x in tuple[2:]:
                if isinstance(x, dict):
                    env = x
                elif inspect.isclass(x):
                    exn = x
                else:
                    assert False
            if exn:
                with self.assertRaises(exn, msg=expr):
                    WDLParser.parse_expr(expr).eval(env)
            else:
                v = WDLParser.parse_expr(expr).eval(env)
                self.assertEqual(str(v), expected, expr)

    def test_promotion(self):
        v = eval_rpn([Value.Int(3), Value.Float(4.0), Operator.ADD])
        self.assertIsInstance(v, Value.Float)
        self.assertEqual(v.value, 7.0)
        v = eval_rpn([Value.Boolean(True), Value.Boolean(False), Operator.AND])
        self.assertIsInstance(v, Value.Boolean)
        self.assertEqual(v.value, False)
        v = eval_rpn([Value.String("a"), Value.Int(2), Operator.ADD])
        self.assertIsInstance(v, Value.String)
        self.assertEqual(v.value, "a2")

    def test_arithmetic(self):
        self._test_tuples(
            ("1 + 1", "2"),
            ("3 + 4.0", "7.0"),
            ("4.0 + 3", "7.0"),
            ("7 - 10", "-3"),
            ("6 * 7", "42"),
            ("2 * 1.5", "3.0"),
            ("7 / 2", "3"),
            ("-7 / 2", "-3"),
            ("7.0 / 2", "3.5"),
            ("7 % 3", "1"),
            ("-7 % 3", "-1"),
            ("7 % -3", "1"),
            ("5.5 % 2", "1.5"),
            ("1 + 2 * 3", "7"),
            ("(1 + 2) * 3", "9"),
            ("3+4*2/(1-5*2)+3", "6"),
            ("-(3 + 4)", "-7"),
            ("-(-1)", "1"),
            ("-2.5", "-2.5"),
            ("9223372036854775807 + 1", "-9223372036854775808"),
            ("-9223372036854775807 - 2", "9223372036854775807"),
            ("1.0 / 0", "inf"),
            ("-1.0 / 0", "-inf"),
            ("0.0 / 0", "nan"),
            ("1 / 0", "", Error.ArithmeticError),
            ("1 % 0", "", Error.ArithmeticError),
            ("1 + true", "", Error.IncompatibleOperand),
            ("true + true", "", Error.IncompatibleOperand),
            ('"a" - "b"', "", Error.IncompatibleOperand),
            ('"a" * 2', "", Error.IncompatibleOperand),
            ("None + 1", "", Error.IncompatibleOperand),
            ('-"a"', "", Error.IncompatibleOperand),
            ("-None", "", Error.IncompatibleOperand),
        )

    def test_comparison(self):
        self._test_tuples(
            ("1 == 1", "true"),
            ("1 == 1.0", "true"),
            ("1 < 2.5", "true"),
            ("2 >= 3", "false"),
            ("2 <= 2", "true"),
            ("3 > 2", "true"),
            ("1 != 1", "false"),
            ('"abc" < "abd"', "true"),
            ('"b" > "a"', "true"),
            ('"a" != "a"', "false"),
            ('"a" == "a"', "true"),
            ("false < true", "true"),
            ("true <= false", "false"),
            ("true == true", "true"),
            ("1 < true", "", Error.IncompatibleOperand),
            ('"1" == 1', "", Error.IncompatibleOperand),
            ("None == None", "", Error.IncompatibleOperand),
        )

    def test_logic(self):
        self._test_tuples(
            ("true && false", "false"),
            ("true || false", "true"),
            ("false || false", "false"),
            ("!true", "false"),
            ("!(1 == 2)", "true"),
            ("1 < 2 && 2 < 3", "true"),
            ("true && 1", "", Error.IncompatibleOperand),
            ("!1", "", Error.IncompatibleOperand),
            ("if true then 1 else 2", "1"),
            ("if false then 1 else 2.0", "2.0"),
            ("if true then 1 else 2.0", "1.0"),
            ("if 1 then 2 else 3", "", Error.IncompatibleOperand),
        )

    def test_strings(self):
        self._test_tuples(
            ('"a" + 2', '"a2"'),
            ('2 + "a"', '"2a"'),
            ('"x" + 1.5', '"x1.5"'),
            ('"a" + "b"', '"ab"'),
            ('"~{1 + 1}"', '"2"'),
            ("'single ~{true}'", '"single true"'),
            ('"${3.0 * 2}"', '"6"'),
            ('"v" + 7.0', '"v7"'),
            ('1e7 + ""', '"1E+07"'),
            ('"[~{None}]"', '"[]"'),
            ('"~{x}-~{y}"', '"1-2.5"', {"x": Value.Int(1), "y": Value.Float(2.5)}),
            ('"$HOME ~HOME"', '"$HOME ~HOME"'),
        )

    def test_files(self):
        env = {"f": Value.File("a.bam"), "g": Value.String("a.bam")}
        v = WDLParser.parse_expr('f + ".bai"').eval(env)
        self.assertIsInstance(v, Value.File)
        self.assertEqual(v.value, "a.bam.bai")
        self._test_tuples(
            ("f == g", "true", env),
            ("f != g", "false", env),
            ("f < g", "", Error.IncompatibleOperand, env),
            ("f + 1", "", Error.IncompatibleOperand, env),
        )

    def test_functions(self):
        self._test_tuples(
            ("floor(2.7)", "2"),
            ("ceil(2.1)", "3"),
            ("round(2.5)", "3"),
            ("round(2.4)", "2"),
            ("floor(3)", "3"),
            ("min(1, 2)", "1"),
            ("max(1, 2.5)", "2.5"),
            ("min(3.0, 2)", "2.0"),
            ("defined(None)", "false"),
            ("defined(1)", "true"),
            ('basename("/a/b.txt")', '"b.txt"'),
            ('basename("/a/b.txt", ".txt")', '"b"'),
            ('sub("aaa", "a", "b")', '"bbb"'),
            ('sub("a.b.c", "[.]", "/")', '"a/b/c"'),
            ('floor("x")', "", Error.IncompatibleOperand),
            ("floor(1.0, 2)", "", Error.IncompatibleOperand),
            ("min(1)", "", Error.IncompatibleOperand),
            ("nonesuch(1)", "", Error.UnknownIdentifier),
            ("[1, 2]", "", Error.IncompatibleOperand),
            ("(1, 2)", "", Error.IncompatibleOperand),
            ('{"a": 1}', "", Error.IncompatibleOperand),
            ("[1, 2][0]", "", Error.IncompatibleOperand),
        )

    def test_environment(self):
        self._test_tuples(
            ("x + y", "3.5", {"x": Value.Int(1), "y": Value.Float(2.5)}),
            ("hello.out", '"hi"', {"hello.out": Value.String("hi")}),
            ("x + 1", "", Error.UnknownIdentifier),
            ("x + 1", "", Error.UnknownIdentifier, {"y": Value.Int(1)}),
            ("x.y", "", Error.UnknownIdentifier, {"x": Value.Int(1)}),
        )
        expr = WDLParser.parse_expr("x * 2")
        self.assertEqual(expr.eval(inputs={"x": Value.Int(21)}).value, 42)
        self.assertEqual(
            expr.eval({"x": Value.Int(1)}, inputs={"x": Value.Int(21)}).value, 42
        )
        bindings = WDLParser.values_from_json({"n": 41, "s": "x", "b": True, "f": 1.5, "z": None})
        self.assertEqual(bindings["n"], Value.Int(41))
        self.assertEqual(bindings["s"], Value.String("x"))
        self.assertEqual(bindings["b"], Value.Boolean(True))
        self.assertEqual(bindings["f"], Value.Float(1.5))
        self.assertIsInstance(bindings["z"], Value.Null)
        with self.assertRaises(Error.IncompatibleOperand):
            WDLParser.values_from_json({"a": [1, 2]})

    def test_placeholder_options(self):
        expr = WDLParser.parse_expr('"~{true="yes" false="no" b}"')
        self.assertEqual(
            expr.rpn[1].placeholder_options,
            {"true": Value.String("yes"), "false": Value.String("no")},
        )
        self.assertEqual(expr.eval({"b": Value.Boolean(True)}).value, "yes")
        self.assertEqual(expr.eval({"b": Value.Boolean(False)}).value, "no")
        expr = WDLParser.parse_expr('"~{default="none" x}"')
        self.assertEqual(expr.eval({"x": Value.Null()}).value, "none")
        self.assertEqual(expr.eval({"x": Value.Int(3)}).value, "3")
        expr = WDLParser.parse_expr("'~{sep=', ' x}'")
        self.assertEqual(expr.rpn[1].placeholder_options, {"sep": Value.String(", ")})
        self.assertEqual(expr.eval({"x": Value.String("a")}).value, "a")
        expr = WDLParser.parse_expr('"~{default=0 x}"')
        self.assertEqual(expr.rpn[1].placeholder_options, {"default": Value.Int(0)})
        self.assertEqual(expr.eval({"x": Value.Null()}).value, "0")

    def test_malformed(self):
        for rpn in [[], [Value.Int(1), Value.Int(2)], [Operator.ADD], [Value.Int(1), Operator.MUL]]:
            with self.assertRaises(Error.MalformedExpression):
                eval_rpn(rpn)
        self.assertEqual(Operator.NEG.arity, 1)
        self.assertEqual(Operator.STR.arity, 1)
        self.assertEqual(Operator.GTE.arity, 2)
        try:
            WDLParser.parse_expr("1 + true").eval()
            assert False
        except Error.IncompatibleOperand as exn:
            self.assertEqual(exn.code, "type-mismatch")
            self.assertIsInstance(exn.node, WDLParser.Expression)

    def test_values(self):
        self.assertEqual(str(Value.Float(7.0)), "7.0")
        self.assertEqual(Value.Float(0.1).text, "0.1")
        self.assertEqual(Value.Float(1e100).text, "1E+100")
        self.assertEqual(Value.Boolean(False).text, "false")
        self.assertEqual(Value.Null().text, "")
        self.assertEqual(Value.Int(1).coerce(WDLParser.Type.Float()), Value.Float(1.0))
        self.assertEqual(Value.Int(1).coerce(WDLParser.Type.String()), Value.String("1"))
        self.assertIsInstance(Value.String("x").coerce(WDLParser.Type.File()), Value.File)
        with self.assertRaises(Error.IncompatibleOperand):
            Value.Null().coerce(WDLParser.Type.Int())
        self.assertTrue(math.isnan(eval_rpn([Value.Float(0.0), Value.Int(0), Operator.DIV]).value))

    def test_float_text(self):
        for v, txt in [
            (7.0, "7"),
            (-7.0, "-7"),
            (0.0, "0"),
            (2.5, "2.5"),
            (100.0, "100"),
            (123456.0, "123456"),
            (1234567.0, "1.234567E+06"),
            (0.0001, "0.0001"),
            (0.00001, "1E-05"),
            (-1.5e-7, "-1.5E-07"),
            (float("inf"), "+Inf"),
            (float("-inf"), "-Inf"),
            (float("nan"), "NaN"),
        ]:
            self.assertEqual(Value.Float(v).text, txt, repr(v))
        # the literal form keeps the decimal point
        self.assertEqual(str(Value.Float(7.0)), "7.0")
        v = eval_rpn([Value.String("a"), Value.Float(7.0), Operator.ADD])
        self.assertEqual(v, Value.String("a7"))
        v = eval_rpn([Value.Float(0.5), Value.String("x"), Operator.ADD])
        self.assertEqual(v, Value.String("0.5x"))
        self.assertEqual(Value.Float(3.0).coerce(WDLParser.Type.String()), Value.String("3"))
