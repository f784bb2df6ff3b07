import math
import unittest

from surface_backend.errors import (
    EmptyExpressionError,
    EmptyRightHandSideError,
    ExpressionError,
    ExpressionSyntaxError,
    InvalidVariablesError,
)
from surface_backend.parse_engine import (
    COMPLEX,
    REAL,
    classify_complex,
    classify_real,
    collect_free_variables,
    compile_expression,
    evaluate_complex,
    evaluate_real,
    is_valid_expression,
    parse_expression,
)


class TestCompileExpression(unittest.TestCase):

    def test_basic_real(self):
        compiled = compile_expression("x^2+y^2")
        self.assertEqual(compiled.mode, REAL)
        self.assertEqual(compiled.variables, ("x", "y"))
        self.assertEqual(evaluate_real(compiled, 3, 4), 25.0)
        self.assertEqual(compiled.evaluate(3, 4), 25.0)
        self.assertEqual(compiled.arguments, ("x", "y"))

    def test_invalid_variable(self):
        with self.assertRaises(InvalidVariablesError) as ctx:
            compile_expression("x^2+y^2+w")
        self.assertEqual(ctx.exception.names, ["w"])
        self.assertIn("Invalid variables: w", str(ctx.exception))

    def test_every_invalid_variable_is_listed(self):
        with self.assertRaises(InvalidVariablesError) as ctx:
            compile_expression("b*x + a")
        self.assertEqual(ctx.exception.names, ["a", "b"])

    def test_z_is_not_a_real_mode_variable(self):
        with self.assertRaises(InvalidVariablesError) as ctx:
            compile_expression("z + x")
        self.assertEqual(ctx.exception.names, ["z"])

    def test_complex_mode_variables(self):
        compiled = compile_expression("z^2 + x", COMPLEX)
        self.assertEqual(compiled.variables, ("x", "z"))
        with self.assertRaises(InvalidVariablesError):
            compile_expression("z^2 + w", COMPLEX)

    def test_degenerate_expression_keeps_its_variables(self):
        with self.assertRaises(InvalidVariablesError):
            compile_expression("w - w")

    def test_empty(self):
        for text in ("", "   "):
            with self.assertRaises(EmptyExpressionError) as ctx:
                compile_expression(text)
            self.assertEqual(str(ctx.exception), "Failed to parse expression: Expression cannot be empty")

    def test_syntax_errors(self):
        for text in ("x+", "sin(", "x**", "(x+1"):
            with self.subTest(text=text):
                with self.assertRaises(ExpressionSyntaxError) as ctx:
                    compile_expression(text)
                self.assertTrue(str(ctx.exception).startswith("Failed to parse expression:"))

    def test_outside_dialect_is_rejected(self):
        for text in ("__import__('os')", "x.real", "x[0]", "x; y", "lambda: x"):
            with self.subTest(text=text):
                with self.assertRaises(ExpressionError):
                    compile_expression(text)

    def test_function_names_are_not_variables(self):
        compiled = compile_expression("sin(x)*cos(y) + sqrt(abs(x))")
        self.assertEqual(compiled.variables, ("x", "y"))
        self.assertEqual(collect_free_variables(compiled.sympy_expr), frozenset({"x", "y"}))

    def test_constants_are_not_variables(self):
        compiled = compile_expression("pi*e + x")
        self.assertEqual(compiled.variables, ("x",))

    def test_unknown_mode(self):
        with self.assertRaises(ValueError):
            compile_expression("x", "quaternion")


class TestParseExpression(unittest.TestCase):

    def test_full_pipeline(self):
        compiled = parse_expression("z = 2xy")
        self.assertEqual(compiled.expression, "2*x*y")
        self.assertEqual(evaluate_real(compiled, 1, 2), 4.0)

    def test_implicit_function_product(self):
        compiled = parse_expression("f(x,y) = sin(x)cos(y)")
        self.assertAlmostEqual(evaluate_real(compiled, math.pi / 2, 0), 1.0)

    def test_empty_rhs(self):
        with self.assertRaises(EmptyRightHandSideError):
            parse_expression("z =")

    def test_is_valid_expression(self):
        self.assertTrue(is_valid_expression("x^2 + y^2"))
        self.assertTrue(is_valid_expression("z^2", COMPLEX))
        self.assertFalse(is_valid_expression("x^2 + w"))
        self.assertFalse(is_valid_expression(""))
        self.assertFalse(is_valid_expression("sin("))


class TestEvaluateReal(unittest.TestCase):

    def test_functions(self):
        cases = [
            ("abs(x)", -3, 0, 3.0),
            ("log10(x)", 100, 0, 2.0),
            ("log2(x)", 8, 0, 3.0),
            ("ln(x)", math.e, 0, 1.0),
            ("log(x, 2)", 8, 0, 3.0),
            ("log(y, x)", 10, 1000, 3.0),
            ("exp(x)", 0, 0, 1.0),
            ("cbrt(x)", -8, 0, -2.0),
            ("round(x)", 2.5, 0, 3.0),
            ("round(x)", -2.5, 0, -3.0),
            ("floor(x) + ceil(y)", 1.5, 1.5, 3.0),
            ("min(x, y)", 2, 5, 2.0),
            ("max(x, y)", 2, 5, 5.0),
            ("mod(x, 3)", 7, 0, 1.0),
            ("x % 3", 7, 0, 1.0),
            ("factorial(x)", 5, 0, 120.0),
            ("x!", 4, 0, 24.0),
            ("factorial(x)", -0.5, 0, math.sqrt(math.pi)),
            ("factorial(x)", 0.5, 0, math.sqrt(math.pi) / 2),
            ("gcd(x, y)", 12, 18, 6.0),
            ("lcm(x, y)", 4, 6, 12.0),
            ("atan2(y, x)", 1, 1, math.pi / 4),
            ("sec(x)", 0, 0, 1.0),
            ("pow(x, y)", 2, 10, 1024.0),
            ("sign(x)", -4, 0, -1.0),
            ("pi", 0, 0, math.pi),
            ("e^x", 1, 0, math.e),
            ("x + true", 1, 0, 2.0),
            ("x*false + 3", 5, 0, 3.0),
            ("true", 0, 0, 1.0),
        ]
        for text, x, y, expected in cases:
            with self.subTest(text=text, x=x, y=y):
                self.assertAlmostEqual(evaluate_real(parse_expression(text), x, y), expected)

    def test_non_finite_is_nan(self):
        self.assertTrue(math.isnan(evaluate_real(compile_expression("1/x"), 0, 0)))
        self.assertTrue(math.isnan(evaluate_real(compile_expression("log(x)"), 0, 1)))
        self.assertTrue(math.isnan(evaluate_real(compile_expression("sqrt(x)"), -1, 0)))

    def test_complex_result_is_nan(self):
        compiled = parse_expression("x + i")
        self.assertTrue(math.isnan(evaluate_real(compiled, 1, 0)))

    def test_gcd_needs_integers(self):
        self.assertTrue(math.isnan(evaluate_real(compile_expression("gcd(x, y)"), 1.5, 3)))

    def test_factorial_poles_are_nan(self):
        compiled = parse_expression("x!")
        for x in (-1, -2, -3):
            with self.subTest(x=x):
                self.assertTrue(math.isnan(evaluate_real(compiled, x, 0)))

    def test_mod_by_zero_is_nan(self):
        for text in ("mod(x, 0)", "x % 0", "mod(x, y)"):
            with self.subTest(text=text):
                compiled = parse_expression(text)
                self.assertTrue(math.isnan(evaluate_real(compiled, 5, 0)))
        self.assertEqual(evaluate_real(parse_expression("mod(x, y)"), 7, 4), 3.0)

    def test_wrong_mode(self):
        with self.assertRaises(ValueError):
            evaluate_real(compile_expression("z", COMPLEX), 0, 0)


class TestEvaluateComplex(unittest.TestCase):

    def test_square(self):
        compiled = compile_expression("z^2", COMPLEX)
        re_part, im_part = evaluate_complex(compiled, 1, 0)
        self.assertAlmostEqual(re_part, 1.0)
        self.assertAlmostEqual(im_part, 0.0)

        re_part, im_part = evaluate_complex(compiled, 0, 1)
        self.assertAlmostEqual(re_part, -1.0)
        self.assertAlmostEqual(im_part, 0.0)

    def test_real_valued_result(self):
        compiled = compile_expression("x + y", COMPLEX)
        self.assertEqual(evaluate_complex(compiled, 2, 3), (5.0, 0.0))

    def test_imaginary_unit(self):
        compiled = parse_expression("z + i", COMPLEX)
        re_part, im_part = evaluate_complex(compiled, 1, 1)
        self.assertAlmostEqual(re_part, 1.0)
        self.assertAlmostEqual(im_part, 2.0)

    def test_complex_functions(self):
        re_part, im_part = evaluate_complex(parse_expression("conj(z)", COMPLEX), 1, 2)
        self.assertAlmostEqual(re_part, 1.0)
        self.assertAlmostEqual(im_part, -2.0)

        re_part, im_part = evaluate_complex(parse_expression("abs(z)", COMPLEX), 3, 4)
        self.assertAlmostEqual(re_part, 5.0)
        self.assertAlmostEqual(im_part, 0.0)

    def test_rounding_is_per_component(self):
        cases = [
            ("round(z)", 1.4, 1.4, (1.0, 1.0)),
            ("round(z)", 2.5, -2.5, (3.0, -3.0)),
            ("floor(z)", 1.5, -1.5, (1.0, -2.0)),
            ("ceil(z)", 1.5, -1.5, (2.0, -1.0)),
        ]
        for text, x, y, expected in cases:
            with self.subTest(text=text, x=x, y=y):
                re_part, im_part = evaluate_complex(parse_expression(text, COMPLEX), x, y)
                self.assertAlmostEqual(re_part, expected[0])
                self.assertAlmostEqual(im_part, expected[1])

    def test_real_variables_may_leave_the_real_axis(self):
        re_part, im_part = evaluate_complex(parse_expression("sqrt(x)", COMPLEX), -2, 1)
        self.assertAlmostEqual(re_part, 0.0)
        self.assertAlmostEqual(im_part, math.sqrt(2))

        re_part, im_part = evaluate_complex(parse_expression("log(x)", COMPLEX), -1, 0)
        self.assertAlmostEqual(re_part, 0.0)
        self.assertAlmostEqual(im_part, math.pi)

    def test_real_only_functions_accept_real_variables(self):
        self.assertEqual(evaluate_complex(parse_expression("gcd(x, y)", COMPLEX), 12, 18), (6.0, 0.0))
        self.assertEqual(evaluate_complex(parse_expression("mod(x, 3)", COMPLEX), 7, 0), (1.0, 0.0))
        re_part, im_part = evaluate_complex(parse_expression("atan2(y, x)", COMPLEX), 1, 1)
        self.assertAlmostEqual(re_part, math.pi / 4)
        self.assertAlmostEqual(im_part, 0.0)

        re_part, im_part = evaluate_complex(parse_expression("mod(z, 3)", COMPLEX), 7, 1)
        self.assertTrue(math.isnan(re_part))
        self.assertTrue(math.isnan(im_part))

    def test_factorial_of_complex(self):
        re_part, im_part = evaluate_complex(parse_expression("factorial(z)", COMPLEX), 3, 0)
        self.assertAlmostEqual(re_part, 6.0)
        self.assertAlmostEqual(im_part, 0.0)

    def test_pole_is_nan_pair(self):
        re_part, im_part = evaluate_complex(compile_expression("1/z", COMPLEX), 0, 0)
        self.assertTrue(math.isnan(re_part))
        self.assertTrue(math.isnan(im_part))

    def test_wrong_mode(self):
        with self.assertRaises(ValueError):
            evaluate_complex(compile_expression("x"), 0, 0)


class TestClassification(unittest.TestCase):

    def test_classify_real(self):
        self.assertEqual(classify_real(2), 2.0)
        self.assertTrue(math.isnan(classify_real(True)))
        self.assertTrue(math.isnan(classify_real(float("inf"))))
        self.assertTrue(math.isnan(classify_real(1 + 2j)))
        self.assertTrue(math.isnan(classify_real("3")))

    def test_classify_complex(self):
        self.assertEqual(classify_complex(3.0), (3.0, 0.0))
        self.assertEqual(classify_complex(1 + 2j), (1.0, 2.0))
        for bad in (float("nan"), complex(1, float("inf")), False, None):
            with self.subTest(value=bad):
                re_part, im_part = classify_complex(bad)
                self.assertTrue(math.isnan(re_part))
                self.assertTrue(math.isnan(im_part))


if __name__ == "__main__":
    unittest.main()
