"""
Tests for the Monkey parser: statements, Pratt precedence, rendering, and
error reporting.
"""

import pytest

from monkey import (
    AstBlock,
    AstExpressionArray,
    AstExpressionBoolean,
    AstExpressionCall,
    AstExpressionFor,
    AstExpressionFunction,
    AstExpressionHash,
    AstExpressionIdentifier,
    AstExpressionIf,
    AstExpressionIndex,
    AstExpressionInfix,
    AstExpressionInteger,
    AstExpressionLet,
    AstExpressionPrefix,
    AstExpressionString,
    AstExpressionWhile,
    AstIdentifier,
    AstProgram,
    AstStatementExpression,
    AstStatementLet,
    AstStatementReturn,
    Lexer,
    Parser,
    SourceLocation,
)


def expression(program):
    assert len(program.statements) == 1
    statement = program.statements[0]
    assert isinstance(statement, AstStatementExpression)
    return statement.expression


class TestStatements:
    """Test parsing of let, return, and expression statements."""

    def test_let_statements(self, parse):
        program = parse("let x = 5; let y = true; let foobar = y;")
        assert program.statements == [
            AstStatementLet(AstIdentifier("x"), AstExpressionInteger(5)),
            AstStatementLet(AstIdentifier("y"), AstExpressionBoolean(True)),
            AstStatementLet(AstIdentifier("foobar"), AstExpressionIdentifier("y")),
        ]

    def test_return_statements(self, parse):
        program = parse("return 5; return x; return;")
        assert program.statements == [
            AstStatementReturn(AstExpressionInteger(5)),
            AstStatementReturn(AstExpressionIdentifier("x")),
            AstStatementReturn(None),
        ]

    def test_final_semicolon_optional(self, parse):
        assert parse("let x = 5") == parse("let x = 5;")
        assert str(parse("1; 2")) == "12"

    def test_stray_semicolons_skipped(self, parse):
        assert parse(";;5;;") == parse("5;")

    def test_block_expressions_need_no_semicolon(self, parse):
        program = parse("if (x) { 1 } let y = fn() { 2 } y()")
        assert len(program.statements) == 3

    def test_empty_program(self, parse):
        assert parse("") == AstProgram([])


class TestExpressions:
    """Test parsing of individual expression forms."""

    def test_identifier(self, parse):
        assert expression(parse("foobar;")) == AstExpressionIdentifier("foobar")

    def test_integer(self, parse):
        assert expression(parse("5;")) == AstExpressionInteger(5)

    def test_zero_padded_integer(self, parse):
        program = parse("0" * 5000 + "1")
        assert expression(program) == AstExpressionInteger(1)

    def test_zero_integer(self, parse):
        assert expression(parse("000")) == AstExpressionInteger(0)

    def test_deeply_nested_groups(self, parse):
        program = parse("(" * 200 + "1" + ")" * 200)
        assert expression(program) == AstExpressionInteger(1)

    def test_largest_integer(self, parse):
        program = parse("9223372036854775807")
        assert expression(program) == AstExpressionInteger(9223372036854775807)

    def test_string(self, parse):
        assert expression(parse('"hello world";')) == AstExpressionString(
            "hello world"
        )

    @pytest.mark.parametrize(
        "source,operator,value",
        [
            ("!5;", "!", AstExpressionInteger(5)),
            ("-15;", "-", AstExpressionInteger(15)),
            ("!true;", "!", AstExpressionBoolean(True)),
            ("!false;", "!", AstExpressionBoolean(False)),
        ],
    )
    def test_prefix(self, parse, source, operator, value):
        assert expression(parse(source)) == AstExpressionPrefix(operator, value)

    @pytest.mark.parametrize("operator", ["+", "-", "*", "/", ">", "<", "==", "!="])
    def test_infix(self, parse, operator):
        assert expression(parse(f"5 {operator} 6;")) == AstExpressionInfix(
            operator, AstExpressionInteger(5), AstExpressionInteger(6)
        )

    def test_if(self, parse):
        assert expression(parse("if (x < y) { x }")) == AstExpressionIf(
            AstExpressionInfix(
                "<", AstExpressionIdentifier("x"), AstExpressionIdentifier("y")
            ),
            AstBlock([AstStatementExpression(AstExpressionIdentifier("x"))]),
            None,
        )

    def test_if_else(self, parse):
        node = expression(parse("if (x < y) { x } else { y }"))
        assert node.alternative == AstBlock(
            [AstStatementExpression(AstExpressionIdentifier("y"))]
        )

    def test_else_if(self, parse):
        node = expression(parse("if (a) { 1 } else if (b) { 2 } else { 3 }"))
        assert node.alternative == AstBlock(
            [
                AstStatementExpression(
                    AstExpressionIf(
                        AstExpressionIdentifier("b"),
                        AstBlock([AstStatementExpression(AstExpressionInteger(2))]),
                        AstBlock([AstStatementExpression(AstExpressionInteger(3))]),
                    )
                )
            ]
        )

    def test_while(self, parse):
        assert expression(parse("while (x < 5) { let x = x + 1; }")) == (
            AstExpressionWhile(
                AstExpressionInfix(
                    "<", AstExpressionIdentifier("x"), AstExpressionInteger(5)
                ),
                AstBlock(
                    [
                        AstStatementLet(
                            AstIdentifier("x"),
                            AstExpressionInfix(
                                "+",
                                AstExpressionIdentifier("x"),
                                AstExpressionInteger(1),
                            ),
                        )
                    ]
                ),
            )
        )

    def test_for(self, parse):
        node = expression(parse("for (let i = 0; i < 3; let i = i + 1) { i }"))
        assert isinstance(node, AstExpressionFor)
        assert node.initializer == AstExpressionLet(
            AstIdentifier("i"), AstExpressionInteger(0)
        )
        assert node.condition == AstExpressionInfix(
            "<", AstExpressionIdentifier("i"), AstExpressionInteger(3)
        )
        assert isinstance(node.update, AstExpressionLet)

    def test_for_empty_clauses(self, parse):
        node = expression(parse("for (;;) { 1 }"))
        assert node.initializer is None
        assert node.condition is None
        assert node.update is None

    def test_function_literal(self, parse):
        assert expression(parse("fn(x, y) { x + y; }")) == AstExpressionFunction(
            [AstIdentifier("x"), AstIdentifier("y")],
            AstBlock(
                [
                    AstStatementExpression(
                        AstExpressionInfix(
                            "+",
                            AstExpressionIdentifier("x"),
                            AstExpressionIdentifier("y"),
                        )
                    )
                ]
            ),
        )

    @pytest.mark.parametrize(
        "source,parameters",
        [
            ("fn() {};", []),
            ("fn(x) {};", ["x"]),
            ("fn(x, y, z) {};", ["x", "y", "z"]),
            ("fn(x, y,) {};", ["x", "y"]),
        ],
    )
    def test_function_parameters(self, parse, source, parameters):
        node = expression(parse(source))
        assert [x.name for x in node.parameters] == parameters

    def test_call(self, parse):
        assert expression(parse("add(1, 2 * 3, 4 + 5);")) == AstExpressionCall(
            AstExpressionIdentifier("add"),
            [
                AstExpressionInteger(1),
                AstExpressionInfix(
                    "*", AstExpressionInteger(2), AstExpressionInteger(3)
                ),
                AstExpressionInfix(
                    "+", AstExpressionInteger(4), AstExpressionInteger(5)
                ),
            ],
        )

    def test_array(self, parse):
        assert expression(parse("[1, 2 * 2, 3,]")) == AstExpressionArray(
            [
                AstExpressionInteger(1),
                AstExpressionInfix(
                    "*", AstExpressionInteger(2), AstExpressionInteger(2)
                ),
                AstExpressionInteger(3),
            ]
        )

    def test_empty_array(self, parse):
        assert expression(parse("[]")) == AstExpressionArray([])

    def test_index(self, parse):
        assert expression(parse("myArray[1 + 1]")) == AstExpressionIndex(
            AstExpressionIdentifier("myArray"),
            AstExpressionInfix("+", AstExpressionInteger(1), AstExpressionInteger(1)),
        )

    def test_hash(self, parse):
        assert expression(parse('{"one": 1, true: 2, 3: "three"}')) == (
            AstExpressionHash(
                [
                    (AstExpressionString("one"), AstExpressionInteger(1)),
                    (AstExpressionBoolean(True), AstExpressionInteger(2)),
                    (AstExpressionInteger(3), AstExpressionString("three")),
                ]
            )
        )

    def test_empty_hash(self, parse):
        assert expression(parse("{}")) == AstExpressionHash([])


class TestPrecedence:
    """Test operator precedence through the parenthesized rendering."""

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("-a * b", "((-a) * b)"),
            ("!-a", "(!(-a))"),
            ("a + b + c", "((a + b) + c)"),
            ("a + b - c", "((a + b) - c)"),
            ("a * b * c", "((a * b) * c)"),
            ("a * b / c", "((a * b) / c)"),
            ("a + b / c", "(a + (b / c))"),
            ("a + b * c + d / e - f", "(((a + (b * c)) + (d / e)) - f)"),
            ("3 + 4; -5 * 5", "(3 + 4)((-5) * 5)"),
            ("5 > 4 == 3 < 4", "((5 > 4) == (3 < 4))"),
            ("5 < 4 != 3 > 4", "((5 < 4) != (3 > 4))"),
            ("3 + 4 * 5 == 3 * 1 + 4 * 5", "((3 + (4 * 5)) == ((3 * 1) + (4 * 5)))"),
            ("true", "true"),
            ("3 > 5 == false", "((3 > 5) == false)"),
            ("1 + (2 + 3) + 4", "((1 + (2 + 3)) + 4)"),
            ("(5 + 5) * 2", "((5 + 5) * 2)"),
            ("-(5 + 5)", "(-(5 + 5))"),
            ("!(true == true)", "(!(true == true))"),
            ("a + add(b * c) + d", "((a + add((b * c))) + d)"),
            (
                "add(a, b, 1, 2 * 3, 4 + 5, add(6, 7 * 8))",
                "add(a, b, 1, (2 * 3), (4 + 5), add(6, (7 * 8)))",
            ),
            ("add(a + b + c * d / f + g)", "add((((a + b) + ((c * d) / f)) + g))"),
            ("a * [1, 2, 3, 4][b * c] * d", "((a * ([1, 2, 3, 4][(b * c)])) * d)"),
            (
                "add(a * b[2], b[1], 2 * [1, 2][1])",
                "add((a * (b[2])), (b[1]), (2 * ([1, 2][1])))",
            ),
        ],
    )
    def test_operator_precedence(self, parse, source, expected):
        assert str(parse(source)) == expected

    @pytest.mark.parametrize(
        "source",
        [
            "a + b * c - -d / e",
            "!(a == b) != (c < d > e)",
            "f(x)[y](z) * -g[1 + 2]",
            "[1, 2][0] + {1: 2}[1]",
        ],
    )
    def test_rendering_round_trip(self, parse, source):
        program = parse(source)
        assert parse(str(program)) == program


class TestRendering:
    """Test the textual form of non-operator nodes."""

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("let x = 5;", "let x = 5;"),
            ("return x", "return x;"),
            ("return;", "return;"),
            ('"a\\"b"', '"a\\"b"'),
            ("fn(x, y) { x + y }", "fn(x, y) { (x + y) }"),
            ("fn() {}", "fn() { }"),
            ("if (a) { b } else { c }", "if (a) { b } else { c }"),
            ("while (a) { b; c }", "while (a) { b c }"),
            ("for (let i = 0; i < 1; i) { i }", "for (let i = 0; (i < 1); i) { i }"),
            ('{"a": 1}', '{"a": 1}'),
        ],
    )
    def test_rendering(self, parse, source, expected):
        assert str(parse(source)) == expected


class TestErrors:
    """Test parser error messages and recovery."""

    def test_let_errors(self, parse_errors):
        assert parse_errors("let x 5; let = 10; let 838383;") == [
            "expected next token to be =, got INT instead",
            "expected next token to be IDENT, got = instead",
            "expected next token to be IDENT, got INT instead",
        ]

    def test_missing_prefix(self, parse_errors):
        assert parse_errors("*5") == ["no prefix parse function for * found"]

    def test_missing_closing_paren(self, parse_errors):
        assert parse_errors("add(1 2)") == [
            "expected next token to be ), got INT instead",
            "no prefix parse function for ) found",
        ]

    def test_missing_semicolon_keeps_both_statements(self):
        parser = Parser(Lexer("1 2"))
        program = parser.parse_program()
        assert parser.errors == ["expected next token to be ;, got INT instead"]
        assert len(program.statements) == 2

    def test_integer_overflow(self, parse_errors):
        assert parse_errors("9223372036854775808") == [
            "could not parse 9223372036854775808 as integer"
        ]

    def test_duplicate_parameter(self, parse_errors):
        assert parse_errors("fn(x, y, x) { x }") == [
            "duplicate function parameter x"
        ]

    def test_unterminated_string(self, parse_errors):
        assert parse_errors('"abc') == ["unterminated string literal"]

    def test_unclosed_block(self, parse_errors):
        assert parse_errors("if (x) { 1") == [
            "expected next token to be }, got EOF instead"
        ]

    def test_recovery_inside_block(self):
        parser = Parser(Lexer("fn() { let = 1; 2 }; 3"))
        program = parser.parse_program()
        assert parser.errors == ["expected next token to be IDENT, got = instead"]
        assert str(program) == "fn() { 2 }3"

    def test_incomplete_input(self):
        for source in ["let x =", "fn(x) {", "add(1,", "if (x) { 1 } else", '"abc']:
            parser = Parser(Lexer(source))
            parser.parse_program()
            assert parser.errors != []
            assert parser.incomplete, source

    def test_earlier_error_is_not_incomplete(self):
        parser = Parser(Lexer("let = 5; let x ="))
        parser.parse_program()
        assert len(parser.errors) == 2
        assert not parser.incomplete

    def test_nesting_too_deep(self, parse_errors):
        assert parse_errors("(" * 20000 + "1" + ")" * 20000) == [
            "maximum nesting depth exceeded"
        ]

    def test_complete_input_with_errors(self):
        parser = Parser(Lexer("let 5 = x;"))
        parser.parse_program()
        assert parser.errors != []
        assert not parser.incomplete

    def test_diagnostics_carry_locations(self):
        parser = Parser(Lexer("let x = 1;\nlet = 2;", SourceLocation("a.mk", 1)))
        parser.parse_program()
        assert str(parser.diagnostics[0]) == (
            "[a.mk, line 2] expected next token to be IDENT, got = instead"
        )

    @pytest.mark.parametrize(
        "source",
        [
            "}}}{{{",
            "let let let",
            "fn fn fn ( ( ) ) { [ ] }",
            "if if else else",
            "[1, 2,, 3] {1: } {: 2}",
            "for (;;",
            "@#$%^&",
        ],
    )
    def test_parser_terminates_on_garbage(self, parse_errors, source):
        assert parse_errors(source) != []
