"""
Pytest configuration and fixtures for the Monkey interpreter tests.
"""

import pytest

import monkey


@pytest.fixture
def env():
    """Provide a fresh program environment enclosing the builtins."""
    return monkey.Environment(monkey.BASE_ENVIRONMENT)


@pytest.fixture
def parse():
    """
    Provide a helper that parses source text and asserts that parsing
    produced no errors.
    """

    def parse(source):
        parser = monkey.Parser(monkey.Lexer(source))
        program = parser.parse_program()
        assert parser.errors == [], f"unexpected parser errors: {parser.errors}"
        return program

    return parse


@pytest.fixture
def parse_errors():
    """Provide a helper returning the parser error messages for source text."""

    def parse_errors(source):
        parser = monkey.Parser(monkey.Lexer(source))
        parser.parse_program()
        return parser.errors

    return parse_errors


@pytest.fixture
def evaluate(env, parse):
    """
    Provide a helper that evaluates source text in a shared environment,
    returning the resulting value.
    """

    def evaluate(source):
        return parse(source).eval(env)

    return evaluate
