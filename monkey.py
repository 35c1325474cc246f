#!/usr/bin/env python3

from abc import ABC, abstractmethod
from argparse import ArgumentParser
from dataclasses import dataclass, field
from pathlib import Path
from string import ascii_letters, digits
from types import ModuleType
from typing import (
    Callable,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
    final,
)
import code
import enum
import os
import sys


try:
    # Monkey canonically uses re2 for regular expressions.
    import re2
except ImportError:
    # Reasonable fallback if re2 is not installed, e.g if monkey.py is used as
    # a standalone script outside of a virtual environment.
    import re as re2  # type: ignore

readline: Optional[ModuleType]
try:
    # REPL readline support.
    import readline
except ImportError:
    readline = None

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

# Each Monkey function call nests several Python frames, so the default limit
# would cap user recursion near a hundred calls.
RECURSION_LIMIT = 10000
if sys.getrecursionlimit() < RECURSION_LIMIT:
    sys.setrecursionlimit(RECURSION_LIMIT)


def wrap_int64(value: int) -> int:
    # Two's complement wrap-around into the signed 64-bit range.
    return (value - INT64_MIN) % 2**64 + INT64_MIN


def escape(text: str) -> str:
    MAPPING = {
        "\t": "\\t",
        "\n": "\\n",
        "\r": "\\r",
        '"': '\\"',
        "\\": "\\\\",
    }
    return "".join([MAPPING.get(c, c) for c in text])


ValueType = TypeVar("ValueType", bound="Value")


class Value(ABC):
    @staticmethod
    @abstractmethod
    def typename() -> str:
        raise NotImplementedError()

    @abstractmethod
    def __str__(self):
        raise NotImplementedError()


@final
@dataclass(frozen=True)
class HashKey:
    """
    Identity of a hashable value when used as a hash key. The kind is part of
    the identity so that `1`, `true`, and `"1"` never collide.
    """

    kind: str
    data: Union[int, bool, str]


@final
class Null(Value):
    @staticmethod
    def typename() -> str:
        return "NULL"

    @staticmethod
    def new() -> "Null":
        return NULL

    def __repr__(self):
        return "Null()"

    def __str__(self):
        return "null"


@final
@dataclass
class Boolean(Value):
    data: bool

    @staticmethod
    def typename() -> str:
        return "BOOLEAN"

    @staticmethod
    def new(data: bool) -> "Boolean":
        return TRUE if data else FALSE

    def __str__(self):
        return "true" if self.data else "false"

    def hash_key(self) -> HashKey:
        return HashKey(self.typename(), self.data)


@final
@dataclass
class Integer(Value):
    data: int

    def __init__(self, data: int):
        # Monkey has a single signed 64-bit integer type, so every integer
        # produced by the evaluator is wrapped into that range.
        self.data = wrap_int64(int(data))

    @staticmethod
    def typename() -> str:
        return "INTEGER"

    def __str__(self):
        return str(self.data)

    def hash_key(self) -> HashKey:
        return HashKey(self.typename(), self.data)


@final
@dataclass
class String(Value):
    data: str

    @staticmethod
    def typename() -> str:
        return "STRING"

    def __str__(self):
        return self.data

    def hash_key(self) -> HashKey:
        return HashKey(self.typename(), self.data)


@final
@dataclass
class Error(Value):
    message: str

    @staticmethod
    def typename() -> str:
        return "ERROR"

    def __str__(self):
        return f"ERROR: {self.message}"


@final
@dataclass
class ReturnValue(Value):
    value: Value

    @staticmethod
    def typename() -> str:
        return "RETURN_VALUE"

    def __str__(self):
        return str(self.value)


@final
@dataclass
class Array(Value):
    elements: list[Value] = field(default_factory=list)

    @staticmethod
    def typename() -> str:
        return "ARRAY"

    def __str__(self):
        elements = ", ".join([str(x) for x in self.elements])
        return f"[{elements}]"


@final
@dataclass
class HashPair:
    key: Value
    value: Value


@final
@dataclass
class Hash(Value):
    pairs: dict[HashKey, HashPair] = field(default_factory=dict)

    @staticmethod
    def typename() -> str:
        return "HASH"

    def __str__(self):
        pairs = ", ".join([f"{p.key}: {p.value}" for p in self.pairs.values()])
        return f"{{{pairs}}}"


@final
@dataclass(eq=False)
class Function(Value):
    ast: "AstExpressionFunction"
    env: "Environment"

    @staticmethod
    def typename() -> str:
        return "FUNCTION"

    @staticmethod
    def new(ast: "AstExpressionFunction", env: "Environment") -> "Function":
        return Function(ast, env)

    def __str__(self):
        return str(self.ast)


class BuiltinError(Exception):
    """
    Raised by builtin implementations to signal a Monkey-level error. The
    exception is converted into an error value before it reaches user code.
    """


class Builtin(Value):
    name: str
    arity: Optional[int] = None  # None for variadic builtins.

    @staticmethod
    def typename() -> str:
        return "BUILTIN"

    def __str__(self):
        return f"{self.name}@builtin"

    def call(self, arguments: list[Value]) -> Value:
        try:
            if self.arity is not None:
                Builtin.expect_argument_count(arguments, self.arity)
            return self.function(arguments)
        except BuiltinError as e:
            return Error(str(e))

    @staticmethod
    def expect_argument_count(arguments: list[Value], count: int) -> None:
        if len(arguments) != count:
            raise BuiltinError(
                f"wrong number of arguments: expected {count}, got {len(arguments)}"
            )

    @staticmethod
    def typed_argument(
        nameof: str, argument: Value, ty: Type[ValueType]
    ) -> ValueType:
        if not isinstance(argument, ty):
            raise BuiltinError(
                f"argument to `{nameof}` must be {ty.typename()}, got {argument.typename()}"
            )
        return argument

    @abstractmethod
    def function(self, arguments: list[Value]) -> Value:
        raise NotImplementedError()


NULL = Null()
TRUE = Boolean(True)
FALSE = Boolean(False)

# Value kinds that may be used as hash keys.
HASHABLE = (Integer, Boolean, String)

# Values that interrupt evaluation of the enclosing expression or statement.
CONTROL_FLOW = (ReturnValue, Error)


def is_truthy(value: Value) -> bool:
    if isinstance(value, Null):
        return False
    if isinstance(value, Boolean):
        return value.data
    return True


class Environment:
    def __init__(self, outer: Optional["Environment"] = None):
        self.outer: Optional["Environment"] = outer
        self.store: dict[str, Value] = dict()

    def let(self, name: str, value: Value) -> None:
        self.store[name] = value

    def get(self, name: str) -> Optional[Value]:
        value = self.store.get(name, None)
        if value is None and self.outer is not None:
            return self.outer.get(name)
        return value


@dataclass
class SourceLocation:
    filename: Optional[str]
    line: int

    def __str__(self):
        if self.filename is None:
            return f"line {self.line}"
        return f"{self.filename}, line {self.line}"


class TokenKind(enum.Enum):
    # Meta
    ILLEGAL = "ILLEGAL"
    EOF = "EOF"
    # Identifiers and Literals
    IDENT = "IDENT"
    INT = "INT"
    STRING = "STRING"
    # Operators
    ASSIGN = "="
    PLUS = "+"
    MINUS = "-"
    BANG = "!"
    ASTERISK = "*"
    SLASH = "/"
    LT = "<"
    GT = ">"
    EQ = "=="
    NOT_EQ = "!="
    # Delimiters
    COMMA = ","
    SEMICOLON = ";"
    COLON = ":"
    LPAREN = "("
    RPAREN = ")"
    LBRACE = "{"
    RBRACE = "}"
    LBRACKET = "["
    RBRACKET = "]"
    # Keywords
    FUNCTION = "FUNCTION"
    LET = "LET"
    TRUE = "TRUE"
    FALSE = "FALSE"
    IF = "IF"
    ELSE = "ELSE"
    RETURN = "RETURN"
    WHILE = "WHILE"
    FOR = "FOR"

    def __str__(self):
        return self.value


@dataclass
class Token:
    KEYWORDS = {
        # fmt: off
        "fn":     TokenKind.FUNCTION,
        "let":    TokenKind.LET,
        "true":   TokenKind.TRUE,
        "false":  TokenKind.FALSE,
        "if":     TokenKind.IF,
        "else":   TokenKind.ELSE,
        "return": TokenKind.RETURN,
        "while":  TokenKind.WHILE,
        "for":    TokenKind.FOR,
        # fmt: on
    }

    kind: TokenKind
    literal: str
    location: Optional[SourceLocation] = None
    # Human readable explanation attached to some illegal tokens.
    diagnostic: Optional[str] = None

    @staticmethod
    def lookup_identifier(identifier: str) -> TokenKind:
        return Token.KEYWORDS.get(identifier, TokenKind.IDENT)


class Lexer:
    EOF_LITERAL = ""
    WHITESPACE = " \t\r\n"
    RE_IDENTIFIER = re2.compile(r"[a-zA-Z_]+")
    RE_INTEGER = re2.compile(r"[0-9]+")
    ESCAPES = {
        # fmt: off
        "n":  "\n",
        "t":  "\t",
        "r":  "\r",
        '"':  '"',
        "\\": "\\",
        # fmt: on
    }
    PUNCTUATION = {
        # fmt: off
        "+": TokenKind.PLUS,
        "-": TokenKind.MINUS,
        "*": TokenKind.ASTERISK,
        "/": TokenKind.SLASH,
        "<": TokenKind.LT,
        ">": TokenKind.GT,
        ",": TokenKind.COMMA,
        ";": TokenKind.SEMICOLON,
        ":": TokenKind.COLON,
        "(": TokenKind.LPAREN,
        ")": TokenKind.RPAREN,
        "{": TokenKind.LBRACE,
        "}": TokenKind.RBRACE,
        "[": TokenKind.LBRACKET,
        "]": TokenKind.RBRACKET,
        # fmt: on
    }

    def __init__(self, source: str, location: Optional[SourceLocation] = None):
        self.source: str = source
        # What position does the source "start" being lexed from.
        # None if the source is being lexed in a location-independent manner.
        self.location: Optional[SourceLocation] = location
        self.position: int = 0
        self.token_location: Optional[SourceLocation] = None

    @staticmethod
    def _is_letter(ch: str) -> bool:
        return ch != "" and (ch in ascii_letters or ch == "_")

    @staticmethod
    def _is_digit(ch: str) -> bool:
        return ch != "" and ch in digits

    def _is_eof(self) -> bool:
        # A NUL character terminates the input the same way the end does.
        return self.position >= len(self.source) or self.source[self.position] == "\0"

    def _current_character(self) -> str:
        if self._is_eof():
            return Lexer.EOF_LITERAL
        return self.source[self.position]

    def _peek_character(self) -> str:
        if self.position + 1 >= len(self.source):
            return Lexer.EOF_LITERAL
        return self.source[self.position + 1]

    def _advance_character(self) -> None:
        if self._is_eof():
            return
        if self.location is not None:
            self.location.line += int(self.source[self.position] == "\n")
        self.position += 1

    def _skip_whitespace(self) -> None:
        while not self._is_eof() and self._current_character() in Lexer.WHITESPACE:
            self._advance_character()

    def _new_token(self, kind: TokenKind, literal: str, **kwargs) -> Token:
        return Token(kind, literal, self.token_location, **kwargs)

    def _lex_keyword_or_identifier(self) -> Token:
        assert Lexer._is_letter(self._current_character())
        match = Lexer.RE_IDENTIFIER.match(self.source, self.position)
        assert match is not None  # guaranteed by regexp
        text = match.group()
        self.position += len(text)
        return self._new_token(Token.lookup_identifier(text), text)

    def _lex_integer(self) -> Token:
        assert Lexer._is_digit(self._current_character())
        match = Lexer.RE_INTEGER.match(self.source, self.position)
        assert match is not None  # guaranteed by regexp
        text = match.group()
        self.position += len(text)
        return self._new_token(TokenKind.INT, text)

    def _lex_string(self) -> Token:
        assert self._current_character() == '"'
        self._advance_character()
        characters: list[str] = list()
        while self._current_character() != '"':
            if self._is_eof():
                return self._new_token(
                    TokenKind.ILLEGAL,
                    '"' + "".join(characters),
                    diagnostic="unterminated string literal",
                )
            if self._current_character() == "\\":
                self._advance_character()
                if self._is_eof():
                    continue
                escaped = self._current_character()
                characters.append(Lexer.ESCAPES.get(escaped, "\\" + escaped))
                self._advance_character()
                continue
            characters.append(self._current_character())
            self._advance_character()
        self._advance_character()
        return self._new_token(TokenKind.STRING, "".join(characters))

    def next_token(self) -> Token:
        self._skip_whitespace()
        if self.location is not None:
            self.token_location = SourceLocation(
                self.location.filename, self.location.line
            )

        if self._is_eof():
            return self._new_token(TokenKind.EOF, Lexer.EOF_LITERAL)

        # Literals, Identifiers, and Keywords
        if self._current_character() == '"':
            return self._lex_string()
        if Lexer._is_letter(self._current_character()):
            return self._lex_keyword_or_identifier()
        if Lexer._is_digit(self._current_character()):
            return self._lex_integer()

        # Operators
        if self._current_character() == "=" and self._peek_character() == "=":
            self._advance_character()
            self._advance_character()
            return self._new_token(TokenKind.EQ, str(TokenKind.EQ))
        if self._current_character() == "!" and self._peek_character() == "=":
            self._advance_character()
            self._advance_character()
            return self._new_token(TokenKind.NOT_EQ, str(TokenKind.NOT_EQ))
        if self._current_character() == "=":
            self._advance_character()
            return self._new_token(TokenKind.ASSIGN, str(TokenKind.ASSIGN))
        if self._current_character() == "!":
            self._advance_character()
            return self._new_token(TokenKind.BANG, str(TokenKind.BANG))

        # Single character operators and delimiters
        kind = Lexer.PUNCTUATION.get(self._current_character())
        if kind is not None:
            self._advance_character()
            return self._new_token(kind, str(kind))

        token = self._new_token(TokenKind.ILLEGAL, self._current_character())
        self._advance_character()
        return token


@dataclass
class ParseError(Exception):
    location: Optional[SourceLocation]
    why: str

    def __str__(self):
        if self.location is None:
            return f"{self.why}"
        return f"[{self.location}] {self.why}"


class AstNode(ABC):
    @abstractmethod
    def eval(self, env: Environment) -> Value:
        raise NotImplementedError()


class AstExpression(AstNode):
    pass


class AstStatement(AstNode):
    pass


@final
@dataclass
class AstIdentifier:
    """
    Identifier with no additional behavior attached.
    """

    name: str

    def __str__(self):
        return self.name


@final
@dataclass
class AstProgram(AstNode):
    statements: list[AstStatement]

    def __str__(self):
        return "".join([str(x) for x in self.statements])

    def eval(self, env: Environment) -> Value:
        result: Value = NULL
        try:
            for statement in self.statements:
                result = statement.eval(env)
                if isinstance(result, ReturnValue):
                    return result.value
                if isinstance(result, Error):
                    return result
        except RecursionError:
            return Error("maximum recursion depth exceeded")
        return result


@final
@dataclass
class AstBlock(AstNode):
    statements: list[AstStatement]

    def __str__(self):
        if len(self.statements) == 0:
            return "{ }"
        statements = " ".join([str(x) for x in self.statements])
        return f"{{ {statements} }}"

    def eval(self, env: Environment) -> Value:
        # Blocks share the environment of their surroundings. Only function
        # calls introduce a new scope.
        result: Value = NULL
        for statement in self.statements:
            result = statement.eval(env)
            if isinstance(result, CONTROL_FLOW):
                return result
        return result


@final
@dataclass
class AstExpressionIdentifier(AstExpression):
    """
    Identifier evaluated as an identifier/symbol expression to produce a value.
    """

    name: str

    def __str__(self):
        return self.name

    def eval(self, env: Environment) -> Value:
        value: Optional[Value] = env.get(self.name)
        if value is None:
            return Error(f"identifier not found: {self.name}")
        return value


@final
@dataclass
class AstExpressionInteger(AstExpression):
    value: int

    def __str__(self):
        return str(self.value)

    def eval(self, env: Environment) -> Value:
        return Integer(self.value)


@final
@dataclass
class AstExpressionBoolean(AstExpression):
    value: bool

    def __str__(self):
        return "true" if self.value else "false"

    def eval(self, env: Environment) -> Value:
        return Boolean.new(self.value)


@final
@dataclass
class AstExpressionString(AstExpression):
    value: str

    def __str__(self):
        return f'"{escape(self.value)}"'

    def eval(self, env: Environment) -> Value:
        return String(self.value)


@final
@dataclass
class AstExpressionArray(AstExpression):
    elements: list[AstExpression]

    def __str__(self):
        elements = ", ".join([str(x) for x in self.elements])
        return f"[{elements}]"

    def eval(self, env: Environment) -> Value:
        values: list[Value] = list()
        for x in self.elements:
            result = x.eval(env)
            if isinstance(result, CONTROL_FLOW):
                return result
            values.append(result)
        return Array(values)


@final
@dataclass
class AstExpressionHash(AstExpression):
    pairs: list[Tuple[AstExpression, AstExpression]]

    def __str__(self):
        pairs = ", ".join([f"{k}: {v}" for k, v in self.pairs])
        return f"{{{pairs}}}"

    def eval(self, env: Environment) -> Value:
        pairs: dict[HashKey, HashPair] = dict()
        for k, v in self.pairs:
            k_result = k.eval(env)
            if isinstance(k_result, CONTROL_FLOW):
                return k_result
            if not isinstance(k_result, HASHABLE):
                return Error(f"unusable as hash key: {k_result.typename()}")
            v_result = v.eval(env)
            if isinstance(v_result, CONTROL_FLOW):
                return v_result
            pairs[k_result.hash_key()] = HashPair(k_result, v_result)
        return Hash(pairs)


@final
@dataclass
class AstExpressionPrefix(AstExpression):
    operator: str
    rhs: AstExpression

    def __str__(self):
        return f"({self.operator}{self.rhs})"

    def eval(self, env: Environment) -> Value:
        rhs = self.rhs.eval(env)
        if isinstance(rhs, CONTROL_FLOW):
            return rhs
        return eval_prefix(self.operator, rhs)


@final
@dataclass
class AstExpressionInfix(AstExpression):
    operator: str
    lhs: AstExpression
    rhs: AstExpression

    def __str__(self):
        return f"({self.lhs} {self.operator} {self.rhs})"

    def eval(self, env: Environment) -> Value:
        lhs = self.lhs.eval(env)
        if isinstance(lhs, CONTROL_FLOW):
            return lhs
        rhs = self.rhs.eval(env)
        if isinstance(rhs, CONTROL_FLOW):
            return rhs
        return eval_infix(self.operator, lhs, rhs)


@final
@dataclass
class AstExpressionIf(AstExpression):
    condition: AstExpression
    consequence: AstBlock
    alternative: Optional[AstBlock] = None

    def __str__(self):
        if self.alternative is None:
            return f"if ({self.condition}) {self.consequence}"
        return f"if ({self.condition}) {self.consequence} else {self.alternative}"

    def eval(self, env: Environment) -> Value:
        condition = self.condition.eval(env)
        if isinstance(condition, CONTROL_FLOW):
            return condition
        if is_truthy(condition):
            return self.consequence.eval(env)
        if self.alternative is not None:
            return self.alternative.eval(env)
        return NULL


@final
@dataclass
class AstExpressionWhile(AstExpression):
    condition: AstExpression
    body: AstBlock

    def __str__(self):
        return f"while ({self.condition}) {self.body}"

    def eval(self, env: Environment) -> Value:
        while True:
            condition = self.condition.eval(env)
            if isinstance(condition, CONTROL_FLOW):
                return condition
            if not is_truthy(condition):
                return NULL
            result = self.body.eval(env)
            if isinstance(result, CONTROL_FLOW):
                return result


@final
@dataclass
class AstExpressionFor(AstExpression):
    initializer: Optional[AstExpression]
    condition: Optional[AstExpression]
    update: Optional[AstExpression]
    body: AstBlock

    def __str__(self):
        initializer = str(self.initializer) if self.initializer is not None else ""
        condition = str(self.condition) if self.condition is not None else ""
        update = str(self.update) if self.update is not None else ""
        return f"for ({initializer}; {condition}; {update}) {self.body}"

    def eval(self, env: Environment) -> Value:
        if self.initializer is not None:
            result = self.initializer.eval(env)
            if isinstance(result, CONTROL_FLOW):
                return result
        while True:
            if self.condition is not None:
                condition = self.condition.eval(env)
                if isinstance(condition, CONTROL_FLOW):
                    return condition
                if not is_truthy(condition):
                    return NULL
            result = self.body.eval(env)
            if isinstance(result, CONTROL_FLOW):
                return result
            if self.update is not None:
                result = self.update.eval(env)
                if isinstance(result, CONTROL_FLOW):
                    return result


@final
@dataclass
class AstExpressionFunction(AstExpression):
    parameters: list[AstIdentifier]
    body: AstBlock

    def __str__(self):
        parameters = ", ".join([str(x) for x in self.parameters])
        return f"fn({parameters}) {self.body}"

    def eval(self, env: Environment) -> Value:
        return Function.new(self, env)


@final
@dataclass
class AstExpressionCall(AstExpression):
    function: AstExpression
    arguments: list[AstExpression]

    def __str__(self):
        arguments = ", ".join([str(x) for x in self.arguments])
        return f"{self.function}({arguments})"

    def eval(self, env: Environment) -> Value:
        function = self.function.eval(env)
        if isinstance(function, CONTROL_FLOW):
            return function
        if not isinstance(function, (Function, Builtin)):
            return Error(f"not a function: {function.typename()}")

        arguments: list[Value] = list()
        for argument in self.arguments:
            result = argument.eval(env)
            if isinstance(result, CONTROL_FLOW):
                return result
            arguments.append(result)
        return call(function, arguments)


@final
@dataclass
class AstExpressionIndex(AstExpression):
    collection: AstExpression
    index: AstExpression

    def __str__(self):
        return f"({self.collection}[{self.index}])"

    def eval(self, env: Environment) -> Value:
        collection = self.collection.eval(env)
        if isinstance(collection, CONTROL_FLOW):
            return collection
        index = self.index.eval(env)
        if isinstance(index, CONTROL_FLOW):
            return index
        return eval_index(collection, index)


@final
@dataclass
class AstExpressionLet(AstExpression):
    """
    Binding in expression position, e.g. the initializer and update clauses of
    a for loop. Evaluates to the bound value.
    """

    identifier: AstIdentifier
    value: AstExpression

    def __str__(self):
        return f"let {self.identifier} = {self.value}"

    def eval(self, env: Environment) -> Value:
        result = self.value.eval(env)
        if isinstance(result, CONTROL_FLOW):
            return result
        env.let(self.identifier.name, result)
        return result


@final
@dataclass
class AstStatementLet(AstStatement):
    identifier: AstIdentifier
    value: AstExpression

    def __str__(self):
        return f"let {self.identifier} = {self.value};"

    def eval(self, env: Environment) -> Value:
        result = self.value.eval(env)
        if isinstance(result, CONTROL_FLOW):
            return result
        env.let(self.identifier.name, result)
        return result


@final
@dataclass
class AstStatementReturn(AstStatement):
    value: Optional[AstExpression]

    def __str__(self):
        if self.value is None:
            return "return;"
        return f"return {self.value};"

    def eval(self, env: Environment) -> Value:
        if self.value is None:
            return ReturnValue(NULL)
        result = self.value.eval(env)
        if isinstance(result, CONTROL_FLOW):
            return result
        return ReturnValue(result)


@final
@dataclass
class AstStatementExpression(AstStatement):
    expression: AstExpression

    def __str__(self):
        return str(self.expression)

    def eval(self, env: Environment) -> Value:
        return self.expression.eval(env)


def eval_prefix(operator: str, rhs: Value) -> Value:
    match operator:
        case "!":
            return Boolean.new(not is_truthy(rhs))
        case "-":
            if not isinstance(rhs, Integer):
                return Error(f"unknown operator: -{rhs.typename()}")
            return Integer(-rhs.data)
    return Error(f"unknown operator: {operator}{rhs.typename()}")


def eval_infix(operator: str, lhs: Value, rhs: Value) -> Value:
    if isinstance(lhs, Integer) and isinstance(rhs, Integer):
        return eval_integer_infix(operator, lhs, rhs)
    if isinstance(lhs, Boolean) and isinstance(rhs, Boolean):
        return eval_boolean_infix(operator, lhs, rhs)
    if isinstance(lhs, String) and isinstance(rhs, String):
        return eval_string_infix(operator, lhs, rhs)
    if lhs.typename() != rhs.typename():
        return Error(f"type mismatch: {lhs.typename()} {operator} {rhs.typename()}")
    # Remaining kinds (null, arrays, hashes, functions) compare by identity.
    if operator == "==":
        return Boolean.new(lhs is rhs)
    if operator == "!=":
        return Boolean.new(lhs is not rhs)
    return Error(f"unknown operator: {lhs.typename()} {operator} {rhs.typename()}")


def eval_integer_infix(operator: str, lhs: Integer, rhs: Integer) -> Value:
    a = lhs.data
    b = rhs.data
    match operator:
        case "+":
            return Integer(a + b)
        case "-":
            return Integer(a - b)
        case "*":
            return Integer(a * b)
        case "/":
            if b == 0:
                return Error("division by zero")
            # Integer division truncates toward zero.
            quotient = abs(a) // abs(b)
            return Integer(quotient if (a < 0) == (b < 0) else -quotient)
        case "<":
            return Boolean.new(a < b)
        case ">":
            return Boolean.new(a > b)
        case "==":
            return Boolean.new(a == b)
        case "!=":
            return Boolean.new(a != b)
    return Error(f"unknown operator: {lhs.typename()} {operator} {rhs.typename()}")


def eval_boolean_infix(operator: str, lhs: Boolean, rhs: Boolean) -> Value:
    match operator:
        case "==":
            return Boolean.new(lhs.data == rhs.data)
        case "!=":
            return Boolean.new(lhs.data != rhs.data)
    return Error(f"unknown operator: {lhs.typename()} {operator} {rhs.typename()}")


def eval_string_infix(operator: str, lhs: String, rhs: String) -> Value:
    match operator:
        case "+":
            return String(lhs.data + rhs.data)
        case "==":
            return Boolean.new(lhs.data == rhs.data)
        case "!=":
            return Boolean.new(lhs.data != rhs.data)
    return Error(f"unknown operator: {lhs.typename()} {operator} {rhs.typename()}")


def eval_index(collection: Value, index: Value) -> Value:
    if isinstance(collection, Array):
        if not isinstance(index, Integer):
            return Error("array index must be an integer")
        if index.data < 0 or index.data >= len(collection.elements):
            return NULL
        return collection.elements[index.data]
    if isinstance(collection, Hash):
        if not isinstance(index, HASHABLE):
            return Error(f"unusable as hash key: {index.typename()}")
        pair = collection.pairs.get(index.hash_key())
        if pair is None:
            return NULL
        return pair.value
    return Error(f"index operator not supported: {collection.typename()}")


class Precedence(enum.IntEnum):
    # fmt: off
    LOWEST      = enum.auto()
    EQUALS      = enum.auto()  # == !=
    LESSGREATER = enum.auto()  # < >
    SUM         = enum.auto()  # + -
    PRODUCT     = enum.auto()  # * /
    PREFIX      = enum.auto()  # -x !x
    CALL        = enum.auto()  # foo(bar, 123)
    INDEX       = enum.auto()  # foo[42]
    # fmt: on


class Parser:
    ParseNud = Callable[["Parser"], AstExpression]
    ParseLed = Callable[["Parser", AstExpression], AstExpression]

    PRECEDENCES: dict[TokenKind, Precedence] = {
        # fmt: off
        TokenKind.EQ:       Precedence.EQUALS,
        TokenKind.NOT_EQ:   Precedence.EQUALS,
        TokenKind.LT:       Precedence.LESSGREATER,
        TokenKind.GT:       Precedence.LESSGREATER,
        TokenKind.PLUS:     Precedence.SUM,
        TokenKind.MINUS:    Precedence.SUM,
        TokenKind.ASTERISK: Precedence.PRODUCT,
        TokenKind.SLASH:    Precedence.PRODUCT,
        TokenKind.LPAREN:   Precedence.CALL,
        TokenKind.LBRACKET: Precedence.INDEX,
        # fmt: on
    }

    def __init__(self, lexer: Lexer):
        self.lexer: Lexer = lexer
        self.current_token: Token = Token(TokenKind.ILLEGAL, "DEFAULT CURRENT TOKEN")
        self.diagnostics: list[ParseError] = list()
        # Set when parsing failed because the input ended early. The REPL uses
        # this to ask for a continuation line instead of reporting errors.
        self.incomplete: bool = False

        self._advance_token()

        self.parse_nud_functions: dict[TokenKind, Parser.ParseNud] = dict()
        self.parse_led_functions: dict[TokenKind, Parser.ParseLed] = dict()

        self._register_nud(TokenKind.IDENT, Parser.parse_expression_identifier)
        self._register_nud(TokenKind.INT, Parser.parse_expression_integer)
        self._register_nud(TokenKind.TRUE, Parser.parse_expression_boolean)
        self._register_nud(TokenKind.FALSE, Parser.parse_expression_boolean)
        self._register_nud(TokenKind.STRING, Parser.parse_expression_string)
        self._register_nud(TokenKind.MINUS, Parser.parse_expression_prefix)
        self._register_nud(TokenKind.BANG, Parser.parse_expression_prefix)
        self._register_nud(TokenKind.LPAREN, Parser.parse_expression_grouped)
        self._register_nud(TokenKind.LBRACKET, Parser.parse_expression_array)
        self._register_nud(TokenKind.LBRACE, Parser.parse_expression_hash)
        self._register_nud(TokenKind.FUNCTION, Parser.parse_expression_function)
        self._register_nud(TokenKind.IF, Parser.parse_expression_if)
        self._register_nud(TokenKind.WHILE, Parser.parse_expression_while)
        self._register_nud(TokenKind.FOR, Parser.parse_expression_for)

        self._register_led(TokenKind.EQ, Parser.parse_expression_infix)
        self._register_led(TokenKind.NOT_EQ, Parser.parse_expression_infix)
        self._register_led(TokenKind.LT, Parser.parse_expression_infix)
        self._register_led(TokenKind.GT, Parser.parse_expression_infix)
        self._register_led(TokenKind.PLUS, Parser.parse_expression_infix)
        self._register_led(TokenKind.MINUS, Parser.parse_expression_infix)
        self._register_led(TokenKind.ASTERISK, Parser.parse_expression_infix)
        self._register_led(TokenKind.SLASH, Parser.parse_expression_infix)
        self._register_led(TokenKind.LPAREN, Parser.parse_expression_call)
        self._register_led(TokenKind.LBRACKET, Parser.parse_expression_index)

    @property
    def errors(self) -> list[str]:
        return [x.why for x in self.diagnostics]

    def _register_nud(self, kind: TokenKind, parse: "Parser.ParseNud") -> None:
        self.parse_nud_functions[kind] = parse

    def _register_led(self, kind: TokenKind, parse: "Parser.ParseLed") -> None:
        self.parse_led_functions[kind] = parse

    def _advance_token(self) -> Token:
        current_token = self.current_token
        self.current_token = self.lexer.next_token()
        return current_token

    def _check_current(self, kind: TokenKind) -> bool:
        return self.current_token.kind == kind

    def _error(self, why: str) -> ParseError:
        # Input is only incomplete if the first error is due to its end.
        if len(self.diagnostics) == 0 and self._check_current(TokenKind.EOF):
            self.incomplete = True
        return ParseError(self.current_token.location, why)

    def _expect_current(self, kind: TokenKind) -> Token:
        current = self.current_token
        if current.kind != kind:
            raise self._error(
                f"expected next token to be {kind}, got {current.kind} instead"
            )
        self._advance_token()
        return current

    def _synchronize(self) -> None:
        # Skip to the next statement boundary within the enclosing block.
        depth = 0
        while not self._check_current(TokenKind.EOF):
            if self._check_current(TokenKind.LBRACE):
                depth += 1
            elif self._check_current(TokenKind.RBRACE):
                if depth == 0:
                    return
                depth -= 1
            elif self._check_current(TokenKind.SEMICOLON) and depth == 0:
                self._advance_token()
                return
            self._advance_token()

    @staticmethod
    def _ends_with_block(statement: AstStatement) -> bool:
        match statement:
            case AstStatementExpression(expression=expression):
                pass
            case AstStatementLet(value=expression) | AstStatementReturn(
                value=expression
            ):
                pass
            case _:
                return False
        return isinstance(
            expression,
            (
                AstExpressionIf,
                AstExpressionWhile,
                AstExpressionFor,
                AstExpressionFunction,
            ),
        )

    def parse_program(self) -> AstProgram:
        statements: list[AstStatement] = list()
        while not self._check_current(TokenKind.EOF):
            if self._check_current(TokenKind.SEMICOLON):
                self._advance_token()
                continue
            try:
                statements.append(self._parse_terminated_statement(TokenKind.EOF))
            except ParseError as e:
                self.diagnostics.append(e)
                self._advance_token()
            except RecursionError:
                self.diagnostics.append(self._error("maximum nesting depth exceeded"))
                break
        return AstProgram(statements)

    def parse_identifier(self) -> AstIdentifier:
        token = self._expect_current(TokenKind.IDENT)
        return AstIdentifier(token.literal)

    def parse_expression(
        self, precedence: Precedence = Precedence.LOWEST
    ) -> AstExpression:
        def get_precedence(kind: TokenKind) -> Precedence:
            return Parser.PRECEDENCES.get(kind, Precedence.LOWEST)

        parse_nud = self.parse_nud_functions.get(self.current_token.kind)
        if parse_nud is None:
            if self.current_token.diagnostic is not None:
                if len(self.diagnostics) == 0:
                    self.incomplete = True
                raise self._error(self.current_token.diagnostic)
            raise self._error(
                f"no prefix parse function for {self.current_token.kind} found"
            )
        expression = parse_nud(self)
        while not self._check_current(
            TokenKind.SEMICOLON
        ) and precedence < get_precedence(self.current_token.kind):
            parse_led = self.parse_led_functions[self.current_token.kind]
            expression = parse_led(self, expression)
        return expression

    def _parse_expression_list(self, end: TokenKind) -> list[AstExpression]:
        elements: list[AstExpression] = list()
        while not self._check_current(end):
            elements.append(self.parse_expression())
            if not self._check_current(TokenKind.COMMA):
                break
            self._expect_current(TokenKind.COMMA)
        self._expect_current(end)
        return elements

    def parse_expression_identifier(self) -> AstExpressionIdentifier:
        token = self._expect_current(TokenKind.IDENT)
        return AstExpressionIdentifier(token.literal)

    def parse_expression_integer(self) -> AstExpressionInteger:
        literal = self.current_token.literal
        significant = literal.lstrip("0") or "0"
        if len(significant) > len(str(INT64_MAX)) or int(significant) > INT64_MAX:
            raise self._error(f"could not parse {literal} as integer")
        self._expect_current(TokenKind.INT)
        return AstExpressionInteger(int(significant))

    def parse_expression_boolean(self) -> AstExpressionBoolean:
        if self._check_current(TokenKind.TRUE):
            self._expect_current(TokenKind.TRUE)
            return AstExpressionBoolean(True)
        self._expect_current(TokenKind.FALSE)
        return AstExpressionBoolean(False)

    def parse_expression_string(self) -> AstExpressionString:
        token = self._expect_current(TokenKind.STRING)
        return AstExpressionString(token.literal)

    def parse_expression_prefix(self) -> AstExpressionPrefix:
        token = self._advance_token()
        rhs = self.parse_expression(Precedence.PREFIX)
        return AstExpressionPrefix(token.literal, rhs)

    def parse_expression_grouped(self) -> AstExpression:
        self._expect_current(TokenKind.LPAREN)
        expression = self.parse_expression()
        self._expect_current(TokenKind.RPAREN)
        return expression

    def parse_expression_array(self) -> AstExpressionArray:
        self._expect_current(TokenKind.LBRACKET)
        elements = self._parse_expression_list(TokenKind.RBRACKET)
        return AstExpressionArray(elements)

    def parse_expression_hash(self) -> AstExpressionHash:
        self._expect_current(TokenKind.LBRACE)
        pairs: list[Tuple[AstExpression, AstExpression]] = list()
        while not self._check_current(TokenKind.RBRACE):
            key = self.parse_expression()
            self._expect_current(TokenKind.COLON)
            value = self.parse_expression()
            pairs.append((key, value))
            if not self._check_current(TokenKind.COMMA):
                break
            self._expect_current(TokenKind.COMMA)
        self._expect_current(TokenKind.RBRACE)
        return AstExpressionHash(pairs)

    def parse_expression_function(self) -> AstExpressionFunction:
        self._expect_current(TokenKind.FUNCTION)
        self._expect_current(TokenKind.LPAREN)
        parameters: list[AstIdentifier] = list()
        while not self._check_current(TokenKind.RPAREN):
            parameters.append(self.parse_identifier())
            if not self._check_current(TokenKind.COMMA):
                break
            self._expect_current(TokenKind.COMMA)
        self._expect_current(TokenKind.RPAREN)
        for i in range(len(parameters)):
            for j in range(i + 1, len(parameters)):
                if parameters[i].name == parameters[j].name:
                    self.diagnostics.append(
                        self._error(f"duplicate function parameter {parameters[j]}")
                    )
        body = self.parse_block()
        return AstExpressionFunction(parameters, body)

    def parse_expression_if(self) -> AstExpressionIf:
        self._expect_current(TokenKind.IF)
        self._expect_current(TokenKind.LPAREN)
        condition = self.parse_expression()
        self._expect_current(TokenKind.RPAREN)
        consequence = self.parse_block()
        alternative: Optional[AstBlock] = None
        if self._check_current(TokenKind.ELSE):
            self._expect_current(TokenKind.ELSE)
            if self._check_current(TokenKind.IF):
                # Sugar: `else if ...` is `else { if ... }`.
                nested = self.parse_expression_if()
                alternative = AstBlock([AstStatementExpression(nested)])
            else:
                alternative = self.parse_block()
        return AstExpressionIf(condition, consequence, alternative)

    def parse_expression_while(self) -> AstExpressionWhile:
        self._expect_current(TokenKind.WHILE)
        self._expect_current(TokenKind.LPAREN)
        condition = self.parse_expression()
        self._expect_current(TokenKind.RPAREN)
        body = self.parse_block()
        return AstExpressionWhile(condition, body)

    def parse_expression_for(self) -> AstExpressionFor:
        self._expect_current(TokenKind.FOR)
        self._expect_current(TokenKind.LPAREN)
        initializer = self._parse_for_clause(TokenKind.SEMICOLON)
        self._expect_current(TokenKind.SEMICOLON)
        condition: Optional[AstExpression] = None
        if not self._check_current(TokenKind.SEMICOLON):
            condition = self.parse_expression()
        self._expect_current(TokenKind.SEMICOLON)
        update = self._parse_for_clause(TokenKind.RPAREN)
        self._expect_current(TokenKind.RPAREN)
        body = self.parse_block()
        return AstExpressionFor(initializer, condition, update, body)

    def _parse_for_clause(self, end: TokenKind) -> Optional[AstExpression]:
        if self._check_current(end):
            return None
        if self._check_current(TokenKind.LET):
            return self.parse_expression_let()
        return self.parse_expression()

    def parse_expression_let(self) -> AstExpressionLet:
        self._expect_current(TokenKind.LET)
        identifier = self.parse_identifier()
        self._expect_current(TokenKind.ASSIGN)
        value = self.parse_expression()
        return AstExpressionLet(identifier, value)

    def parse_expression_infix(self, lhs: AstExpression) -> AstExpressionInfix:
        token = self._advance_token()
        rhs = self.parse_expression(Parser.PRECEDENCES[token.kind])
        return AstExpressionInfix(token.literal, lhs, rhs)

    def parse_expression_call(self, lhs: AstExpression) -> AstExpressionCall:
        self._expect_current(TokenKind.LPAREN)
        arguments = self._parse_expression_list(TokenKind.RPAREN)
        return AstExpressionCall(lhs, arguments)

    def parse_expression_index(self, lhs: AstExpression) -> AstExpressionIndex:
        self._expect_current(TokenKind.LBRACKET)
        index = self.parse_expression()
        self._expect_current(TokenKind.RBRACKET)
        return AstExpressionIndex(lhs, index)

    def parse_block(self) -> AstBlock:
        self._expect_current(TokenKind.LBRACE)
        statements: list[AstStatement] = list()
        while not (
            self._check_current(TokenKind.RBRACE) or self._check_current(TokenKind.EOF)
        ):
            if self._check_current(TokenKind.SEMICOLON):
                self._advance_token()
                continue
            try:
                statements.append(self._parse_terminated_statement(TokenKind.RBRACE))
            except ParseError as e:
                if self._check_current(TokenKind.EOF):
                    raise
                self.diagnostics.append(e)
                self._synchronize()
        self._expect_current(TokenKind.RBRACE)
        return AstBlock(statements)

    def _parse_terminated_statement(self, closing: TokenKind) -> AstStatement:
        statement = self.parse_statement()
        if self._check_current(TokenKind.SEMICOLON):
            self._advance_token()
            return statement
        if self._check_current(closing) or self._check_current(TokenKind.EOF):
            return statement
        if Parser._ends_with_block(statement):
            return statement
        # Keep the statement and continue parsing with the next one.
        self.diagnostics.append(
            self._error(
                f"expected next token to be {TokenKind.SEMICOLON}, got {self.current_token.kind} instead"
            )
        )
        return statement

    def parse_statement(self) -> AstStatement:
        if self._check_current(TokenKind.LET):
            return self.parse_statement_let()
        if self._check_current(TokenKind.RETURN):
            return self.parse_statement_return()
        return self.parse_statement_expression()

    def parse_statement_let(self) -> AstStatementLet:
        self._expect_current(TokenKind.LET)
        identifier = self.parse_identifier()
        self._expect_current(TokenKind.ASSIGN)
        value = self.parse_expression()
        return AstStatementLet(identifier, value)

    def parse_statement_return(self) -> AstStatementReturn:
        self._expect_current(TokenKind.RETURN)
        value: Optional[AstExpression] = None
        if not (
            self._check_current(TokenKind.SEMICOLON)
            or self._check_current(TokenKind.RBRACE)
            or self._check_current(TokenKind.EOF)
        ):
            value = self.parse_expression()
        return AstStatementReturn(value)

    def parse_statement_expression(self) -> AstStatementExpression:
        expression = self.parse_expression()
        return AstStatementExpression(expression)


def call(function: Union[Function, Builtin], arguments: list[Value]) -> Value:
    if isinstance(function, Builtin):
        return function.call(arguments)
    assert isinstance(function, Function)
    parameters = function.ast.parameters
    if len(arguments) != len(parameters):
        return Error(
            f"wrong number of arguments: expected {len(parameters)}, got {len(arguments)}"
        )
    # Lexical scoping: the call environment encloses the environment the
    # function was created in, not the environment of the caller.
    env = Environment(function.env)
    for i in range(len(parameters)):
        env.let(parameters[i].name, arguments[i])
    result = function.ast.body.eval(env)
    if isinstance(result, ReturnValue):
        return result.value
    return result


# @builtin("push", 2)
# def builtin_push(array: Value, value: Value) -> Value: ...
def builtin(nameof: str, arity: Optional[int] = None):
    def decorator(func: Callable[..., Value]) -> Type[Builtin]:
        class GeneratedBuiltin(Builtin):
            name = nameof

            def function(self, arguments: list[Value]) -> Value:
                return func(*arguments)

        GeneratedBuiltin.arity = arity
        GeneratedBuiltin.__name__ = f"Builtin_{func.__name__}"
        return GeneratedBuiltin

    return decorator


@builtin("len", 1)
def builtin_len(value: Value) -> Value:
    match value:
        case String(data=data):
            return Integer(len(data))
        case Array(elements=elements):
            return Integer(len(elements))
    raise BuiltinError(f"argument to `len` not supported, got {value.typename()}")


@builtin("first", 1)
def builtin_first(value: Value) -> Value:
    array = Builtin.typed_argument("first", value, Array)
    if len(array.elements) == 0:
        return NULL
    return array.elements[0]


@builtin("last", 1)
def builtin_last(value: Value) -> Value:
    array = Builtin.typed_argument("last", value, Array)
    if len(array.elements) == 0:
        return NULL
    return array.elements[-1]


@builtin("rest", 1)
def builtin_rest(value: Value) -> Value:
    array = Builtin.typed_argument("rest", value, Array)
    if len(array.elements) == 0:
        return NULL
    return Array(array.elements[1:])


@builtin("push", 2)
def builtin_push(value: Value, element: Value) -> Value:
    array = Builtin.typed_argument("push", value, Array)
    return Array(array.elements + [element])


@builtin("puts")
def builtin_puts(*values: Value) -> Value:
    for value in values:
        print(value)
    return NULL


def eval_source(
    source: str,
    env: Optional[Environment] = None,
    loc: Optional[SourceLocation] = None,
) -> Value:
    lexer = Lexer(source, loc)
    parser = Parser(lexer)
    program = parser.parse_program()
    if len(parser.diagnostics) != 0:
        raise parser.diagnostics[0]
    return program.eval(env or Environment(BASE_ENVIRONMENT))


# Builtins live in the base environment. Programs and REPL sessions evaluate
# in an environment enclosed by the base environment, so user bindings shadow
# builtins without replacing them.
BASE_ENVIRONMENT = Environment()
BASE_ENVIRONMENT.let("len", builtin_len())
BASE_ENVIRONMENT.let("first", builtin_first())
BASE_ENVIRONMENT.let("last", builtin_last())
BASE_ENVIRONMENT.let("rest", builtin_rest())
BASE_ENVIRONMENT.let("push", builtin_push())
BASE_ENVIRONMENT.let("puts", builtin_puts())


class Repl(code.InteractiveConsole):
    PROMPT = ">> "
    PROMPT_CONTINUATION = ".. "
    BANNER = "\n".join(
        [
            "Hello! This is the Monkey programming language!",
            "Feel free to type in commands",
        ]
    )

    def __init__(self, env: Optional[Environment] = None):
        super().__init__()
        self.env = env if env is not None else Environment(BASE_ENVIRONMENT)

    def raw_input(self, prompt=""):
        prompt = Repl.PROMPT_CONTINUATION if self.buffer else Repl.PROMPT
        line = super().raw_input(prompt)
        if len(self.buffer) == 0 and line.strip() == "exit":
            raise EOFError()
        return line

    def runsource(self, source, filename="<input>", symbol="single"):
        if len(source.strip()) == 0:
            return False
        lexer = Lexer(source)
        parser = Parser(lexer)
        program = parser.parse_program()
        if len(parser.diagnostics) != 0:
            if parser.incomplete and not source.endswith("\n"):
                # Assume the user has not finished entering their program, and
                # wait for an additional line before producing an error.
                return True
            print("parser errors:")
            for error in parser.errors:
                print(f"\t{error}")
            return False
        result = program.eval(self.env)
        try:
            print(result)
        except RecursionError:
            print(Error("value is too deeply nested to display"))
        return False


def main() -> None:
    description = "The Monkey Programming Language"
    parser = ArgumentParser(description=description)
    parser.add_argument("file", type=str, nargs="?", default=None)
    args = parser.parse_args()

    if args.file is not None:
        try:
            with open(args.file, "r", encoding="utf-8") as f:
                source = f.read()
        except OSError as e:
            print(e, file=sys.stderr)
            sys.exit(1)
        program_parser = Parser(Lexer(source, SourceLocation(args.file, 1)))
        program = program_parser.parse_program()
        if len(program_parser.diagnostics) != 0:
            for diagnostic in program_parser.diagnostics:
                if diagnostic.location is not None:
                    print(
                        f"[{diagnostic.location}] error: {diagnostic.why}",
                        file=sys.stderr,
                    )
                else:
                    print(f"error: {diagnostic.why}", file=sys.stderr)
            sys.exit(1)
        result = program.eval(Environment(BASE_ENVIRONMENT))
        if isinstance(result, Error):
            print(result, file=sys.stderr)
            sys.exit(1)
    else:
        HOME = os.environ.get("MONKEY_HOME", Path.home())
        HISTFILE = Path(HOME) / ".monkey-history"
        HISTFILE_SIZE = 4096
        if readline and os.path.exists(HISTFILE):
            readline.read_history_file(HISTFILE)
        repl = Repl()
        repl.interact(banner=Repl.BANNER, exitmsg="Goodbye!")
        if readline:
            readline.set_history_length(HISTFILE_SIZE)
            readline.write_history_file(HISTFILE)


if __name__ == "__main__":
    main()
