# Overview: Quantity entry evaluator; plain numbers or small arithmetic expressions.

"""
Quantity expression evaluator.

Operators count boxes at the shelf and type things like "24+24" or
"12*3+5" into the quantity field. This module turns that text into a
Decimal quantity with two decimal places.

Only digits, the decimal point, + - * / and parentheses are understood.
The expression is parsed by a small recursive-descent parser; nothing is
ever handed to a general-purpose evaluator.

Grammar:
    expr   := term (("+" | "-") term)*
    term   := factor (("*" | "/") factor)*
    factor := ("+" | "-") factor | "(" expr ")" | number
"""
from __future__ import annotations

import re
from decimal import Decimal, DivisionByZero, InvalidOperation, Overflow, localcontext

from ..validation import ValidationError, round_quantity


INVALID_QUANTITY = "InvalidQuantity"
INVALID_CHARACTERS = "InvalidCharacters"
INVALID_EXPRESSION = "InvalidExpression"
INVALID_RESULT = "InvalidResult"

MAX_EXPRESSION_LENGTH = 200

_ALLOWED = re.compile(r"[0-9+\-*/().]+")
_OPERATORS = re.compile(r"[+\-*/]")
_PLAIN_NUMBER = re.compile(r"\d+(\.\d*)?|\.\d+")
_TOKEN = re.compile(r"\d+\.?\d*|\.\d+|[+\-*/()]")


class ExpressionError(ValidationError):
    """Raised when a quantity entry cannot be turned into a quantity."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


def normalize(text: str) -> str:
    """Drop all whitespace and read commas as decimal points."""
    return re.sub(r"\s+", "", text).replace(",", ".")


def _tokenize(expression: str) -> list[str]:
    tokens = []
    pos = 0
    while pos < len(expression):
        match = _TOKEN.match(expression, pos)
        if not match:
            raise ExpressionError(INVALID_EXPRESSION, "Invalid expression")
        tokens.append(match.group())
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, tokens: list[str]):
        self.tokens = tokens
        self.pos = 0

    def peek(self) -> str | None:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def take(self) -> str:
        token = self.peek()
        if token is None:
            raise ExpressionError(INVALID_EXPRESSION, "Incomplete expression")
        self.pos += 1
        return token

    def parse(self) -> Decimal:
        value = self.expr()
        if self.peek() is not None:
            raise ExpressionError(INVALID_EXPRESSION, f"Unexpected {self.peek()!r}")
        return value

    def expr(self) -> Decimal:
        value = self.term()
        while self.peek() in ("+", "-"):
            if self.take() == "+":
                value = value + self.term()
            else:
                value = value - self.term()
        return value

    def term(self) -> Decimal:
        value = self.factor()
        while self.peek() in ("*", "/"):
            if self.take() == "*":
                value = value * self.factor()
            else:
                value = value / self.factor()
        return value

    def factor(self) -> Decimal:
        token = self.take()
        if token == "+":
            return self.factor()
        if token == "-":
            return -self.factor()
        if token == "(":
            value = self.expr()
            if self.take() != ")":
                raise ExpressionError(INVALID_EXPRESSION, "Unbalanced parentheses")
            return value
        if token in ("*", "/", ")"):
            raise ExpressionError(INVALID_EXPRESSION, f"Unexpected {token!r}")
        return Decimal(token)


def evaluate_expression(expression: str) -> Decimal:
    """Evaluate an already-normalized arithmetic expression."""
    tokens = _tokenize(expression)
    with localcontext() as ctx:
        ctx.traps[DivisionByZero] = True
        ctx.traps[InvalidOperation] = True
        ctx.traps[Overflow] = True
        try:
            return _Parser(tokens).parse()
        except (DivisionByZero, InvalidOperation, Overflow):
            raise ExpressionError(INVALID_RESULT, "Result is not a finite number")


def _rounded(value: Decimal, code: str) -> Decimal:
    try:
        return round_quantity(value)
    except InvalidOperation:
        raise ExpressionError(code, "Quantity is too large")


def evaluate(text: str) -> Decimal:
    """
    Turn a quantity entry into a non-negative Decimal rounded to 2 places.

    Raises:
        ExpressionError: with .code set to one of INVALID_QUANTITY,
            INVALID_CHARACTERS, INVALID_EXPRESSION or INVALID_RESULT
    """
    cleaned = normalize(text or "")
    if not cleaned:
        raise ExpressionError(INVALID_QUANTITY, "Quantity is required")

    if not _ALLOWED.fullmatch(cleaned):
        raise ExpressionError(INVALID_CHARACTERS, "Invalid characters")

    if not _OPERATORS.search(cleaned):
        if not _PLAIN_NUMBER.fullmatch(cleaned):
            raise ExpressionError(INVALID_QUANTITY, "Invalid quantity")
        return _rounded(Decimal(cleaned), INVALID_QUANTITY)

    if len(cleaned) > MAX_EXPRESSION_LENGTH:
        raise ExpressionError(INVALID_EXPRESSION, "Expression is too long")

    result = evaluate_expression(cleaned)
    if not result.is_finite():
        raise ExpressionError(INVALID_RESULT, "Result is not a finite number")

    result = _rounded(result, INVALID_RESULT)
    if result < 0:
        raise ExpressionError(INVALID_RESULT, "Result cannot be negative")
    return result
