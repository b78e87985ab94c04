#!/usr/bin/python3
# kalkul, a dual-stack infix calculator.
#
# Copyright (c) 2026 the kalkul authors
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

import argparse
import logging
import math
import operator
import re
import sys
from enum import Enum, auto
from typing import Any, Iterator, NamedTuple

try:
    # line editing and history for input()
    import readline  # noqa: F401
except ModuleNotFoundError:
    pass

__version__ = "0.1"
logger = logging.getLogger(__name__)

operators_reg = {
    "*": operator.mul,
    "/": operator.truediv,
    "+": operator.add,
    "-": operator.sub,
}
precedence = {
    "*": 2,
    "/": 2,
    "+": 1,
    "-": 1,
}


class EvalError(Exception):
    def __init__(
        self,
        code: str,
        position: tuple[int, int] | None = None,
        message: str | None = None,
    ) -> None:
        self.code = code
        self.position = position
        self.message = message or "found an error"
        super().__init__(self.message)


class LexError(EvalError):
    pass


class UnbalancedParentheses(EvalError):
    pass


class StackUnderflow(EvalError):
    pass


class DivisionByZero(EvalError):
    pass


class TrailingGarbage(EvalError):
    pass


def display_error(error: EvalError) -> None:
    print(f"{error.message}:")
    print(f"  {error.code}")
    if error.position:
        highlight = " " * error.position[0] + "^" * (
            error.position[1] - error.position[0]
        )
        print(f"  {highlight}")


class TokenKind(Enum):
    NUMBER = auto()
    OPERATOR = auto()
    LPAR = auto()
    RPAR = auto()


class Token(NamedTuple):
    kind: TokenKind
    value: str | int | float
    where: tuple[int, int]


class Pending(NamedTuple):
    token: Token
    depth: int


token_spec = {
    "num": r"(\d+(\.\d*)?|\.\d+)([Ee][+\-]?\d+)?(?![\w.])",
    "op": r"[+\-*/]",
    "lpar": r"\(",
    "rpar": r"\)",
    "skip": r"\s+",
    "error": r"[^\s()+\-*/]+|.",
}
token_regex = re.compile(
    "|".join(f"(?P<{name}>{text})" for name, text in token_spec.items())
)


class Tokens:
    """Lazy token sequence over one source string.

    Every iteration scans the source again from the beginning, so the same
    object can be walked more than once.
    """

    def __init__(self, code: str) -> None:
        self.code = code

    def __iter__(self) -> Iterator[Token]:
        for mo in token_regex.finditer(self.code):
            kind = str(mo.lastgroup)
            value = mo.group()
            where = mo.start(), mo.end()
            if kind == "skip":
                continue
            elif kind == "num":
                try:
                    if "." in value or "e" in value.lower():
                        number = float(value)
                    else:
                        number = int(value)
                except ValueError:
                    # int() refuses strings past sys.get_int_max_str_digits()
                    raise LexError(self.code, where, "number literal too long")
                if isinstance(number, float) and not math.isfinite(number):
                    raise LexError(self.code, where, "number literal out of range")
                yield Token(TokenKind.NUMBER, number, where)
            elif kind == "op":
                yield Token(TokenKind.OPERATOR, value, where)
            elif kind == "lpar":
                yield Token(TokenKind.LPAR, value, where)
            elif kind == "rpar":
                yield Token(TokenKind.RPAR, value, where)
            else:
                raise LexError(self.code, where, f"unknown symbol '{value}'")

    def __repr__(self) -> str:
        return f"Tokens({self.code!r})"


def tokenize(code: str) -> Tokens:
    return Tokens(code)


class Stack:
    def __init__(self) -> None:
        self._items: list[Any] = []

    def push(self, item: Any) -> None:
        self._items.append(item)

    def pop(self) -> Any:
        return self._items.pop()

    def top(self) -> Any:
        return self._items[-1]

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return len(self._items) > 0

    def __iter__(self) -> Iterator[Any]:
        return iter(self._items)

    def __repr__(self) -> str:
        return f"Stack({self._items!r})"


class Evaluator:
    """Dual-stack reduction engine for a single expression.

    Operators wait on the operator stack until an operator of lower or equal
    precedence, a closing parenthesis or the end of input forces them to be
    applied to the two topmost operands. Each operator entry remembers how
    deep the operand stack was when it was pushed, which is how a missing
    operand is told apart from one that belongs to another operator.
    """

    def __init__(self, code: str = "") -> None:
        self.code = code
        self.operands = Stack()
        self.operators = Stack()

    def _floor(self) -> int:
        if self.operators:
            return self.operators.top().depth
        return 0

    def _trace(self, token: Token | None) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "%s -> operands=%s operators=%s",
                "end" if token is None else token.value,
                list(self.operands),
                [pending.token.value for pending in self.operators],
            )

    def reduce(self) -> None:
        pending: Pending = self.operators.pop()
        symbol = str(pending.token.value)
        if len(self.operands) <= pending.depth or len(self.operands) < 2:
            raise StackUnderflow(
                self.code, pending.token.where, f"missing operand for '{symbol}'"
            )
        rhs = self.operands.pop()
        lhs = self.operands.pop()
        try:
            result = operators_reg[symbol](lhs, rhs)
        except ZeroDivisionError:
            raise DivisionByZero(self.code, pending.token.where, "division by zero")
        except OverflowError as error:
            raise EvalError(self.code, pending.token.where, error.args[0])
        if isinstance(result, float) and not math.isfinite(result):
            raise EvalError(self.code, pending.token.where, "result out of range")
        self.operands.push(result)

    def feed(self, token: Token) -> None:
        if token.kind is TokenKind.NUMBER:
            self.operands.push(token.value)
        elif token.kind is TokenKind.OPERATOR:
            rank = precedence[str(token.value)]
            while (
                self.operators
                and self.operators.top().token.kind is TokenKind.OPERATOR
                and precedence[self.operators.top().token.value] >= rank
            ):
                self.reduce()
            if len(self.operands) <= self._floor():
                raise StackUnderflow(
                    self.code, token.where, f"missing operand for '{token.value}'"
                )
            self.operators.push(Pending(token, len(self.operands)))
        elif token.kind is TokenKind.LPAR:
            self.operators.push(Pending(token, len(self.operands)))
        elif token.kind is TokenKind.RPAR:
            while (
                self.operators
                and self.operators.top().token.kind is TokenKind.OPERATOR
            ):
                self.reduce()
            if not self.operators:
                raise UnbalancedParentheses(self.code, token.where, "unmatched ')'")
            opening: Pending = self.operators.pop()
            if len(self.operands) <= opening.depth:
                raise StackUnderflow(
                    self.code,
                    (opening.token.where[0], token.where[1]),
                    "empty parentheses",
                )
        else:
            raise ValueError(f"unexpected token kind {token.kind}")
        self._trace(token)

    def finish(self) -> int | float:
        while self.operators:
            pending: Pending = self.operators.top()
            if pending.token.kind is TokenKind.LPAR:
                raise UnbalancedParentheses(
                    self.code, pending.token.where, "'(' was never closed"
                )
            self.reduce()
        self._trace(None)
        if not self.operands:
            raise StackUnderflow(self.code, None, "empty expression")
        if len(self.operands) > 1:
            raise TrailingGarbage(
                self.code,
                (0, len(self.code)),
                f"{len(self.operands)} values left without an operator between them",
            )
        return self.operands.pop()


def evaluate(expression: str) -> int | float:
    ev = Evaluator(expression)
    for token in tokenize(expression):
        ev.feed(token)
    return ev.finish()


def format_number(value: int | float, precision: int = 15) -> str:
    if isinstance(value, int):
        return str(value)
    value = round(value, precision)
    if value.is_integer():
        return str(int(value))
    return str(value)


class Calculator:
    def __init__(self, precision: int = 15) -> None:
        self._settings: dict[str, int] = {
            "precision": precision,
        }

    def execute(self, code: str) -> None:
        code = code.strip()
        if len(code) == 0:
            return
        if code == "exit":
            sys.exit(0)
        value = evaluate(code)
        try:
            text = format_number(value, self._settings["precision"])
        except ValueError as error:
            # too many digits for str(), see sys.set_int_max_str_digits()
            raise EvalError(code, (0, len(code)), error.args[0])
        print(text)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="kalkul", description="a dual-stack infix calculator"
    )
    parser.add_argument("expression", nargs="?", help="evaluate once and exit")
    parser.add_argument(
        "-q", "--quiet", action="store_false", help="don't print initial banner"
    )
    parser.add_argument(
        "-p",
        "--precision",
        type=int,
        default=15,
        help="decimal places kept when printing results",
    )
    parser.add_argument(
        "-d", "--debug", action="store_true", help="log every stack transition"
    )
    parser.add_argument(
        "-v", "--version", action="version", version=f"kalkul {__version__}"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(name)s - %(levelname)s - %(message)s",
    )

    calc = Calculator(args.precision)
    if args.expression is not None:
        try:
            calc.execute(args.expression)
        except EvalError as error:
            display_error(error)
            return 1
        return 0
    if not sys.stdin.isatty():
        exprs = (s.strip() for s in sys.stdin.readlines())
        for expr in exprs:
            try:
                if len(expr) > 0:
                    calc.execute(expr)
            except EvalError as error:
                display_error(error)
                return 1
        return 0
    if args.quiet:
        print(f"kalkul {__version__}, a dual-stack infix calculator")
        print("This is an open source software released under MIT license.")
    while True:
        try:
            expr = input(">>> ")
        except (EOFError, KeyboardInterrupt):
            print()
            return 0
        try:
            calc.execute(expr)
        except EvalError as error:
            display_error(error)


if __name__ == "__main__":
    sys.exit(main())
