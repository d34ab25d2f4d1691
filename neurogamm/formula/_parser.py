"""
Tokenizing parser for formula text.

Grammar:
    formula  := NAME '~' rhs
    rhs      := '1' | term ('+' term)*
    term     := NAME | call
    call     := ('s' | 'te' | 'ti') '(' arg (',' arg)* ')'
    arg      := NAME | NAME '=' value
    value    := INT | TRUE | FALSE | NAME | 'c' '(' INT (',' INT)* ')'
"""

from __future__ import annotations

import re

from neurogamm.core.exceptions import InvalidSpecError
from neurogamm.formula.terms import (
    DEFAULT_SMOOTH_K, DEFAULT_TENSOR_K, ModelSpec, Term, TermKind,
)

_TOKEN = re.compile(r"\s*(?:(?P<num>\d+)|(?P<name>[A-Za-z_.][A-Za-z0-9_.]*)|(?P<op>[~+(),=]))")
_SMOOTH_CALLS = ('s', 'te', 'ti')


def _tokenize(text: str) -> list[str]:
    tokens = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        m = _TOKEN.match(text, pos)
        if m is None:
            raise InvalidSpecError(
                f"Unexpected character {text[pos:].strip()[:1]!r} at position {pos}",
                spec=text,
            )
        tokens.append(m.group(m.lastgroup))
        pos = m.end()
    return tokens


class _Parser:

    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.pos = 0

    def peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def next(self) -> str:
        tok = self.peek()
        if tok is None:
            self.fail("Unexpected end of formula")
        self.pos += 1
        return tok

    def expect(self, token: str) -> None:
        tok = self.next()
        if tok != token:
            self.fail(f"Expected {token!r}, got {tok!r}")

    def fail(self, message: str):
        raise InvalidSpecError(f"{message} in formula {self.text!r}", spec=self.text)

    def name(self) -> str:
        tok = self.next()
        if not re.fullmatch(r"[A-Za-z_.][A-Za-z0-9_.]*", tok):
            self.fail(f"Expected a variable name, got {tok!r}")
        return tok

    def formula(self) -> ModelSpec:
        response = self.name()
        self.expect('~')
        terms: list[Term] = []
        if self.peek() == '1':
            self.next()
        else:
            terms.append(self.term())
            while self.peek() == '+':
                self.next()
                terms.append(self.term())
        if self.peek() is not None:
            self.fail(f"Unexpected token {self.peek()!r}")
        return ModelSpec(response, tuple(terms))

    def term(self) -> Term:
        ident = self.name()
        if self.peek() != '(':
            return Term.parametric(ident)
        if ident not in _SMOOTH_CALLS:
            self.fail(f"Unknown smooth constructor {ident!r}")
        self.expect('(')
        variables: list[str] = []
        options: dict[str, object] = {}
        while True:
            key = self.name()
            if self.peek() == '=':
                self.next()
                if key in options:
                    self.fail(f"Repeated option {key!r}")
                options[key] = self.value()
            else:
                if options:
                    self.fail("Positional variables must precede options")
                variables.append(key)
            tok = self.next()
            if tok == ')':
                break
            if tok != ',':
                self.fail(f"Expected ',' or ')', got {tok!r}")
        return self.build(ident, variables, options)

    def value(self) -> object:
        tok = self.next()
        if tok.isdigit():
            return int(tok)
        if tok == 'c' and self.peek() == '(':
            self.next()
            values = [self.integer()]
            while self.peek() == ',':
                self.next()
                values.append(self.integer())
            self.expect(')')
            return tuple(values)
        if tok in ('TRUE', 'T'):
            return True
        if tok in ('FALSE', 'F'):
            return False
        return tok

    def integer(self) -> int:
        tok = self.next()
        if not tok.isdigit():
            self.fail(f"Expected an integer, got {tok!r}")
        return int(tok)

    def build(self, ident: str, variables: list[str], options: dict) -> Term:
        unknown = set(options) - {'k', 'fx', 'by', 'diff'}
        if unknown:
            self.fail(f"Unknown option(s) {sorted(unknown)} for {ident}()")
        fx = options.get('fx', False)
        if not isinstance(fx, bool):
            self.fail(f"fx must be TRUE or FALSE, got {fx!r}")

        if ident == 's':
            if len(variables) != 1:
                self.fail(f"s() takes one variable, got {variables}")
            k = options.get('k', DEFAULT_SMOOTH_K)
            if not isinstance(k, int) or isinstance(k, bool):
                self.fail(f"k must be an integer for s(), got {k!r}")
            by = options.get('by')
            if by is not None and not isinstance(by, str):
                self.fail(f"by must be a variable name, got {by!r}")
            diff = options.get('diff')
            if diff is not None and (by is None or not isinstance(diff, bool)):
                self.fail("diff=TRUE/FALSE is only valid together with by=")
            return Term.smooth(variables[0], k=k, fx=fx, by=by, interaction_only=diff)

        if 'by' in options or 'diff' in options:
            self.fail(f"{ident}() does not take by= or diff=")
        k = options.get('k', DEFAULT_TENSOR_K)
        if isinstance(k, bool) or not isinstance(k, (int, tuple)):
            self.fail(f"k must be an integer or c(...), got {k!r}")
        return Term(TermKind.TENSOR, tuple(variables), k=k, fx=fx,
                    interaction_only=(ident == 'ti'))


def parse_formula(text: str) -> ModelSpec:
    """Parse formula text into a ModelSpec.

    Raises:
        InvalidSpecError: If the text does not follow the grammar.
    """
    if not isinstance(text, str) or not text.strip():
        raise InvalidSpecError("Formula text is empty", spec=text if isinstance(text, str) else None)
    return _Parser(text).formula()
