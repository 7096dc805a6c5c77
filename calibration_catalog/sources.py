"""Source expressions of calibration categories.

A category lists the physical light sources present in its files as a
weighted sum, for example ``dark + 0.5*background``.  The grammar is closed::

    expression := term ("+" term)*
    term       := [number ["*"]] identifier
    identifier := [A-Za-z_][A-Za-z0-9_]*

Parsing produces a :class:`SourceExpression`, a tuple of
``(coefficient, name)`` terms.  Nothing is evaluated.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List, Tuple

from .errors import ConfigError

_TOKEN_RE = re.compile(
    r"(?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)"
    r"|(?P<name>[A-Za-z_][A-Za-z0-9_]*)"
    r"|(?P<op>[+*])"
)


@dataclass(frozen=True)
class SourceTerm:
    coefficient: float
    name: str

    def __str__(self) -> str:
        if self.coefficient == 1:
            return self.name
        return f"{self.coefficient:g}*{self.name}"


@dataclass(frozen=True)
class SourceExpression:
    """Linear combination of named sources."""

    terms: Tuple[SourceTerm, ...]

    @property
    def names(self) -> List[str]:
        return [term.name for term in self.terms]

    def __iter__(self) -> Iterator[SourceTerm]:
        return iter(self.terms)

    def __len__(self) -> int:
        return len(self.terms)

    def __str__(self) -> str:
        return " + ".join(str(term) for term in self.terms)


def _tokenize(text: str) -> List[Tuple[str, str, int]]:
    tokens = []
    pos = 0
    while pos < len(text):
        if text[pos].isspace():
            pos += 1
            continue
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ConfigError(
                f"Invalid character {text[pos]!r} at position {pos} in sources {text!r}."
            )
        tokens.append((match.lastgroup, match.group(), pos))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.index = 0

    def _peek(self):
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def _error(self, expected: str) -> ConfigError:
        token = self._peek()
        found = "end of text" if token is None else f"{token[1]!r} at position {token[2]}"
        return ConfigError(f"Expected {expected} but found {found} in sources {self.text!r}.")

    def _accept(self, kind: str, text: str | None = None) -> str | None:
        token = self._peek()
        if token is not None and token[0] == kind and (text is None or token[1] == text):
            self.index += 1
            return token[1]
        return None

    def parse(self) -> SourceExpression:
        terms = [self._term()]
        while self._accept("op", "+"):
            terms.append(self._term())
        if self._peek() is not None:
            raise self._error('"+"')
        return SourceExpression(tuple(terms))

    def _term(self) -> SourceTerm:
        coefficient = 1.0
        number = self._accept("number")
        if number is not None:
            coefficient = float(number)
            self._accept("op", "*")
        name = self._accept("name")
        if name is None:
            raise self._error("a source name")
        return SourceTerm(coefficient, name)


def parse_sources(text: str) -> SourceExpression:
    """Parse a sources string such as ``"flat + back"``."""
    if not isinstance(text, str):
        raise ConfigError(
            f"Sources must be given as text, got {type(text).__name__}."
        )
    if not text.strip():
        raise ConfigError("Sources must not be empty.")
    return _Parser(text).parse()
