"""
SQL text scanning utilities.

This module provides functions to:
- Normalise raw script text (BOM, line endings).
- Split a script into statements on ``GO`` batch lines and top-level
  semicolons, reporting unbalanced delimiters per statement.
- Tokenise one statement for the DDL parser.
- Rewrite bracket-quoted identifiers inside free-form expressions.

Every scanner here treats string literals, quoted identifiers and comments as
opaque, so brackets or semicolons inside ``N'...'`` never confuse it.
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..errors import ParseError
from ..nodes import quote_identifier, strip_identifier_quotes

_GO_LINE = re.compile(r"^[ \t]*GO(?:[ \t]+\d+)?[ \t]*;?[ \t]*$", re.IGNORECASE | re.MULTILINE)
_WORD_START = re.compile(r"[A-Za-z_@#$À-￿]")
_WORD_BODY = re.compile(r"[A-Za-z0-9_@#$À-￿]*")
_NUMBER = re.compile(r"\d+(?:\.\d+)?(?:[eE][+-]?\d+)?")
# statement starts that cannot be a column definition
_RECOVERY_KEYWORD = re.compile(r"CREATE\b|EXEC(?:UTE)?\s+(?:\[?sys\]?\.)?\[?sp_", re.IGNORECASE)


@dataclass
class StatementChunk:
    text: str
    start: int
    end: int
    line: int
    column: int
    error: Optional[ParseError] = None


@dataclass
class Token:
    kind: str  # word | quoted | string | number | punct | comment
    text: str
    start: int
    end: int

    @property
    def upper(self) -> str:
        return self.text.upper()

    @property
    def ident(self) -> str:
        """Identifier value with quoting removed (words and quoted names)."""
        return strip_identifier_quotes(self.text)

    @property
    def string_value(self) -> str:
        body = self.text[1:] if self.text[:1] in ('N', 'n') else self.text
        return body[1:-1].replace("''", "'")

    def is_word(self, *words: str) -> bool:
        return self.kind == 'word' and self.upper in words

    def is_punct(self, char: str) -> bool:
        return self.kind == 'punct' and self.text == char


def normalize_sql_text(content: str) -> str:
    if content.startswith('﻿'):
        content = content[1:]
    return content.replace('\r\n', '\n').replace('\r', '\n')


def line_and_column(text: str, offset: int) -> Tuple[int, int]:
    line = text.count('\n', 0, offset) + 1
    column = offset - text.rfind('\n', 0, offset)
    return line, column


def find_quoted_end(text: str, start: int, closer: str, limit: Optional[int] = None) -> Optional[int]:
    """Index just past the literal opened at *start*; doubled closers are escapes."""
    limit = len(text) if limit is None else limit
    pos = start + 1
    while True:
        found = text.find(closer, pos, limit)
        if found < 0:
            return None
        if found + 1 < limit and text[found + 1] == closer:
            pos = found + 2
            continue
        return found + 1


def _skip_opaque(text: str, i: int, limit: Optional[int] = None) -> Tuple[Optional[int], Optional[str]]:
    """If an opaque region starts at *i* return (end, None); (None, reason) if it never ends.

    Returns (i, None) when nothing opaque starts there.
    """
    limit = len(text) if limit is None else limit
    ch = text[i]
    if ch == "-" and text.startswith("--", i):
        nl = text.find("\n", i, limit)
        return (limit if nl < 0 else nl), None
    if ch == '/' and text.startswith('/*', i):
        close = text.find("*/", i + 2, limit)
        if close < 0:
            return None, 'unterminated block comment'
        return close + 2, None
    if ch == "'":
        end = find_quoted_end(text, i, "'", limit)
        return (end, None) if end is not None else (None, 'unterminated string literal')
    if ch == '[':
        end = find_quoted_end(text, i, "]", limit)
        return (end, None) if end is not None else (None, 'unterminated bracket identifier')
    if ch == '"':
        end = find_quoted_end(text, i, '"', limit)
        return (end, None) if end is not None else (None, 'unterminated quoted identifier')
    return i, None


# ---------------------------------------------------------------------------
# Statement splitting
# ---------------------------------------------------------------------------


def _batches(text: str) -> List[Tuple[int, int]]:
    bounds = []
    pos = 0
    for match in _GO_LINE.finditer(text):
        bounds.append((pos, match.start()))
        pos = match.end()
    bounds.append((pos, len(text)))
    return bounds


def _make_chunk(text: str, start: int, end: int, error: Optional[ParseError]) -> Optional[StatementChunk]:
    raw = text[start:end]
    stripped = raw.strip()
    if not stripped:
        return None
    real_start = start + (len(raw) - len(raw.lstrip()))
    line, column = line_and_column(text, real_start)
    if error is not None:
        error.snippet = stripped[:200]
    return StatementChunk(stripped, real_start, real_start + len(stripped), line, column, error)


def _error_at(text: str, offset: int, reason: str) -> ParseError:
    line, column = line_and_column(text, offset)
    return ParseError(reason, position=offset, line=line, column=column)


def _at_line_start(text: str, i: int, batch_start: int) -> bool:
    line_start = max(text.rfind('\n', 0, i) + 1, batch_start)
    return not text[line_start:i].strip()


def _ends_line(text: str, i: int, batch_end: int) -> bool:
    line_end = text.find('\n', i)
    return not text[i + 1:batch_end if line_end < 0 else min(line_end, batch_end)].strip()


def split_statements(text: str) -> List[StatementChunk]:
    """Split a script into statement chunks.

    A chunk carrying ``error`` failed delimiter checks; the scan carries on
    with the next statement (or the next batch when a literal never closes).
    While a parenthesis is open, a ``;`` that ends its line or a ``CREATE``
    or ``EXEC sp_...`` at the start of a line closes the broken statement.
    """
    chunks: List[StatementChunk] = []
    for batch_start, batch_end in _batches(text):
        i = batch_start
        start = batch_start
        open_parens: List[int] = []
        error: Optional[ParseError] = None

        while i < batch_end:
            ch = text[i]
            end, reason = _skip_opaque(text, i, batch_end)
            if reason:
                error = error or _error_at(text, i, reason)
                i = batch_end
                break
            if end != i:
                i = end
                continue
            if (open_parens and _RECOVERY_KEYWORD.match(text, i, batch_end)
                    and _at_line_start(text, i, batch_start)):
                chunk = _make_chunk(text, start, i, error or _error_at(text, open_parens[0], 'unclosed parenthesis'))
                if chunk:
                    chunks.append(chunk)
                start = i
                open_parens = []
                error = None
            if ch == '(':
                open_parens.append(i)
            elif ch == ')':
                if open_parens:
                    open_parens.pop()
                elif error is None:
                    error = _error_at(text, i, 'unmatched closing parenthesis')
            elif ch == ';' and (not open_parens or _ends_line(text, i, batch_end)):
                if open_parens:
                    error = error or _error_at(text, open_parens[0], 'unclosed parenthesis')
                chunk = _make_chunk(text, start, i, error)
                if chunk:
                    chunks.append(chunk)
                start = i + 1
                open_parens = []
                error = None
            i += 1

        if open_parens and error is None:
            error = _error_at(text, open_parens[0], 'unclosed parenthesis')
        chunk = _make_chunk(text, start, batch_end, error)
        if chunk:
            chunks.append(chunk)
    return chunks


# ---------------------------------------------------------------------------
# Tokenising
# ---------------------------------------------------------------------------


def tokenize(text: str, include_comments: bool = True) -> List[Token]:
    """Tokenise one (already delimiter-checked) statement."""
    tokens: List[Token] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch.isspace():
            i += 1
            continue
        end, reason = _skip_opaque(text, i)
        if reason:
            line, column = line_and_column(text, i)
            raise ParseError(reason, position=i, line=line, column=column, snippet=text[:200])
        if end != i:
            kind = {"'": 'string', '[': 'quoted', '"': 'quoted'}.get(ch, 'comment')
            if kind != 'comment' or include_comments:
                tokens.append(Token(kind, text[i:end], i, end))
            i = end
            continue
        if ch in 'Nn' and text[i + 1:i + 2] == "'":
            close = find_quoted_end(text, i + 1, "'")
            if close is None:
                line, column = line_and_column(text, i)
                raise ParseError('unterminated string literal', position=i, line=line, column=column)
            tokens.append(Token('string', text[i:close], i, close))
            i = close
            continue
        if ch.isdigit():
            match = _NUMBER.match(text, i)
            tokens.append(Token('number', match.group(0), i, match.end()))
            i = match.end()
            continue
        if _WORD_START.match(ch):
            match = _WORD_BODY.match(text, i + 1)
            tokens.append(Token('word', text[i:match.end()], i, match.end()))
            i = match.end()
            continue
        tokens.append(Token('punct', ch, i, i + 1))
        i += 1
    return tokens


# ---------------------------------------------------------------------------
# Expression helpers
# ---------------------------------------------------------------------------


def strip_outer_parens(expr: str) -> str:
    """Remove parentheses that wrap the whole expression, e.g. ``((0))`` -> ``0``."""
    expr = expr.strip()
    while expr.startswith('(') and expr.endswith(')'):
        depth = 0
        i = 0
        wraps = True
        while i < len(expr):
            end, reason = _skip_opaque(expr, i)
            if reason:
                return expr
            if end != i:
                i = end
                continue
            if expr[i] == '(':
                depth += 1
            elif expr[i] == ')':
                depth -= 1
                if depth == 0 and i != len(expr) - 1:
                    wraps = False
                    break
            i += 1
        if not wraps:
            break
        expr = expr[1:-1].strip()
    return expr


def unbracket_expression(expr: str) -> str:
    """Replace ``[name]`` identifiers with their PostgreSQL spelling.

    String literals and comments are copied through untouched.
    """
    out: List[str] = []
    i = 0
    while i < len(expr):
        ch = expr[i]
        if ch == 'N' and expr[i + 1:i + 2] == "'" and (i == 0 or not expr[i - 1].isalnum()):
            i += 1
            continue
        end, reason = _skip_opaque(expr, i)
        if reason:
            out.append(expr[i:])
            break
        if end != i:
            segment = expr[i:end]
            out.append(quote_identifier(strip_identifier_quotes(segment)) if ch == '[' else segment)
            i = end
            continue
        out.append(ch)
        i += 1
    return ''.join(out)


def comment_out(text: str) -> str:
    """Prefix every line of *text* with ``-- ``."""
    return '\n'.join(f"-- {line}".rstrip() for line in text.splitlines())


def split_top_level(text: str, separator: str = ',') -> List[Tuple[str, int]]:
    """Split on *separator* outside parentheses and literals.

    Returns ``(segment, offset)`` pairs; segments keep their surrounding
    whitespace so offsets stay exact.
    """
    parts: List[Tuple[str, int]] = []
    depth = 0
    start = 0
    i = 0
    while i < len(text):
        end, reason = _skip_opaque(text, i)
        if reason:
            break
        if end != i:
            i = end
            continue
        ch = text[i]
        if ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
        elif ch == separator and depth == 0:
            parts.append((text[start:i], start))
            start = i + 1
        i += 1
    parts.append((text[start:], start))
    return parts
