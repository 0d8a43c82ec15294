"""
Static reader for PHP literal arrays.

TYPO3 keeps extension metadata (ext_emconf.php) and the classic-mode package
list (PackageStates.php) as PHP files that build plain arrays. This module
reads those arrays without running any PHP: the source is tokenized and only
literal values are accepted. Anything that would need evaluation (constants,
::class, concatenation, function calls) becomes None inside an array.

PHP arrays come back as dicts, keys normalised the way PHP normalises them
("12" → 12, true → 1, null → "").
"""

import re
from typing import Any, Optional


class PhpParseError(ValueError):
    """Raised when PHP source is not the literal structure we expect."""
    pass


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<comment>//[^\n]*|\#[^\n]*|/\*.*?\*/)
  | (?P<tag><\?php|<\?=|\?>)
  | (?P<sq>'(?:[^'\\]|\\.)*')
  | (?P<dq>"(?:[^"\\]|\\.)*")
  | (?P<number>0[xX][0-9a-fA-F_]+|(?:\d[\d_]*)?\.\d+(?:[eE][+-]?\d+)?|\d[\d_]*\.?(?:[eE][+-]?\d+)?)
  | (?P<var>\$[A-Za-z_]\w*)
  | (?P<name>\\?[A-Za-z_][\w\\]*)
  | (?P<arrow>=>)
  | (?P<dcolon>::)
  | (?P<punct>[\[\](),;=.+\-])
  | (?P<other>.)
    """,
    re.VERBOSE | re.DOTALL,
)

_DQ_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "v": "\v", "e": "\x1b", "f": "\f",
    "\\": "\\", "$": "$", '"': '"', "0": "\0",
}
_DQ_ESCAPE_RE = re.compile(r"\\(x[0-9a-fA-F]{1,2}|u\{[0-9a-fA-F]+\}|.)", re.DOTALL)
_INT_KEY_RE = re.compile(r"-?(?:0|[1-9]\d*)\Z")

_OPENERS = {"[": "]", "(": ")"}

# Marks an array element that was an expression rather than a literal
_SKIPPED = object()


def _unquote_single(raw: str) -> str:
    body = raw[1:-1]
    return re.sub(r"\\([\\'])", r"\1", body)


def _unquote_double(raw: str) -> str:
    def replace(match):
        esc = match.group(1)
        if esc.startswith("x"):
            return chr(int(esc[1:], 16))
        if esc.startswith("u{"):
            return chr(int(esc[2:-1], 16))
        # Unknown escapes keep their backslash, as in PHP
        return _DQ_ESCAPES.get(esc, "\\" + esc)

    return _DQ_ESCAPE_RE.sub(replace, raw[1:-1])


def _to_number(raw: str):
    text = raw.replace("_", "")
    try:
        if text[:2].lower() == "0x":
            return int(text, 16)
        if any(c in text for c in ".eE"):
            return float(text)
        if len(text) > 1 and text.startswith("0"):
            return int(text, 8)
        return int(text)
    except ValueError:
        raise PhpParseError(f"Invalid number: '{raw}'")


def _normalise_key(key: Any):
    if isinstance(key, bool):
        return int(key)
    if key is None:
        return ""
    if isinstance(key, float):
        return int(key)
    if isinstance(key, str) and _INT_KEY_RE.match(key):
        return int(key)
    return key


def tokenize(text: str) -> list[tuple[str, str]]:
    """Split PHP source into (kind, text) tokens, dropping whitespace and comments."""
    tokens = []
    for match in _TOKEN_RE.finditer(text):
        kind = match.lastgroup
        if kind in ("ws", "comment", "tag"):
            continue
        tokens.append((kind, match.group()))
    return tokens


class _Parser:
    """Recursive-descent reader over a token list."""

    def __init__(self, tokens: list[tuple[str, str]], pos: int = 0):
        self.tokens = tokens
        self.pos = pos

    # ── Token access ──

    def peek(self, offset: int = 0) -> Optional[tuple[str, str]]:
        index = self.pos + offset
        if index < len(self.tokens):
            return self.tokens[index]
        return None

    def next(self) -> tuple[str, str]:
        token = self.peek()
        if token is None:
            raise PhpParseError("Unexpected end of input")
        self.pos += 1
        return token

    def expect(self, value: str):
        kind, text = self.next()
        if text != value:
            raise PhpParseError(f"Expected '{value}', got '{text}'")

    def at(self, value: str) -> bool:
        token = self.peek()
        return token is not None and token[1] == value

    # ── Values ──

    def starts_literal(self) -> bool:
        token = self.peek()
        if token is None:
            return False
        kind, text = token
        if kind in ("sq", "dq", "number"):
            return True
        if text in ("[", "-", "+"):
            return True
        if kind == "name":
            lowered = text.lower()
            if lowered in ("true", "false", "null"):
                return True
            if lowered == "array":
                nxt = self.peek(1)
                return nxt is not None and nxt[1] == "("
        return False

    def parse_value(self) -> Any:
        """Parse one literal value. Raises PhpParseError on anything else."""
        kind, text = self.next()

        if kind == "sq":
            return _unquote_single(text)
        if kind == "dq":
            return _unquote_double(text)
        if kind == "number":
            return _to_number(text)
        if text in ("-", "+"):
            value = self.parse_value()
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise PhpParseError(f"Unary '{text}' on non-number")
            return -value if text == "-" else value
        if text == "[":
            return self.parse_array("]")
        if kind == "name":
            lowered = text.lower()
            if lowered == "true":
                return True
            if lowered == "false":
                return False
            if lowered == "null":
                return None
            if lowered == "array" and self.at("("):
                self.next()
                return self.parse_array(")")

        raise PhpParseError(f"Not a literal: '{text}'")

    def parse_array(self, closing: str) -> dict:
        result: dict = {}
        next_index = 0

        while not self.at(closing):
            value = self.parse_element(closing)

            if self.at("=>"):
                self.next()
                key = value
                value = self.parse_element(closing)
            else:
                key = next_index

            if value is _SKIPPED:
                value = None

            # Computed keys cannot be known statically; drop the pair
            if key is not _SKIPPED:
                key = _normalise_key(key)
                if isinstance(key, int) and key >= next_index:
                    next_index = key + 1
                result[key] = value

            if self.at(","):
                self.next()
            elif not self.at(closing):
                raise PhpParseError(f"Expected ',' or '{closing}', got '{self.peek()[1] if self.peek() else 'EOF'}'")

        self.expect(closing)
        return result

    def parse_element(self, closing: str) -> Any:
        """Parse an array key or value; non-literal expressions come back as _SKIPPED."""
        start = self.pos
        if self.starts_literal():
            try:
                value = self.parse_value()
            except PhpParseError:
                self.pos = start
            else:
                if self.at(",") or self.at(closing) or self.at("=>"):
                    return value
        self.pos = start
        self.skip_expression(closing)
        return _SKIPPED

    def skip_expression(self, closing: str):
        """Advance past one expression: up to ',', '=>' or the closing bracket at depth 0."""
        depth: list[str] = []
        while True:
            token = self.peek()
            if token is None:
                raise PhpParseError("Unexpected end of input inside array")
            text = token[1]
            if not depth and text in (",", "=>", closing):
                return
            if text in _OPENERS:
                depth.append(_OPENERS[text])
            elif depth and text == depth[-1]:
                depth.pop()
            elif text in ("]", ")"):
                raise PhpParseError(f"Unbalanced '{text}'")
            self.pos += 1


def parse_literal(text: str) -> Any:
    """Parse a PHP source fragment holding exactly one literal value."""
    parser = _Parser(tokenize(text))
    value = parser.parse_value()
    if parser.at(";"):
        parser.next()
    if parser.peek() is not None:
        raise PhpParseError(f"Trailing input after literal: '{parser.peek()[1]}'")
    return value


def read_em_conf(text: str, ext_key: str) -> Optional[dict]:
    """
    Read the $EM_CONF[...] assignments of an ext_emconf.php file.

    The array index may be $_EXTKEY (bound to ext_key) or a string literal.
    Statements apply in file order, as they would on execution: a whole-array
    assignment replaces the entry, an element write such as
    $EM_CONF[$_EXTKEY]['version'] = '2.0.0'; sets one field. Element writes
    with a computed field or value are skipped.
    Returns None when the file has no assignment for ext_key.
    """
    tokens = tokenize(text)
    found = None

    i = 0
    while i < len(tokens):
        if tokens[i] != ("var", "$EM_CONF") or i + 1 >= len(tokens) or tokens[i + 1][1] != "[":
            i += 1
            continue

        parser = _Parser(tokens, i + 2)
        kind, index_text = parser.next()
        if kind == "var" and index_text == "$_EXTKEY":
            index = ext_key
        elif kind in ("sq", "dq"):
            index = _unquote_single(index_text) if kind == "sq" else _unquote_double(index_text)
        else:
            raise PhpParseError(f"Unsupported $EM_CONF index: '{index_text}'")
        parser.expect("]")

        field_path = []
        while parser.at("["):
            parser.next()
            try:
                field = parser.parse_value()
            except PhpParseError:
                field = _SKIPPED
            if field is _SKIPPED or isinstance(field, dict) or not parser.at("]"):
                field_path = None
                break
            parser.next()
            field_path.append(_normalise_key(field))

        if field_path is None or not parser.at("="):
            # Reads, computed fields and other operators do not write the entry
            i = max(parser.pos, i + 1)
            continue
        parser.next()

        if not field_path:
            value = parser.parse_value()
            if index == ext_key:
                if not isinstance(value, dict):
                    raise PhpParseError("$EM_CONF entry is not an array")
                found = value
            i = parser.pos
            continue

        start = parser.pos
        try:
            value = parser.parse_value()
        except PhpParseError:
            parser.pos = start
            i = start
            continue
        if index == ext_key:
            if found is None:
                found = {}
            target = found
            for field in field_path[:-1]:
                if not isinstance(target.get(field), dict):
                    target[field] = {}
                target = target[field]
            target[field_path[-1]] = value
        i = parser.pos

    return found


def read_return_array(text: str) -> dict:
    """Read the array of a top-level 'return [...];' statement (PackageStates.php)."""
    tokens = tokenize(text)
    for i, (kind, value) in enumerate(tokens):
        if kind == "name" and value.lower() == "return":
            parser = _Parser(tokens, i + 1)
            result = parser.parse_value()
            if not isinstance(result, dict):
                raise PhpParseError("Returned value is not an array")
            return result
    raise PhpParseError("No return statement found")
