from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional


ERR_ARGUMENT = "ArgumentError"
ERR_FILE = "FileAccessError"
ERR_SYNTAX = "SyntaxError"
ERR_UNDEFINED = "UndefinedReference"
ERR_UNINITIALIZED = "UninitializedVariable"
ERR_TYPE = "TypeMismatch"
ERR_LOOP_COUNT = "InvalidLoopCount"
ERR_UNTERMINATED = "UnterminatedLoop"
ERR_INTERNAL = "InternalError"


class ZPMError(Exception):
    """Base class for interpreter errors."""

    kind = ERR_INTERNAL

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ZPMArgumentError(ZPMError):
    """Raised for an invalid invocation (bad or missing script path)."""

    kind = ERR_ARGUMENT


class ZPMFileError(ZPMError):
    """Raised when the script file is missing or unreadable."""

    kind = ERR_FILE


@dataclass
class Token:
    type: str
    value: str
    line: int
    column: int


KEYWORDS = {
    "PRINT",
    "FOR",
    "ENDFOR",
}

DIGITS = "0123456789"

# Compound operators are matched before the bare '=' (maximal munch).
COMPOUND_OPERATORS = {
    "+": "+=",
    "-": "-=",
    "*": "*=",
}


class Lexer:
    """Tokenizes a single ZPM source line."""

    def __init__(self, text: str, filename: str, line: int = 1) -> None:
        self.text = text
        self.filename = filename
        self.index = 0
        self.line = line
        self.column = 1

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        tokens_append = tokens.append
        _advance = self._advance
        text = self.text
        n = len(text)

        while self.index < n:
            ch: str = text[self.index]
            if ch in " \t\r\n":
                _advance()
                continue
            if ch == ";":
                tokens_append(Token("SEMICOLON", ";", self.line, self.column))
                _advance()
                continue
            if ch == '"':
                token = self._consume_string()
                tokens_append(token)
                if token.type == "ERROR":
                    break
                continue
            if ch == "=":
                tokens_append(Token("OPERATOR", "=", self.line, self.column))
                _advance()
                continue
            if ch in COMPOUND_OPERATORS:
                line, col = self.line, self.column
                nxt = text[self.index + 1] if self.index + 1 < n else ""
                if nxt == "=":
                    tokens_append(Token("OPERATOR", COMPOUND_OPERATORS[ch], line, col))
                    _advance()
                    _advance()
                    continue
                if ch == "-" and nxt != "" and nxt in DIGITS:
                    tokens_append(self._consume_signed_number())
                    continue
                tokens_append(Token("ERROR", f"Unexpected character '{ch}'", line, col))
                break
            if ch in DIGITS:
                tokens_append(self._consume_unsigned_number())
                continue
            if self._is_identifier_start(ch):
                tokens_append(self._consume_identifier())
                continue
            tokens_append(Token("ERROR", f"Unexpected character '{ch}'", self.line, self.column))
            break
        tokens_append(Token("EOF", "", self.line, self.column))
        return tokens

    def _consume_string(self) -> Token:
        line, col = self.line, self.column
        start = self.index
        end = self._closing_quote(start)
        if end is None:
            return Token("ERROR", "Unterminated string literal", line, col)
        while self.index <= end:
            self._advance()
        # Raw text keeps both quotes; the resolver strips them.
        return Token("STRING", self.text[start:end + 1], line, col)

    def _closing_quote(self, start: int) -> Optional[int]:
        """Return the index of the quote closing the string opened at ``start``.

        Text literals have no escapes, so inner quotes are plain characters: the
        literal ends at the first quote followed by the end of the statement
        (';', ENDFOR or the end of the line), else at the last quote on the line.
        """
        text = self.text
        last: Optional[int] = None
        pos = text.find('"', start + 1)
        while pos != -1:
            rest = text[pos + 1:].lstrip(" \t\r\n")
            if rest == "" or rest.startswith(";") or self._starts_endfor(rest):
                return pos
            last = pos
            pos = text.find('"', pos + 1)
        return last

    def _starts_endfor(self, rest: str) -> bool:
        if not rest.startswith("ENDFOR"):
            return False
        return len(rest) == 6 or not self._is_identifier_part(rest[6])

    def _consume_signed_number(self) -> Token:
        line, col = self.line, self.column
        self._advance()  # consume '-'
        return self._number_token("-" + self._consume_digits(), line, col)

    def _consume_unsigned_number(self) -> Token:
        line, col = self.line, self.column
        return self._number_token(self._consume_digits(), line, col)

    def _number_token(self, digits: str, line: int, col: int) -> Token:
        if not self._eof and self._peek() not in " \t\r\n;":
            # "12AB" or "2.5" is neither a number nor a name
            return Token("ERROR", f"Malformed token starting with '{digits}'", line, col)
        return Token("NUMBER", digits, line, col)

    def _consume_digits(self) -> str:
        digits: List[str] = []
        text = self.text
        n = len(text)
        while self.index < n and text[self.index] in DIGITS:
            digits.append(text[self.index])
            self._advance()
        return "".join(digits)

    def _consume_identifier(self) -> Token:
        line, col = self.line, self.column
        chars: List[str] = []
        text = self.text
        n = len(text)
        while self.index < n and self._is_identifier_part(text[self.index]):
            chars.append(text[self.index])
            self._advance()
        value = "".join(chars)
        token_type: str = value if value in KEYWORDS else "IDENT"
        return Token(token_type, value, line, col)

    def _is_identifier_start(self, ch: str) -> bool:
        return ch == "_" or ("a" <= ch <= "z") or ("A" <= ch <= "Z")

    def _is_identifier_part(self, ch: str) -> bool:
        return self._is_identifier_start(ch) or ch in DIGITS

    @property
    def _eof(self) -> bool:
        return self.index >= len(self.text)

    def _peek(self) -> str:
        return self.text[self.index]

    def _advance(self) -> None:
        self.column += 1
        self.index += 1
