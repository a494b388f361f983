from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Union

from lexer import ERR_SYNTAX, Token


@dataclass
class SourceLocation:
    file: str
    line: int
    column: int
    statement: str


@dataclass(frozen=True)
class Fault:
    """An interpretation-time failure returned (not raised) by the core."""

    kind: str
    message: str
    location: Optional[SourceLocation] = None


@dataclass
class Node:
    location: SourceLocation


class Statement(Node):
    pass


@dataclass
class Assignment(Statement):
    target: str
    operator: str
    expression: str


@dataclass
class PrintStatement(Statement):
    name: str


@dataclass
class ForHeader(Statement):
    # Raw text of the loop count; None when the header has no count at all.
    count: Optional[str]
    body: List[Statement] = field(default_factory=list)
    closed: bool = False
    # Syntax problem in the statements written on the header line, reported
    # only after the loop count has been validated.
    fault: Optional[Fault] = None


@dataclass
class EndFor(Statement):
    pass


ParseResult = Union[List[Statement], Fault]

EXPRESSION_TOKENS = {"STRING", "NUMBER", "IDENT"}


class Parser:
    """Parses the tokens of one source line into statements.

    A line holds either a FOR header (optionally followed by its body and a
    closing ENDFOR), a lone ENDFOR terminator, or one or more PRINT and
    assignment statements separated by ';'.
    """

    def __init__(self, tokens: List[Token], filename: str, statement_text: str) -> None:
        self.tokens = tokens
        self.filename = filename
        self.statement_text = statement_text
        self.index = 0

    def parse_line(self, *, allow_for: bool = True) -> ParseResult:
        token = self._peek()
        if token.type == "FOR":
            if not allow_for:
                return self._fault("Nested FOR loops are not supported", token)
            return self._parse_for_header()
        if token.type == "ENDFOR" and self._peek_next().type == "EOF":
            return [EndFor(location=self._location_from_token(token))]
        return self._parse_statements()

    def _parse_for_header(self) -> ParseResult:
        keyword = self._consume()
        location = self._location_from_token(keyword)
        count_token = self._peek()
        if count_token.type == "EOF":
            return [ForHeader(location=location, count=None)]
        if count_token.type != "NUMBER":
            # Not a plain integer: leave the raw word for the interpreter to reject.
            word = self.statement_text[count_token.column - 1:].split()[0]
            return [ForHeader(location=location, count=word)]
        count = self._consume().value
        self._match("SEMICOLON")
        body: List[Statement] = []
        while self._peek().type not in ("EOF", "ENDFOR"):
            statement = self._parse_statement()
            if isinstance(statement, Fault):
                return [ForHeader(location=location, count=count, fault=statement)]
            body.append(statement)
            fault = self._consume_terminator()
            if fault is not None:
                return [ForHeader(location=location, count=count, fault=fault)]
        closed = self._peek().type == "ENDFOR"
        if closed:
            self._consume()
            if self._peek().type != "EOF":
                fault = self._fault("Unexpected tokens after ENDFOR", self._peek())
                return [ForHeader(location=location, count=count, fault=fault)]
        return [ForHeader(location=location, count=count, body=body, closed=closed)]

    def _parse_statements(self) -> ParseResult:
        statements: List[Statement] = []
        while self._peek().type != "EOF":
            statement = self._parse_statement()
            if isinstance(statement, Fault):
                return statement
            statements.append(statement)
            fault = self._consume_terminator()
            if fault is not None:
                return fault
        return statements

    def _parse_statement(self) -> Union[Statement, Fault]:
        token = self._peek()
        if token.type == "PRINT":
            return self._parse_print()
        if token.type == "IDENT":
            return self._parse_assignment()
        if token.type == "ERROR":
            return self._fault(token.value, token)
        if token.type == "FOR":
            return self._fault("FOR must start its own line", token)
        if token.type == "ENDFOR":
            return self._fault("ENDFOR without matching FOR", token)
        if token.type == "SEMICOLON":
            return self._fault("Empty statement", token)
        return self._fault(f"Unrecognized statement starting with '{token.value}'", token)

    def _parse_print(self) -> Union[Statement, Fault]:
        keyword = self._consume()
        name = self._peek()
        if name.type != "IDENT":
            return self._fault("PRINT expects a variable name", name)
        self._consume()
        return PrintStatement(location=self._location_from_token(keyword), name=name.value)

    def _parse_assignment(self) -> Union[Statement, Fault]:
        target = self._consume()
        operator = self._peek()
        if operator.type == "ERROR":
            return self._fault(operator.value, operator)
        if operator.type != "OPERATOR":
            return self._fault(f"Invalid assignment statement for '{target.value}'", operator)
        self._consume()
        expression = self._peek()
        if expression.type == "ERROR":
            return self._fault(expression.value, expression)
        if expression.type not in EXPRESSION_TOKENS:
            return self._fault(f"Expected a value after '{operator.value}'", expression)
        self._consume()
        return Assignment(
            location=self._location_from_token(target),
            target=target.value,
            operator=operator.value,
            expression=expression.value,
        )

    def _consume_terminator(self) -> Optional[Fault]:
        token = self._peek()
        if token.type == "SEMICOLON":
            self._consume()
            return None
        if token.type in ("EOF", "ENDFOR"):
            return None
        if token.type == "ERROR":
            return self._fault(token.value, token)
        return self._fault(f"Unexpected '{token.value}' after statement", token)

    def _consume(self) -> Token:
        token = self._peek()
        self.index += 1
        return token

    def _match(self, token_type: str) -> bool:
        if self._peek().type == token_type:
            self.index += 1
            return True
        return False

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _peek_next(self) -> Token:
        if self.index + 1 < len(self.tokens):
            return self.tokens[self.index + 1]
        return self.tokens[-1]

    def _location_from_token(self, token: Token) -> SourceLocation:
        return SourceLocation(file=self.filename, line=token.line, column=token.column, statement=self.statement_text)

    def _fault(self, message: str, token: Token) -> Fault:
        return Fault(kind=ERR_SYNTAX, message=message, location=self._location_from_token(token))
