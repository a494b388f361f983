from __future__ import annotations
import json
import collections
import re
import numpy as np
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence, Tuple, Union

from lexer import (
    ERR_INTERNAL,
    ERR_LOOP_COUNT,
    ERR_SYNTAX,
    ERR_TYPE,
    ERR_UNDEFINED,
    ERR_UNINITIALIZED,
    ERR_UNTERMINATED,
    Lexer,
    ZPMError,
)
from parser import (
    Assignment,
    EndFor,
    Fault,
    ForHeader,
    ParseResult,
    Parser,
    PrintStatement,
    SourceLocation,
    Statement,
)


TYPE_INT = "INT"
TYPE_STR = "STR"

INTEGER_PATTERN = re.compile(r"-?[0-9]+")

_INT32 = np.iinfo(np.int32)

# Steps kept for verbose error reports.
VERBOSE_HISTORY = 10000

# Compound operators backed by fixed-width integer arithmetic.
INT_OPERATORS: Dict[str, Callable[..., Any]] = {
    "+=": np.add,
    "-=": np.subtract,
    "*=": np.multiply,
}


@dataclass(frozen=True)
class Value:
    type: str
    value: Any

    def render(self) -> str:
        if self.type == TYPE_INT:
            return str(int(self.value))
        if self.type == TYPE_STR:
            return str(self.value)
        raise ValueError(f"Unknown value type {self.type!r}")


def parse_literal(token: str) -> Optional[Value]:
    """Return the Value a literal token encodes, or None for anything else.

    Text literals are quoted on both ends and keep their inner characters
    verbatim. Integer literals must fit in a signed 32-bit integer.
    """
    if len(token) >= 2 and token.startswith('"') and token.endswith('"'):
        return Value(TYPE_STR, token[1:-1])
    if INTEGER_PATTERN.fullmatch(token):
        number = int(token)
        if _INT32.min <= number <= _INT32.max:
            return Value(TYPE_INT, number)
    return None


def int32_apply(operator: str, left: int, right: int) -> int:
    operands = np.array([left, right], dtype=np.int32)
    with np.errstate(over="ignore"):
        result = INT_OPERATORS[operator](operands[:1], operands[1:])
    return int(result[0])


class ZPMRuntimeError(ZPMError):
    """Raised by Interpreter.run() when the program halts on a fault."""

    def __init__(
        self,
        message: str,
        *,
        kind: str = ERR_INTERNAL,
        location: Optional[SourceLocation] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.location = location
        self.step_index: Optional[int] = None

    @classmethod
    def from_fault(cls, fault: Fault) -> "ZPMRuntimeError":
        return cls(fault.message, kind=fault.kind, location=fault.location)

    @property
    def line(self) -> Optional[int]:
        return self.location.line if self.location else None

    def __str__(self) -> str:
        if self.location is None:
            return f"{self.kind}: {self.message}"
        return f"{self.kind}: {self.message}: line {self.location.line}"


@dataclass
class Environment:
    values: Dict[str, Value] = field(default_factory=dict)

    def set(self, name: str, value: Value) -> None:
        self.values[name] = value

    def get(self, name: str) -> Optional[Value]:
        return self.values.get(name)

    def has(self, name: str) -> bool:
        return name in self.values

    def snapshot(self) -> Dict[str, str]:
        def _render(val: Value) -> str:
            rendered = val.render()
            if len(rendered) > 80:
                rendered = rendered[:77] + "..."
            return f"{val.type}:{rendered}"

        return {k: _render(v) for k, v in self.values.items()}


@dataclass
class StateEntry:
    step_index: int
    state_id: str
    source_location: Optional[SourceLocation]
    statement: Optional[str]
    env_snapshot: Optional[Dict[str, str]]
    rewrite_record: Optional[Dict[str, Any]]


class StateLogger:
    def __init__(self, verbose: bool) -> None:
        self.verbose = verbose
        # Only the newest steps are kept; error reports need the failing one.
        self.entries: Deque[StateEntry] = collections.deque(maxlen=VERBOSE_HISTORY if verbose else 1)
        self.next_state_index = 0
        self.last_state_id = "seed"

    def record(
        self,
        *,
        location: Optional[SourceLocation],
        statement: Optional[str],
        rewrite_record: Optional[Dict[str, Any]] = None,
        env_snapshot: Optional[Dict[str, str]] = None,
    ) -> StateEntry:
        rewrite = {} if rewrite_record is None else rewrite_record
        if "from_state_id" not in rewrite:
            rewrite["from_state_id"] = self.last_state_id
        step_index = self.next_state_index
        state_id = f"s_{step_index:06d}"
        rewrite["to_state_id"] = state_id
        entry = StateEntry(
            step_index=step_index,
            state_id=state_id,
            source_location=location,
            statement=statement,
            env_snapshot=env_snapshot,
            rewrite_record=rewrite,
        )
        self.entries.append(entry)
        self.last_state_id = state_id
        self.next_state_index += 1
        return entry

    @property
    def last_entry(self) -> Optional[StateEntry]:
        return self.entries[-1] if self.entries else None


class Interpreter:
    def __init__(
        self,
        lines: Sequence[str],
        *,
        filename: str = "<string>",
        verbose: bool = False,
        output_sink: Optional[Callable[[str], None]] = None,
    ) -> None:
        # Line numbers count the trimmed, non-blank lines only.
        self.lines: List[str] = [line.strip() for line in lines if line.strip()]
        self.filename = filename
        self.verbose = verbose
        self.output_sink = output_sink or print
        self.env = Environment()
        self.logger = self._new_logger()

    def run(self) -> Environment:
        """Execute the whole program in a fresh variable store.

        Raises ZPMRuntimeError for the first fault; nothing after the failing
        statement is executed.
        """
        env = Environment()
        self.env = env
        self.logger = self._new_logger()
        try:
            fault = self._run_lines(env)
        except Exception as exc:
            last = self.logger.last_entry
            wrapped = ZPMRuntimeError(
                f"Internal interpreter error: {exc}",
                kind=ERR_INTERNAL,
                location=last.source_location if last else None,
            )
            wrapped.step_index = last.step_index if last else None
            raise wrapped from exc
        if fault is not None:
            error = ZPMRuntimeError.from_fault(fault)
            last = self.logger.last_entry
            # Syntax faults are found before their line ever logs a step.
            if last is not None and last.source_location is not None and fault.location is not None:
                if last.source_location.line == fault.location.line:
                    error.step_index = last.step_index
            raise error
        return env

    def _new_logger(self) -> StateLogger:
        logger = StateLogger(verbose=self.verbose)
        logger.record(location=None, statement="<seed>", rewrite_record={"rule": "SEED"})
        return logger

    def _run_lines(self, env: Environment) -> Optional[Fault]:
        index = 0
        lines = self.lines
        execute_stmt = self._execute_statement
        while index < len(lines):
            parsed = self._parse_line(index)
            if isinstance(parsed, Fault):
                return parsed
            if parsed and isinstance(parsed[0], ForHeader):
                index, fault = self._execute_for(parsed[0], index, env)
                if fault is not None:
                    return fault
                continue
            for statement in parsed:
                if isinstance(statement, EndFor):
                    return Fault(ERR_SYNTAX, "ENDFOR without matching FOR", statement.location)
                fault = execute_stmt(statement, env)
                if fault is not None:
                    return fault
            index += 1
        return None

    def _parse_line(self, index: int, *, allow_for: bool = True) -> ParseResult:
        text = self.lines[index]
        tokens = Lexer(text, self.filename, index + 1).tokenize()
        return Parser(tokens, self.filename, text).parse_line(allow_for=allow_for)

    def _execute_for(self, header: ForHeader, index: int, env: Environment) -> Tuple[int, Optional[Fault]]:
        """Run a FOR block starting at ``index``.

        Returns the index of the first line after the block together with the
        fault that stopped it, if any.
        """
        self._log_step(rule="FOR", location=header.location, env=env)
        count = self._loop_count(header)
        if isinstance(count, Fault):
            return index, count
        if header.fault is not None:
            return index, header.fault
        body: List[Statement] = list(header.body)
        if header.closed:
            next_index = index + 1
        else:
            end = self._find_endfor(index + 1)
            if end is None:
                return index, Fault(ERR_UNTERMINATED, "FOR without ENDFOR", header.location)
            for body_index in range(index + 1, end):
                parsed = self._parse_line(body_index, allow_for=False)
                if isinstance(parsed, Fault):
                    return body_index, parsed
                body.extend(parsed)
            next_index = end + 1

        execute_stmt = self._execute_statement
        for _ in range(count):
            for statement in body:
                fault = execute_stmt(statement, env)
                if fault is not None:
                    return next_index, fault
        return next_index, None

    def _loop_count(self, header: ForHeader) -> Union[int, Fault]:
        text = header.count
        if text is None:
            return Fault(ERR_LOOP_COUNT, "Missing loop count in FOR statement", header.location)
        if not INTEGER_PATTERN.fullmatch(text):
            return Fault(ERR_LOOP_COUNT, f"Invalid loop count '{text}' in FOR statement", header.location)
        count = int(text)
        if count <= 0 or count > _INT32.max:
            return Fault(ERR_LOOP_COUNT, f"Loop count should be a positive integer, got {text}", header.location)
        return count

    def _find_endfor(self, start: int) -> Optional[int]:
        for i in range(start, len(self.lines)):
            if self.lines[i] == "ENDFOR":
                return i
        return None

    def _execute_statement(self, statement: Statement, env: Environment) -> Optional[Fault]:
        self._log_step(rule=statement.__class__.__name__, location=statement.location, env=env)
        if isinstance(statement, Assignment):
            return self._execute_assignment(statement, env)
        if isinstance(statement, PrintStatement):
            return self._execute_print(statement, env)
        return Fault(ERR_SYNTAX, "Unsupported statement", statement.location)

    def _execute_assignment(self, statement: Assignment, env: Environment) -> Optional[Fault]:
        value = self._resolve(statement.expression, env, statement.location)
        if isinstance(value, Fault):
            return value
        if statement.operator == "=":
            env.set(statement.target, value)
            return None
        current = env.get(statement.target)
        if current is None:
            return Fault(
                ERR_UNINITIALIZED,
                f"Variable '{statement.target}' used with '{statement.operator}' before assignment",
                statement.location,
            )
        combined = self._combine(statement.operator, current, value, statement.location)
        if isinstance(combined, Fault):
            return combined
        env.set(statement.target, combined)
        return None

    def _combine(self, operator: str, current: Value, operand: Value, location: SourceLocation) -> Union[Value, Fault]:
        left, right = current.type, operand.type
        if operator == "+=":
            if left == TYPE_INT and right == TYPE_INT:
                return Value(TYPE_INT, int32_apply(operator, current.value, operand.value))
            if left == TYPE_STR and right == TYPE_STR:
                return Value(TYPE_STR, current.value + operand.value)
            if {left, right} == {TYPE_INT, TYPE_STR}:
                return Value(TYPE_STR, current.render() + operand.render())
        elif operator in ("-=", "*="):
            if left == TYPE_INT and right == TYPE_INT:
                return Value(TYPE_INT, int32_apply(operator, current.value, operand.value))
        else:
            return Fault(ERR_SYNTAX, f"Unknown operator '{operator}'", location)
        return Fault(ERR_TYPE, f"Operator '{operator}' cannot combine {left} and {right}", location)

    def _execute_print(self, statement: PrintStatement, env: Environment) -> Optional[Fault]:
        found = env.get(statement.name)
        if found is None:
            return Fault(ERR_UNDEFINED, f"Undefined variable '{statement.name}'", statement.location)
        self.output_sink(f"{statement.name}={found.render()}")
        return None

    def _resolve(self, token: str, env: Environment, location: SourceLocation) -> Union[Value, Fault]:
        literal = parse_literal(token)
        if literal is not None:
            return literal
        if INTEGER_PATTERN.fullmatch(token):
            return Fault(ERR_SYNTAX, f"Integer literal {token} does not fit in 32 bits", location)
        found = env.get(token)
        if found is not None:
            return found
        return Fault(ERR_UNDEFINED, f"Undefined variable '{token}'", location)

    def _log_step(self, *, rule: str, location: Optional[SourceLocation], env: Environment) -> None:
        env_snapshot = env.snapshot() if self.verbose else None
        statement = location.statement if location else None
        self.logger.record(
            location=location,
            statement=statement,
            env_snapshot=env_snapshot,
            rewrite_record={"rule": rule},
        )


class TracebackFormatter:
    def __init__(self, interpreter: Interpreter) -> None:
        self.interpreter = interpreter

    def _failing_entry(self, error: ZPMRuntimeError) -> Optional[StateEntry]:
        if error.step_index is None:
            return None
        for entry in reversed(self.interpreter.logger.entries):
            if entry.step_index == error.step_index:
                return entry
        return None

    def format_text(self, error: ZPMRuntimeError, verbose: bool) -> str:
        lines: List[str] = []
        if verbose:
            lines.append("Traceback (most recent call last):")
            location = error.location
            if location:
                lines.append(f"  File \"{location.file}\", line {location.line}")
                if location.statement:
                    lines.append(f"    {location.statement}")
            else:
                lines.append("  <unknown location>")
            entry = self._failing_entry(error)
            if entry:
                lines.append(f"    State log index: {entry.step_index}  State id: {entry.state_id}")
                if entry.env_snapshot is not None:
                    snapshot = ", ".join(f"{k}={v}" for k, v in entry.env_snapshot.items())
                    lines.append(f"    Env snapshot: {snapshot}")
        lines.append(str(error))
        return "\n".join(lines)

    def to_json(self, error: ZPMRuntimeError) -> str:
        frame: Dict[str, Any] = {"name": "<top-level>"}
        if error.location:
            frame["source_location"] = {
                "file": error.location.file,
                "line": error.location.line,
                "column": error.location.column,
                "statement": error.location.statement,
            }
        entry = self._failing_entry(error)
        if entry:
            frame["state_id"] = entry.state_id
            frame["step_index"] = entry.step_index
            if entry.env_snapshot is not None:
                frame["env_snapshot"] = entry.env_snapshot
            if entry.rewrite_record is not None:
                frame["rewrite_record"] = entry.rewrite_record
        data = {
            "error": {
                "type": error.kind,
                "message": error.message,
                "line": error.line,
                "failing_step_index": error.step_index,
            },
            "traceback": [frame],
        }
        return json.dumps(data, indent=2)
