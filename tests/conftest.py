from typing import List, Tuple

import pytest

from interpreter import Environment, Interpreter, ZPMRuntimeError


def make_interpreter(source: str, output: List[str], verbose: bool = False) -> Interpreter:
    return Interpreter(source.splitlines(), filename="test.zpm", verbose=verbose, output_sink=output.append)


@pytest.fixture
def run_program():
    """Run ZPM source text and return (printed lines, final store)."""

    def _run(source: str) -> Tuple[List[str], Environment]:
        output: List[str] = []
        env = make_interpreter(source, output).run()
        return output, env

    return _run


@pytest.fixture
def run_failing():
    """Run ZPM source text that must halt; return (printed lines, error)."""

    def _run(source: str) -> Tuple[List[str], ZPMRuntimeError]:
        output: List[str] = []
        interpreter = make_interpreter(source, output)
        with pytest.raises(ZPMRuntimeError) as excinfo:
            interpreter.run()
        return output, excinfo.value

    return _run
