from lexer import ERR_SYNTAX, Lexer
from parser import Assignment, EndFor, Fault, ForHeader, Parser, PrintStatement


def parse(text, line=1, allow_for=True):
    tokens = Lexer(text, "test.zpm", line).tokenize()
    return Parser(tokens, "test.zpm", text).parse_line(allow_for=allow_for)


def test_simple_assignment():
    [statement] = parse('A = "hi" ;')
    assert isinstance(statement, Assignment)
    assert (statement.target, statement.operator, statement.expression) == ("A", "=", '"hi"')


def test_trailing_semicolon_is_optional():
    [statement] = parse("A += B")
    assert (statement.target, statement.operator, statement.expression) == ("A", "+=", "B")


def test_print_statement():
    [statement] = parse("PRINT X ;")
    assert isinstance(statement, PrintStatement)
    assert statement.name == "X"


def test_print_requires_a_name():
    result = parse("PRINT")
    assert isinstance(result, Fault)
    assert result.kind == ERR_SYNTAX
    assert isinstance(parse('PRINT "X"'), Fault)


def test_several_statements_on_one_line():
    statements = parse("A = 1 ; B = 2 ; PRINT A ;")
    assert [type(s) for s in statements] == [Assignment, Assignment, PrintStatement]


def test_statements_need_separators():
    result = parse("X = 1 2")
    assert isinstance(result, Fault)
    assert result.message == "Unexpected '2' after statement"


def test_missing_operator():
    result = parse("X 1")
    assert isinstance(result, Fault)
    assert result.message == "Invalid assignment statement for 'X'"


def test_reversed_operator_is_rejected():
    result = parse("X =+ 1 ;")
    assert isinstance(result, Fault)
    assert result.message == "Unexpected character '+'"


def test_single_line_for():
    [header] = parse("FOR 3 X = 1 ; X += 1 ; ENDFOR")
    assert isinstance(header, ForHeader)
    assert header.count == "3"
    assert header.closed
    assert [s.operator for s in header.body] == ["=", "+="]
    assert header.fault is None


def test_multi_line_for_header():
    [header] = parse("FOR 3")
    assert header.count == "3"
    assert header.body == []
    assert not header.closed


def test_for_header_keeps_bad_counts_for_later():
    assert parse("FOR abc")[0].count == "abc"
    assert parse("FOR -2")[0].count == "-2"
    assert parse("FOR")[0].count is None
    assert parse("FOR 2.5")[0].count == "2.5"
    assert parse("FOR 3x ; X = 1 ;")[0].count == "3x"


def test_for_count_may_be_followed_by_semicolon():
    [header] = parse("FOR 3;")
    assert header.count == "3"
    assert header.body == []
    assert not header.closed
    assert header.fault is None


def test_for_header_body_fault_is_deferred():
    [header] = parse("FOR 2 X = ; ENDFOR")
    assert isinstance(header, ForHeader)
    assert header.fault is not None
    assert header.fault.kind == ERR_SYNTAX


def test_text_after_endfor():
    [header] = parse("FOR 2 X = 1 ; ENDFOR X = 2")
    assert header.fault.message == "Unexpected tokens after ENDFOR"


def test_endfor_line():
    [statement] = parse("ENDFOR")
    assert isinstance(statement, EndFor)


def test_endfor_inside_statement_line():
    result = parse("X = 1 ; ENDFOR")
    assert isinstance(result, Fault)
    assert result.message == "ENDFOR without matching FOR"


def test_nested_for_is_rejected():
    result = parse("FOR 2", allow_for=False)
    assert isinstance(result, Fault)
    assert result.message == "Nested FOR loops are not supported"


def test_for_after_statement():
    result = parse("X = 1 ; FOR 2")
    assert isinstance(result, Fault)
    assert result.message == "FOR must start its own line"


def test_location_carries_line_and_text():
    [statement] = parse("  Y -= 4 ;".strip(), line=5)
    assert statement.location.line == 5
    assert statement.location.statement == "Y -= 4 ;"
    assert statement.location.file == "test.zpm"
