from lexer import Lexer


def kinds(text):
    return [(t.type, t.value) for t in Lexer(text, "test.zpm").tokenize()]


def test_assignment_tokens():
    assert kinds("X = 12 ;") == [
        ("IDENT", "X"),
        ("OPERATOR", "="),
        ("NUMBER", "12"),
        ("SEMICOLON", ";"),
        ("EOF", ""),
    ]


def test_compound_operators_use_maximal_munch():
    assert kinds("A += 1")[1] == ("OPERATOR", "+=")
    assert kinds("A -= 1")[1] == ("OPERATOR", "-=")
    assert kinds("A *= 1")[1] == ("OPERATOR", "*=")


def test_negative_number_after_operator():
    assert kinds("A -= -5")[1:3] == [("OPERATOR", "-="), ("NUMBER", "-5")]
    assert kinds("A=-5")[1:3] == [("OPERATOR", "="), ("NUMBER", "-5")]


def test_reversed_operator_is_an_error():
    tokens = Lexer("X =+ 1", "test.zpm").tokenize()
    assert [t.type for t in tokens] == ["IDENT", "OPERATOR", "ERROR", "EOF"]
    assert tokens[2].value == "Unexpected character '+'"


def test_string_keeps_quotes_and_inner_text():
    tokens = Lexer('S = "hello; world " ;', "test.zpm").tokenize()
    assert tokens[2].type == "STRING"
    assert tokens[2].value == '"hello; world "'
    assert tokens[3].type == "SEMICOLON"


def test_unterminated_string():
    tokens = Lexer('S = "abc', "test.zpm").tokenize()
    assert tokens[2].type == "ERROR"
    assert tokens[2].value == "Unterminated string literal"


def test_keywords_are_case_sensitive():
    assert kinds("PRINT X")[0] == ("PRINT", "PRINT")
    assert kinds("print X")[0] == ("IDENT", "print")
    assert [t for t, _ in kinds("FOR 3 ENDFOR")] == ["FOR", "NUMBER", "ENDFOR", "EOF"]


def test_malformed_number():
    assert kinds("X = 12AB")[2][0] == "ERROR"


def test_unexpected_character():
    assert kinds("X = 1 / 2")[3] == ("ERROR", "Unexpected character '/'")


def test_positions():
    tokens = Lexer("AB = 1", "test.zpm", 7).tokenize()
    assert all(t.line == 7 for t in tokens)
    assert [t.column for t in tokens[:3]] == [1, 4, 6]


def test_string_with_inner_quotes():
    tokens = Lexer('S = "say "hi"" ;', "test.zpm").tokenize()
    assert [t.type for t in tokens] == ["IDENT", "OPERATOR", "STRING", "SEMICOLON", "EOF"]
    assert tokens[2].value == '"say "hi""'


def test_strings_end_at_statement_boundary():
    assert [v for t, v in kinds('A = "x" ; B = "y"') if t == "STRING"] == ['"x"', '"y"']
    assert kinds('FOR 2 S += "a"b" ENDFOR')[4:6] == [("STRING", '"a"b"'), ("ENDFOR", "ENDFOR")]


def test_unclosed_string_uses_last_quote():
    assert kinds('S = "a"b" c')[2] == ("STRING", '"a"b"')


def test_fractional_number_is_an_error():
    assert kinds("X = 2.5")[2] == ("ERROR", "Malformed token starting with '2'")
    assert kinds("X = 3;")[2:4] == [("NUMBER", "3"), ("SEMICOLON", ";")]
