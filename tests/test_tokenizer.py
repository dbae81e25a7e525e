from mathquiz.services.tokenizer import is_number, tokenize


def test_tokenize_needs_no_spaces():
    assert tokenize("2+3*4") == ["2", "+", "3", "*", "4"]
    assert tokenize(" 2 +  3 ") == ["2", "+", "3"]


def test_tokenize_structures():
    assert tokenize("sqrt(16)") == ["sqrt", "(", "16", ")"]
    assert tokenize("{1/2}") == ["{", "1", "/", "2", "}"]
    assert tokenize("|-5|") == ["|", "-", "5", "|"]


def test_tokenize_decimals():
    assert tokenize(".5+1.25") == [".5", "+", "1.25"]


def test_tokenize_passes_unknown_symbols_through():
    assert tokenize("2 x 3") == ["2", "x", "3"]
    assert tokenize("2 # 3") == ["2", "#", "3"]
    assert tokenize("") == []


def test_is_number():
    assert is_number("12")
    assert is_number("1.5")
    assert is_number(".5")
    assert not is_number("1.")
    assert not is_number("inf")
    assert not is_number("nan")
    assert not is_number("-1")


def test_percent_and_of_shorthands():
    assert tokenize("50% of 80") == ["50", "/", "100", "*", "80"]
    assert tokenize("25 OF 4") == ["25", "*", "4"]
    assert tokenize("offset") == ["offset"]
