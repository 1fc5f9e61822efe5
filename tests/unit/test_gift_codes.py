from techdeputies.utils.gift_codes import CODE_ALPHABET, CODE_LENGTH, format_code, generate_code, normalize_code


def test_generate_code_uses_unambiguous_alphabet():
    for _ in range(20):
        code = generate_code()
        assert len(code) == CODE_LENGTH
        assert set(code) <= set(CODE_ALPHABET)
        assert not set(code) & {"0", "O", "1", "I"}


def test_normalize_strips_dashes_spaces_and_case():
    assert normalize_code("abcd-efgh jkln-mpqr") == "ABCDEFGHJKLNMPQR"
    assert normalize_code("") == ""
    assert normalize_code(None) == ""


def test_format_groups_in_fours():
    assert format_code("ABCDEFGHJKLMNPQR") == "ABCD-EFGH-JKLM-NPQR"
    # already formatted input is idempotent
    assert format_code("abcd-efgh-jklm-npqr") == "ABCD-EFGH-JKLM-NPQR"
