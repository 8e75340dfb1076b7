from docingest.ingest.tokens import count_tokens, decode_tokens, tokenize


def test_blank_input_counts_as_zero_tokens() -> None:
    assert count_tokens("") == 0
    assert count_tokens("   \n\t ") == 0
    assert tokenize("") == []


def test_count_matches_tokenizer_output(encoding) -> None:
    text = "Een verblijfsgebied heeft een minimale hoogte van 2,6 meter."

    assert count_tokens(text) == len(encoding.encode(text))
    assert count_tokens(text) == count_tokens(text)
    assert decode_tokens(tokenize(text)) == text


def test_special_token_text_is_counted_as_plain_text(encoding) -> None:
    assert count_tokens("<|endoftext|>") > 0
