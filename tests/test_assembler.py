from docingest.legal.assembler import (
    TABLE_DETAILS_HEADING,
    TABLE_SUMMARY_HEADING,
    StructureAwareChunkAssembler,
    legal_chunk_fallback,
    pair_enriched_tables,
)
from docingest.legal.models import (
    EnrichedTable,
    EnrichmentOutcome,
    LegalChunk,
    ParsedTable,
    TableMetadata,
)
from docingest.legal.structure import LegalStructureParser

BOUWBESLUIT = """Hoofdstuk 4 Bruikbaarheid

Afdeling 4.1 Verblijfsgebied

Artikel 4.162 Afmetingen

1. Een verblijfsgebied heeft de afmetingen aangegeven in tabel 4.162.

Tabel 4.162 Afmetingen verblijfsgebied
| Gebruiksfunctie | Hoogte [m] |
| --- | --- |
| woonwagen | 2,2 |

Artikel 4.163 Hoogte

1. Zie artikel 4.162 voor de minimale hoogte."""


def _assembler(word_counter, **options) -> StructureAwareChunkAssembler:
    return StructureAwareChunkAssembler(token_counter=word_counter, **options)


def _enriched(
    number: str,
    outcome: EnrichmentOutcome = EnrichmentOutcome.ENRICHED,
    *,
    markdown: str = "| Gebruiksfunctie | Hoogte [m] |",
    sentences: tuple = ("Voor een woonwagen geldt volgens Tabel 4.162 een hoogte van 2,2 meter.",),
) -> EnrichedTable:
    table = ParsedTable(
        title=f"Tabel {number}",
        table_number=number,
        columns=["Gebruiksfunctie", "Hoogte [m]"],
        headers=[],
        data_rows=[],
        metadata=TableMetadata(total_columns=2, total_rows=2),
    )
    return EnrichedTable(
        original_table=table,
        synthetic_sentences=sentences,
        structured_data={},
        markdown=markdown,
        outcome=outcome,
    )


def test_small_section_is_kept_together_under_its_heading(word_counter) -> None:
    chunks = _assembler(word_counter).chunk(BOUWBESLUIT)

    assert len(chunks) == 2
    heading, section = chunks
    assert heading.text == "Hoofdstuk 4 Bruikbaarheid"
    assert heading.structure_level == "hoofdstuk"
    assert heading.parent_section is None

    assert section.structure_level == "afdeling"
    assert section.parent_section == "Afdeling 4.1 Verblijfsgebied"
    assert section.section_title == "Afdeling 4.1 Verblijfsgebied"
    assert section.article_numbers == ("4.162", "4.163")
    assert section.table_names == ("4.162",)
    assert section.has_table
    assert not section.has_cross_reference
    assert isinstance(section, LegalChunk)


def test_article_absorbs_its_table(word_counter) -> None:
    chunks = _assembler(word_counter, min_tokens=1).chunk(BOUWBESLUIT)

    assert [chunk.structure_level for chunk in chunks] == ["hoofdstuk", "afdeling", "artikel", "artikel"]
    article = chunks[2]
    assert article.text.startswith("Artikel 4.162 Afmetingen")
    assert article.text.endswith("| woonwagen | 2,2 |")
    assert article.article_numbers == ("4.162",)
    assert article.table_names == ("4.162",)
    assert article.has_table
    assert not article.has_cross_reference
    assert BOUWBESLUIT[article.start_char : article.end_char] == article.text
    assert [chunk.index for chunk in chunks] == [0, 1, 2, 3]


def test_reference_to_another_article_is_flagged(word_counter) -> None:
    chunks = _assembler(word_counter, min_tokens=1).chunk(BOUWBESLUIT)

    last = chunks[3]
    assert last.article_numbers == ("4.163",)
    assert last.has_cross_reference
    assert not last.has_table
    assert last.parent_section == "Afdeling 4.1 Verblijfsgebied"


def test_enriched_table_content_replaces_raw_table(word_counter) -> None:
    parser = LegalStructureParser()
    assembler = _assembler(word_counter, min_tokens=1)

    chunks = assembler.create_chunks(parser.parse_structure(BOUWBESLUIT), [_enriched("4.162")])

    article = chunks[2]
    assert f"{TABLE_DETAILS_HEADING}\n\n| Gebruiksfunctie | Hoogte [m] |" in article.text
    assert article.text.endswith(
        f"{TABLE_SUMMARY_HEADING}\n\n- "
        "Voor een woonwagen geldt volgens Tabel 4.162 een hoogte van 2,2 meter."
    )
    assert "Tabel 4.162 Afmetingen verblijfsgebied\n\n" in article.text
    assert article.enriched_by_llm
    assert article.table_names == ("4.162",)
    assert not chunks[3].enriched_by_llm


def test_fallback_enrichment_is_not_reported_as_model_output(word_counter) -> None:
    parser = LegalStructureParser()
    fallback = _enriched("4.162", EnrichmentOutcome.FALLBACK)

    chunks = _assembler(word_counter, min_tokens=1).create_chunks(
        parser.parse_structure(BOUWBESLUIT), [fallback]
    )

    assert TABLE_SUMMARY_HEADING in chunks[2].text
    assert not chunks[2].enriched_by_llm


def test_merging_stops_at_chapter_boundaries(word_counter) -> None:
    text = (
        "Hoofdstuk 1 Begin\n\nArtikel 1.1 Eerste\n\nArtikel 1.2 Tweede\n\n"
        "Hoofdstuk 2 Vervolg\n\nArtikel 2.1 Derde"
    )

    chunks = _assembler(word_counter).chunk(text)

    assert [chunk.article_numbers for chunk in chunks] == [("1.1", "1.2"), ("2.1",)]
    assert [chunk.structure_level for chunk in chunks] == ["hoofdstuk", "hoofdstuk"]


def test_chapter_heading_resets_parent_section(word_counter) -> None:
    text = "Afdeling 1.1 Eerste\n\nArtikel 1.1 a b\n\nHoofdstuk 2 Twee\n\nArtikel 2.1 c d"

    chunks = _assembler(word_counter, min_tokens=1).chunk(text)

    assert [chunk.parent_section for chunk in chunks] == [
        "Afdeling 1.1 Eerste",
        "Afdeling 1.1 Eerste",
        None,
        None,
    ]


def test_merging_never_exceeds_the_ceiling(word_counter) -> None:
    body = "een twee drie vier vijf zes zeven acht"
    text = "\n\n".join(f"Artikel 1.{n} Titel\n\n{body}" for n in range(1, 4))

    chunks = _assembler(word_counter, min_tokens=50, max_tokens=30).chunk(text)

    assert [chunk.article_numbers for chunk in chunks] == [("1.1", "1.2"), ("1.3",)]
    assert all(chunk.token_count <= 30 for chunk in chunks)


def test_table_too_large_for_its_article_is_emitted_separately(word_counter) -> None:
    rows = "\n".join(f"| rij{n} | {n} |" for n in range(3))
    text = f"Artikel 3.1 Kort\n\nZie de tabel.\n\nTabel 3.1 Groot\n{rows}"

    chunks = _assembler(word_counter, min_tokens=1, max_tokens=20).chunk(text)

    assert [chunk.structure_level for chunk in chunks] == ["artikel", "tabel"]
    assert chunks[1].table_names == ("3.1",)
    assert not chunks[0].has_table


def test_oversized_article_is_split_below_the_ceiling(word_counter) -> None:
    paragraphs = [" ".join(f"woord{p}x{w}" for w in range(20)) + "." for p in range(3)]
    text = "Artikel 9.1 Lang\n\n" + "\n\n".join(paragraphs)

    chunks = _assembler(word_counter, max_tokens=25).chunk(text)

    assert len(chunks) == 3
    assert [chunk.index for chunk in chunks] == [0, 1, 2]
    assert all(chunk.token_count <= 25 for chunk in chunks)
    assert chunks[0].article_numbers == ("9.1",)
    assert chunks[1].article_numbers == ()
    assert all(chunk.structure_level == "artikel" for chunk in chunks)
    for chunk in chunks:
        assert text[chunk.start_char : chunk.end_char] == chunk.text


def test_unstructured_text_is_packed_by_paragraph(word_counter) -> None:
    text = "Gewone tekst zonder koppen, zie artikel 3.4.\n\n" + " ".join(["woord"] * 12)

    chunks = _assembler(word_counter, max_tokens=10).chunk(text)

    assert len(chunks) == 2
    assert all(chunk.structure_level == "text" for chunk in chunks)
    assert chunks[0].has_cross_reference
    assert chunks[0].article_numbers == ()


def test_legal_chunk_fallback_wraps_plain_chunks(word_counter) -> None:
    chunks = legal_chunk_fallback("Eerste alinea.\n\nTweede alinea.", max_tokens=2, token_counter=word_counter)

    assert [chunk.text for chunk in chunks] == ["Eerste alinea.", "Tweede alinea."]
    assert [chunk.start_char for chunk in chunks] == [0, 16]
    assert all(isinstance(chunk, LegalChunk) for chunk in chunks)
    assert legal_chunk_fallback("", token_counter=word_counter) == []


LEGES = """Artikel 1.1 Leges

1. De leges staan in tabel 1.1.

Tabel 1.1 Tarieven
| Soort | Bedrag |
| --- | --- |
| alpha | 1 |

Tabel 1.1 (vervolg)
| Soort | Bedrag |
| --- | --- |
| omega | 2 |"""


def test_tables_sharing_a_number_keep_their_own_content(word_counter) -> None:
    parser = LegalStructureParser()
    first = _enriched("1.1", markdown="| alpha | 1 |", sentences=("Alpha kost 1 euro.",))
    continuation = _enriched("1.1", markdown="| omega | 2 |", sentences=("Omega kost 2 euro.",))

    chunks = _assembler(word_counter, min_tokens=1).create_chunks(
        parser.parse_structure(LEGES), [first, continuation]
    )

    assert len(chunks) == 2
    assert "| alpha | 1 |" in chunks[0].text
    assert "Alpha kost 1 euro." in chunks[0].text
    assert "| omega | 2 |" in chunks[1].text
    assert "Omega kost 2 euro." in chunks[1].text
    assert "alpha" not in chunks[1].text


def test_pair_enriched_tables_matches_in_document_order() -> None:
    elements = LegalStructureParser().parse_structure(LEGES)
    first, continuation, extra = _enriched("1.1"), _enriched("1.1"), _enriched("1.1")

    paired = pair_enriched_tables(elements, [first, continuation, extra])

    assert [element.identifier for element in elements] == ["1.1", "1.1", "1.1"]
    assert paired[1] is first
    assert paired[2] is continuation
    assert 0 not in paired
    assert pair_enriched_tables(elements, [_enriched("9.9")]) == {}


def test_sentence_opening_with_an_article_is_not_a_heading(word_counter) -> None:
    parser = LegalStructureParser()
    table = _enriched("4.162", sentences=("Artikel 4.163 is ook van toepassing op een woonwagen.",))

    chunks = _assembler(word_counter, min_tokens=1).create_chunks(
        parser.parse_structure(BOUWBESLUIT), [table]
    )

    article = chunks[2]
    assert "- Artikel 4.163 is ook van toepassing" in article.text
    assert article.article_numbers == ("4.162",)
    assert article.has_cross_reference
