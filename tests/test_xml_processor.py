import asyncio

import pytest

from docingest.errors import ExtractionFailed
from docingest.legal.assembler import StructureAwareChunkAssembler
from docingest.legal.enrichment import TableEnricher
from docingest.legal.structure import LegalStructureParser
from docingest.legal.xml_processor import LegalXMLProcessor

ENRICHMENT_RESPONSE = (
    "Voor de gebruiksfunctie woonwagen geldt volgens Tabel 4.162 een minimale vloeroppervlakte "
    "van 18 m2 en een minimale hoogte van 2,2 meter.\n"
    "Voor de woonfunctie verwijst Tabel 4.162 naar artikel 4.163.\n"
    "Voor de kantoorfunctie geldt volgens Tabel 4.162 een vloeroppervlakte van 10 m2 en een hoogte van 2,6 meter."
)


def _processor(provider, word_counter) -> LegalXMLProcessor:
    parser = LegalStructureParser()
    return LegalXMLProcessor(
        TableEnricher(provider, batch_delay=0),
        structure_parser=parser,
        assembler=StructureAwareChunkAssembler(parser, min_tokens=1, token_counter=word_counter),
    )


def test_render_produces_marker_text(legal_xml) -> None:
    text, tables = LegalXMLProcessor().render(legal_xml)

    blocks = text.split("\n\n")
    assert blocks[:4] == [
        "Hoofdstuk 4 Bruikbaarheid",
        "Afdeling 4.1 Verblijfsgebied",
        "Artikel 4.162 Afmetingen",
        "1. Een verblijfsgebied heeft de afmetingen aangegeven in tabel 4.162.",
    ]
    assert blocks[4].splitlines()[:2] == [
        "Tabel 4.162 Afmetingen verblijfsgebied",
        "| Gebruiksfunctie | Vloeroppervlakte [m2] | Hoogte [m] |",
    ]
    assert blocks[5:] == ["Artikel 4.163 Hoogte", "1. Zie artikel 4.162 voor de minimale hoogte."]
    assert [table.table_number for table in tables] == ["4.162"]


def test_process_keeps_article_and_enriched_table_together(legal_xml, scripted_provider, word_counter) -> None:
    provider = scripted_provider(ENRICHMENT_RESPONSE)

    extracted = asyncio.run(_processor(provider, word_counter).process(legal_xml, "bbl.xml"))

    metadata = extracted.metadata
    assert metadata.extraction_method == "legal-xml"
    assert metadata.warnings == []
    assert not metadata.enrichment_degraded
    chunks = metadata.enriched_chunks
    assert [chunk.structure_level for chunk in chunks] == ["hoofdstuk", "afdeling", "artikel", "artikel"]

    article = chunks[2]
    assert article.article_numbers == ("4.162",)
    assert article.table_names == ("4.162",)
    assert article.enriched_by_llm
    assert article.has_cross_reference
    assert "--- Tabel details ---" in article.text
    assert "# Tabel 4.162 Afmetingen verblijfsgebied" in article.text
    assert "woonwagen geldt volgens Tabel 4.162" in article.text
    assert len(provider.calls) == 1


def test_failed_enrichment_degrades_but_still_chunks(legal_xml, failing_provider, word_counter) -> None:
    extracted = asyncio.run(_processor(failing_provider, word_counter).process(legal_xml, "bbl.xml"))

    metadata = extracted.metadata
    assert metadata.enrichment_degraded
    assert metadata.warnings == [
        "Table enrichment degraded for 1 of 1 tables; fallback sentences were used"
    ]
    article = metadata.enriched_chunks[2]
    assert not article.enriched_by_llm
    assert "Tabel 4.162 contains the following information: woonwagen, 18, 2,2." in article.text


def test_unnumbered_tables_are_not_sent_for_enrichment(scripted_provider, word_counter) -> None:
    xml = """<regeling><artikel><kop><nr>1.1</nr><titel>Tarieven</titel></kop>
      <table><tr><th>Soort</th><th>Bedrag</th></tr><tr><td>Leges</td><td>25</td></tr></table>
    </artikel></regeling>"""
    provider = scripted_provider(ENRICHMENT_RESPONSE)

    extracted = asyncio.run(_processor(provider, word_counter).process(xml, "tarieven.xml"))

    assert provider.calls == []
    (chunk,) = extracted.metadata.enriched_chunks
    assert chunk.text.startswith("Artikel 1.1 Tarieven")
    assert "| Leges | 25 |" in chunk.text


def test_xml_without_structure_falls_back_to_standard_chunking(scripted_provider, word_counter) -> None:
    xml = "<notitie><p>Een korte notitie.</p><p>Nog een alinea.</p></notitie>"

    extracted = asyncio.run(_processor(scripted_provider(), word_counter).process(xml, "notitie.xml"))

    assert extracted.text == "Een korte notitie.\n\nNog een alinea."
    assert extracted.metadata.enriched_chunks is None
    assert extracted.metadata.warnings == [
        "No legal structure detected; falling back to standard chunking"
    ]


def test_malformed_xml_raises_extraction_failed() -> None:
    with pytest.raises(ExtractionFailed):
        LegalXMLProcessor().render("<wetgeving><artikel>")


def test_article_followed_by_its_table_is_one_chunk(scripted_provider, word_counter) -> None:
    xml = """<regeling>
      <artikel>
        <kop><label>Artikel</label><nr>4.162</nr><titel>Afmetingen</titel></kop>
        <lid><al>Een verblijfsgebied heeft de afmetingen uit tabel 4.162.</al></lid>
        <table>
          <title>Tabel 4.162</title>
          <tgroup cols="2"><tbody><row><entry>woonwagen</entry><entry>2,2</entry></row></tbody></tgroup>
        </table>
      </artikel>
    </regeling>"""
    parser = LegalStructureParser()
    processor = LegalXMLProcessor(
        TableEnricher(scripted_provider(ENRICHMENT_RESPONSE), batch_delay=0),
        structure_parser=parser,
        assembler=StructureAwareChunkAssembler(parser, token_counter=word_counter),
    )

    extracted = asyncio.run(processor.process(xml, "artikel.xml"))

    (chunk,) = extracted.metadata.enriched_chunks
    assert chunk.article_numbers == ("4.162",)
    assert chunk.table_names == ("4.162",)
    assert chunk.has_table
