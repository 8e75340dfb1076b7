"""Shared fixtures: offline language-model fakes and an exact word counter."""
from __future__ import annotations

import asyncio
from typing import Callable, List, Optional

import pytest

from docingest.providers import LLMGenerationError, LLMProvider, reset_llm_provider_cache


class ScriptedProvider(LLMProvider):
    """Return a fixed response (or raise) and record every request."""

    def __init__(
        self,
        response: str = "",
        *,
        error: Optional[BaseException] = None,
        image_description: str = "A floor plan with three rooms.",
    ) -> None:
        self.response = response
        self.error = error
        self.image_description = image_description
        self.calls: List[dict] = []

    async def generate(self, system_prompt: str, user_prompt: str, temperature: float = 0.0) -> str:
        self.calls.append({"system": system_prompt, "user": user_prompt, "temperature": temperature})
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.response

    async def describe_image(self, image: bytes, instructions: str, mime_type: str = "image/png") -> str:
        self.calls.append({"image": len(image), "instructions": instructions, "mime_type": mime_type})
        if self.error is not None:
            raise self.error
        return self.image_description


def _word_count(text: str) -> int:
    return len(text.split())


@pytest.fixture(autouse=True)
def _offline_llm(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("LLM_PROVIDER", "mock")
    reset_llm_provider_cache()
    yield
    reset_llm_provider_cache()


@pytest.fixture()
def word_counter() -> Callable[[str], int]:
    """Whitespace token counter, so chunk arithmetic in tests is exact."""

    return _word_count


@pytest.fixture()
def scripted_provider() -> Callable[..., ScriptedProvider]:
    return ScriptedProvider


@pytest.fixture()
def failing_provider() -> ScriptedProvider:
    return ScriptedProvider(error=LLMGenerationError("model unavailable"))


@pytest.fixture(scope="session")
def encoding():
    """The real tokenizer; tests needing it are skipped when its data cannot be loaded."""

    from docingest.ingest.tokens import get_encoding

    try:
        return get_encoding()
    except Exception as exc:  # noqa: BLE001 - tokenizer data may need a download
        pytest.skip(f"tokenizer data unavailable: {exc}")


LEGAL_XML = """<?xml version="1.0" encoding="UTF-8"?>
<wetgeving>
  <hoofdstuk>
    <kop><label>Hoofdstuk</label><nr>4</nr><titel>Bruikbaarheid</titel></kop>
    <afdeling>
      <kop><label>Afdeling</label><nr>4.1</nr><titel>Verblijfsgebied</titel></kop>
      <artikel>
        <kop><label>Artikel</label><nr>4.162</nr><titel>Afmetingen</titel></kop>
        <lid>
          <lidnr>1</lidnr>
          <al>Een verblijfsgebied heeft de afmetingen aangegeven in tabel 4.162.</al>
        </lid>
        <table>
          <title>Tabel 4.162 Afmetingen verblijfsgebied</title>
          <tgroup cols="3">
            <colspec colname="c1"/><colspec colname="c2"/><colspec colname="c3"/>
            <thead>
              <row><entry>Gebruiksfunctie</entry><entry>Vloeroppervlakte [m2]</entry><entry>Hoogte [m]</entry></row>
            </thead>
            <tbody>
              <row><entry>woonwagen</entry><entry>18</entry><entry>2,2</entry></row>
              <row><entry>woonfunctie</entry><entry namest="c2" nameend="c3">zie artikel 4.163</entry></row>
              <row><entry morerows="1">kantoorfunctie</entry><entry>10</entry><entry>2,6</entry></row>
            </tbody>
          </tgroup>
        </table>
      </artikel>
      <artikel>
        <kop><label>Artikel</label><nr>4.163</nr><titel>Hoogte</titel></kop>
        <lid>
          <lidnr>1</lidnr>
          <al>Zie <extref>artikel 4.162</extref> voor de minimale hoogte.</al>
        </lid>
      </artikel>
    </afdeling>
  </hoofdstuk>
</wetgeving>
"""


@pytest.fixture()
def legal_xml() -> str:
    return LEGAL_XML
