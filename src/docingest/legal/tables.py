"""Parsing of table markup (CALS ``tgroup``/``entry`` or HTML ``tr``/``td``) in XML."""
from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from typing import Dict, Iterator, List, Optional, Tuple, Union

from docingest.ingest.normalization import collapse_whitespace

from .models import ParsedTable, TableCell, TableMetadata, TableRow

LOGGER = logging.getLogger(__name__)

_TABLE_TAG = "table"
_TITLE_TAGS = {"title", "caption"}
_GROUP_TAG = "tgroup"
_HEADER_SECTION = "thead"
_BODY_SECTIONS = {"tbody", "tfoot"}
_ROW_TAGS = {"row", "tr"}
_CELL_TAGS = {"entry", "td", "th"}

_TABLE_NUMBER_RE = re.compile(r"\d+\.\d+")
_REFERENCE_RE = re.compile(r"\b\d+\.\d+\b")
_DIGITS_RE = re.compile(r"\d+")


def local_name(tag: object) -> str:
    """Tag name without namespace; comments and processing instructions map to ''."""

    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1].lower()


def element_text(element: Optional[ET.Element]) -> str:
    if element is None:
        return ""
    return collapse_whitespace(" ".join(element.itertext()))


def iter_tables(root: ET.Element) -> Iterator[ET.Element]:
    """Yield every table-shaped subtree, whatever its nesting depth."""

    for element in root.iter():
        if local_name(element.tag) == _TABLE_TAG:
            yield element


class XMLTableParser:
    """Turn table markup into :class:`ParsedTable` objects."""

    def parse_xml(self, xml_content: Union[str, bytes]) -> List[ParsedTable]:
        try:
            root = ET.fromstring(xml_content)
        except ET.ParseError as error:
            LOGGER.error("Failed to parse XML document: %s", error)
            return []

        tables = [
            table
            for table in (self.parse_table_element(element) for element in iter_tables(root))
            if table is not None
        ]
        LOGGER.info("Found %s tables", len(tables))
        return tables

    def parse_table_element(self, element: ET.Element) -> Optional[ParsedTable]:
        """Parse one table subtree; malformed markup yields ``None`` instead of raising."""

        try:
            return self._parse_table(element)
        except (ValueError, TypeError) as error:
            LOGGER.warning("Skipping malformed table: %s", error)
            return None

    def _parse_table(self, element: ET.Element) -> ParsedTable:
        title_element = next(
            (child for child in element if local_name(child.tag) in _TITLE_TAGS), None
        )
        title = element_text(title_element) or "Untitled Table"
        number_match = _TABLE_NUMBER_RE.search(title)

        group = next((child for child in element if local_name(child.tag) == _GROUP_TAG), element)
        declared_columns = group.get("cols") or element.get("cols")
        total_columns = int(declared_columns) if declared_columns else 0
        column_numbers = self._column_numbers(group)

        header_elements, body_elements = self._collect_rows(group)
        if not header_elements and not body_elements:
            raise ValueError(f"table '{title}' has no rows")

        headers = [
            TableRow(cells=self._parse_cells(row, index, column_numbers), row_index=index, is_header=True)
            for index, row in enumerate(header_elements)
        ]
        data_rows: List[TableRow] = []
        article_references: Dict[str, None] = {}
        for offset, row in enumerate(body_elements):
            index = len(headers) + offset
            cells = self._parse_cells(row, index, column_numbers)
            data_rows.append(TableRow(cells=cells, row_index=index, is_header=False))
            for cell in cells:
                for reference in _REFERENCE_RE.findall(cell.value):
                    article_references.setdefault(reference, None)

        columns = [cell.value for cell in headers[0].cells if cell.value] if headers else []
        guessed_columns = max((len(row.cells) for row in headers + data_rows), default=0)
        if not columns:
            columns = [f"Column {i + 1}" for i in range(total_columns or guessed_columns)]
            resolved_columns = total_columns or guessed_columns
        else:
            resolved_columns = total_columns or len(columns)

        return ParsedTable(
            title=title,
            table_number=number_match.group(0) if number_match else None,
            columns=columns,
            headers=headers,
            data_rows=data_rows,
            metadata=TableMetadata(
                total_columns=resolved_columns,
                total_rows=len(headers) + len(data_rows),
                article_references=list(article_references),
            ),
        )

    @staticmethod
    def _collect_rows(group: ET.Element) -> Tuple[List[ET.Element], List[ET.Element]]:
        header_rows: List[ET.Element] = []
        body_rows: List[ET.Element] = []
        for child in group:
            name = local_name(child.tag)
            if name == _HEADER_SECTION:
                header_rows.extend(row for row in child if local_name(row.tag) in _ROW_TAGS)
            elif name in _BODY_SECTIONS:
                body_rows.extend(row for row in child if local_name(row.tag) in _ROW_TAGS)
            elif name in _ROW_TAGS:
                cell_names = [local_name(cell.tag) for cell in child if local_name(cell.tag) in _CELL_TAGS]
                # HTML tables without <thead> mark header rows with <th> only.
                if cell_names and all(cell == "th" for cell in cell_names) and not body_rows:
                    header_rows.append(child)
                else:
                    body_rows.append(child)
        return header_rows, body_rows

    @staticmethod
    def _column_numbers(group: ET.Element) -> Dict[str, int]:
        numbers: Dict[str, int] = {}
        specs = [child for child in group if local_name(child.tag) == "colspec"]
        for position, colspec in enumerate(specs, start=1):
            name = colspec.get("colname")
            if name:
                numbers[name] = int(colspec.get("colnum") or position)
        return numbers

    def _parse_cells(
        self, row: ET.Element, row_index: int, column_numbers: Dict[str, int]
    ) -> List[TableCell]:
        cells: List[TableCell] = []
        entries = [child for child in row if local_name(child.tag) in _CELL_TAGS]
        for col_index, entry in enumerate(entries):
            colspan = self._colspan(entry, column_numbers)
            rowspan = self._rowspan(entry)
            cells.append(
                TableCell(
                    value=element_text(entry),
                    col_index=col_index,
                    row_index=row_index,
                    colspan=colspan if colspan > 1 else None,
                    rowspan=rowspan if rowspan > 1 else None,
                )
            )
        return cells

    @staticmethod
    def _column_number(name: str, column_numbers: Dict[str, int]) -> int:
        if name in column_numbers:
            return column_numbers[name]
        digits = _DIGITS_RE.search(name)
        if digits is None:
            raise ValueError(f"cannot resolve column name '{name}'")
        return int(digits.group(0))

    def _colspan(self, entry: ET.Element, column_numbers: Dict[str, int]) -> int:
        start, end = entry.get("namest"), entry.get("nameend")
        if start and end:
            return self._column_number(end, column_numbers) - self._column_number(start, column_numbers) + 1
        return int(entry.get("colspan") or 1)

    @staticmethod
    def _rowspan(entry: ET.Element) -> int:
        more_rows = entry.get("morerows")
        if more_rows is not None:
            return int(more_rows) + 1
        return int(entry.get("rowspan") or 1)

    def table_to_markdown(self, table: ParsedTable, *, with_title: bool = True) -> str:
        """Render *table* as markdown: title, header rows, separator, one line per data row."""

        lines: List[str] = []
        if with_title and table.title:
            lines.append(f"# {table.title}")
            lines.append("")

        header_rows = [[cell.value for cell in row.cells] for row in table.headers]
        if not header_rows:
            header_rows = [list(table.columns)]
        width = max([len(row) for row in header_rows] + [len(table.columns), 1])
        for values in header_rows:
            lines.append(_markdown_row(values))
        lines.append(_markdown_row(["---"] * width))

        for row in table.data_rows:
            lines.append(_markdown_row([cell.value for cell in row.cells]))
        return "\n".join(lines)


def _markdown_row(values: List[str]) -> str:
    return "| " + " | ".join(value.replace("|", "\\|") for value in values) + " |"
