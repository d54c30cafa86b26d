"""
Fills ``{{key}}`` placeholders in a .docx template with python-docx.

Placeholders with no value are left untouched so a reviewer can see which
questions were not generated. Text inside a paragraph is collapsed into
its first run when a substitution happens, because Word routinely splits
a placeholder across several runs.
"""

from __future__ import annotations

import logging
import re
from io import BytesIO
from pathlib import Path
from typing import Iterator, Mapping, Union

from docx import Document

from exceptions.exceptions import TemplateNotFoundError


logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")

_UNSAFE_FILENAME_RE = re.compile(r'[\\/:*?"<>|]+')


def sanitize_filename(name: str) -> str:
    return _UNSAFE_FILENAME_RE.sub("_", name or "").strip() or "Student"


def _iter_paragraphs(container) -> Iterator:
    for paragraph in container.paragraphs:
        yield paragraph
    for table in getattr(container, "tables", []):
        for row in table.rows:
            for cell in row.cells:
                yield from _iter_paragraphs(cell)


def _fill_paragraph(paragraph, values: Mapping[str, str]) -> int:
    original = paragraph.text
    if "{{" not in original:
        return 0

    count = 0

    def substitute(match: re.Match) -> str:
        nonlocal count
        key = match.group(1)
        if key not in values:
            return match.group(0)
        count += 1
        return str(values[key])

    filled = PLACEHOLDER_RE.sub(substitute, original)
    if count and paragraph.runs:
        paragraph.runs[0].text = filled
        for run in paragraph.runs[1:]:
            run.text = ""
    return count


def fill_template(template_path: Union[str, Path], values: Mapping[str, str]) -> bytes:
    """Render ``template_path`` with ``values`` and return the .docx bytes."""
    template_path = Path(template_path)
    if not template_path.is_file():
        raise TemplateNotFoundError(template_path)

    document = Document(str(template_path))
    replaced = 0
    for paragraph in _iter_paragraphs(document):
        replaced += _fill_paragraph(paragraph, values)
    for section in document.sections:
        for part in (section.header, section.footer):
            # Linked parts have no content of their own.
            if part.is_linked_to_previous:
                continue
            for paragraph in _iter_paragraphs(part):
                replaced += _fill_paragraph(paragraph, values)

    logger.info("[DOCX] filled %d placeholder(s) in %s", replaced, template_path.name)
    buffer = BytesIO()
    document.save(buffer)
    return buffer.getvalue()
