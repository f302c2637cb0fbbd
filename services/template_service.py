"""
SAFE Template Rendering Service

Fills one of the three YC Post-Money SAFE Word templates with the values
produced by the field mapper. Uses python-docx to edit the template in
place, so the output keeps the template's structure and formatting and only
the placeholder text changes.

Templates use single-brace placeholders, e.g. {company_name}.
"""

import io
import os
import re
import zipfile
from pathlib import Path
from typing import Dict, Optional

import requests
from docx import Document
from docx.opc.exceptions import PackageNotFoundError

from config.database import get_supabase, get_supabase_admin
from services.errors import TemplateCorrupt, TemplateUnavailable, UnknownTemplateType
from services.models import RenderedDocument
from utils.logger import log_debug, log_error, log_info, log_warning

TEMPLATE_FILES = {
    'valuation-cap': 'SAFE-Valuation-Cap.docx',
    'discount': 'SAFE-Discount.docx',
    'mfn': 'SAFE-MFN.docx',
}

DOWNLOAD_FILENAMES = {
    'valuation-cap': 'YC-SAFE-Valuation-Cap.docx',
    'discount': 'YC-SAFE-Discount.docx',
    'mfn': 'YC-SAFE-MFN.docx',
}

PLACEHOLDER_PATTERN = re.compile(r'\{([A-Za-z0-9_]+)\}')


def select_template(investment_type: str) -> str:
    """Template file name for an investment type."""
    if investment_type not in TEMPLATE_FILES:
        raise UnknownTemplateType(investment_type)
    return TEMPLATE_FILES[investment_type]


def download_filename(investment_type: str) -> str:
    if investment_type not in DOWNLOAD_FILENAMES:
        raise UnknownTemplateType(investment_type)
    return DOWNLOAD_FILENAMES[investment_type]


# ============================================================================
# Template stores
# ============================================================================

class LocalTemplateStore:
    """Templates in a directory on disk"""

    def __init__(self, directory):
        self.directory = Path(directory)

    def fetch(self, name: str) -> bytes:
        path = self.directory / name
        try:
            return path.read_bytes()
        except OSError as e:
            raise TemplateUnavailable(name, str(e))


class StorageTemplateStore:
    """Templates in a Supabase Storage bucket"""

    def __init__(self, bucket: str, client=None):
        self.bucket = bucket
        self.client = client

    def fetch(self, name: str) -> bytes:
        client = self.client or get_supabase_admin() or get_supabase()
        try:
            data = client.storage.from_(self.bucket).download(name)
        except Exception as e:
            raise TemplateUnavailable(name, str(e))
        if not data:
            raise TemplateUnavailable(name, "empty response from storage")
        return data


class HttpTemplateStore:
    """Templates served as static files, e.g. from the front end's public directory"""

    def __init__(self, base_url: str, timeout: float = 10):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    def fetch(self, name: str) -> bytes:
        url = f"{self.base_url}/{name}"
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise TemplateUnavailable(name, str(e))
        return response.content


def get_template_store():
    """Template store selected by SAFE_TEMPLATE_SOURCE (local, storage or http)"""
    source = os.environ.get('SAFE_TEMPLATE_SOURCE', 'local').lower()
    if source == 'storage':
        return StorageTemplateStore(os.environ.get('SAFE_TEMPLATE_BUCKET', 'safe-templates'))
    if source == 'http':
        base_url = os.environ.get('SAFE_TEMPLATE_URL')
        if not base_url:
            raise ValueError("SAFE_TEMPLATE_URL must be set when SAFE_TEMPLATE_SOURCE=http")
        return HttpTemplateStore(base_url)
    return LocalTemplateStore(os.environ.get('SAFE_TEMPLATE_DIR', 'static'))


# ============================================================================
# Placeholder substitution
# ============================================================================

def _replace_in_paragraph(paragraph, fields: Dict[str, str], unknown: Optional[set] = None) -> int:
    """
    Replace {placeholders} in a paragraph. Word often splits a placeholder
    over several runs; the value goes into the first run and the rest of the
    tag is removed from the following runs.
    """
    replaced = 0
    pos = 0
    while True:
        runs = paragraph.runs
        full_text = ''.join(run.text for run in runs)
        match = PLACEHOLDER_PATTERN.search(full_text, pos)
        if not match:
            return replaced
        key = match.group(1)
        if key not in fields:
            if unknown is not None:
                unknown.add(key)
            pos = match.end()
            continue

        value = fields[key]
        start, end = match.span()
        offset = 0
        first_run_done = False
        for run in runs:
            text = run.text
            run_start, run_end = offset, offset + len(text)
            offset = run_end
            if run_end <= start or run_start >= end:
                continue
            if not first_run_done:
                head = text[:start - run_start]
                tail = text[end - run_start:] if end <= run_end else ''
                run.text = head + value + tail
                first_run_done = True
            else:
                run.text = text[end - run_start:] if end < run_end else ''

        replaced += 1
        pos = start + len(value)


def _iter_block_paragraphs(container, seen_cells):
    """Paragraphs of a document body, header, footer or table cell, tables included."""
    for paragraph in container.paragraphs:
        yield paragraph
    for table in container.tables:
        for row in table.rows:
            for cell in row.cells:
                # Merged cells are reported once per grid column
                if id(cell._tc) in seen_cells:
                    continue
                seen_cells.add(id(cell._tc))
                yield from _iter_block_paragraphs(cell, seen_cells)


def _iter_all_paragraphs(doc):
    seen_cells = set()
    yield from _iter_block_paragraphs(doc, seen_cells)
    for section in doc.sections:
        for part in (section.header, section.first_page_header, section.even_page_header,
                     section.footer, section.first_page_footer, section.even_page_footer):
            if part.is_linked_to_previous:
                continue
            yield from _iter_block_paragraphs(part, seen_cells)


def fill_template(template_bytes: bytes, fields: Dict[str, str], template_name: str = 'template') -> bytes:
    """Substitute fields into template bytes and return the new document bytes."""
    try:
        doc = Document(io.BytesIO(template_bytes))
    except (zipfile.BadZipFile, PackageNotFoundError, KeyError, ValueError, SyntaxError) as e:
        raise TemplateCorrupt(template_name, str(e))

    replaced = 0
    unknown = set()
    for paragraph in _iter_all_paragraphs(doc):
        replaced += _replace_in_paragraph(paragraph, fields, unknown)
    if unknown:
        log_warning(f"{template_name} has placeholders with no value: {', '.join(sorted(unknown))}", component='templates')
    log_info(f"Filled {replaced} placeholders in {template_name}", component='templates')

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def render(investment_type: str, fields: Dict[str, str], store=None) -> RenderedDocument:
    """
    Render a SAFE for an investment type.

    Args:
        investment_type: 'valuation-cap', 'discount' or 'mfn'
        fields: complete placeholder map from the field mapper
        store: template store (defaults to get_template_store())

    Returns:
        RenderedDocument with the .docx bytes and the download filename
    """
    template_name = select_template(investment_type)
    store = store or get_template_store()

    try:
        template_bytes = store.fetch(template_name)
    except TemplateUnavailable as e:
        log_error(f"Failed to fetch SAFE template {template_name}", e, component='templates')
        raise

    log_debug(f"Fetched {template_name} ({len(template_bytes)} bytes) from {type(store).__name__}", component='templates')
    content = fill_template(template_bytes, fields, template_name)
    return RenderedDocument(
        content=content,
        filename=download_filename(investment_type),
        template_name=template_name,
        fields=dict(fields),
    )


def render_to_file(investment_type: str, fields: Dict[str, str], output_dir, store=None) -> Path:
    """Render and write the SAFE under output_dir with its download filename."""
    document = render(investment_type, fields, store=store)
    path = Path(output_dir) / document.filename
    path.write_bytes(document.content)
    return path
