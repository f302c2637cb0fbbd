"""Shared fixtures: an in-memory Supabase double and generated SAFE templates."""
import io
import re
import uuid

import pytest
from docx import Document

from services.template_service import LocalTemplateStore, TEMPLATE_FILES

EMBED_PATTERN = re.compile(r'(\w+):(\w+)(?:!(\w+))?')


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Mimics the postgrest query builder for the calls the services make."""

    def __init__(self, db, table):
        self.db = db
        self.table_name = table
        self.mode = 'select'
        self.columns = '*'
        self.payload = None
        self.filters = []
        self.order_by = None

    def select(self, columns='*'):
        self.mode = 'select'
        self.columns = columns
        return self

    def insert(self, payload):
        self.mode = 'insert'
        self.payload = payload
        return self

    def update(self, payload):
        self.mode = 'update'
        self.payload = payload
        return self

    def upsert(self, payload):
        self.mode = 'upsert'
        self.payload = payload
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def _matches(self, row):
        return all(row.get(column) == value for column, value in self.filters)

    def _embed(self, row):
        result = dict(row)
        for alias, table, fk in EMBED_PATTERN.findall(self.columns):
            fk = fk or f"{alias}_id"
            target = next((r for r in self.db.tables[table] if r['id'] == row.get(fk)), None)
            result[alias] = dict(target) if target else None
        return result

    def execute(self):
        self.db.calls.append((self.table_name, self.mode))
        if (self.table_name, self.mode) in self.db.fail_on:
            raise Exception(f"simulated {self.mode} failure on {self.table_name}")

        rows = self.db.tables[self.table_name]
        if self.mode == 'select':
            data = [self._embed(row) for row in rows if self._matches(row)]
            if self.order_by:
                column, desc = self.order_by
                data.sort(key=lambda r: r.get(column) or '', reverse=desc)
            return FakeResponse(data)

        if self.mode == 'insert':
            row = dict(self.payload)
            row.setdefault('id', str(uuid.uuid4()))
            rows.append(row)
            return FakeResponse([dict(row)])

        if self.mode == 'update':
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(dict(row))
            return FakeResponse(updated)

        # upsert: merge-duplicates on the primary key
        existing = next((row for row in rows if row['id'] == self.payload['id']), None)
        if existing is None:
            existing = {}
            rows.append(existing)
        existing.update(self.payload)
        return FakeResponse([dict(existing)])


class FakeSupabase:
    def __init__(self):
        self.tables = {name: [] for name in ('users', 'funds', 'companies', 'investments')}
        self.fail_on = set()
        self.calls = []

    def table(self, name):
        return FakeQuery(self, name)

    def add(self, table, **row):
        row.setdefault('id', str(uuid.uuid4()))
        self.tables[table].append(row)
        return row


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeSupabase()
    for module in ('services.profile_service', 'services.entity_service', 'services.investment_service'):
        monkeypatch.setattr(f'{module}.get_supabase', lambda: db)
    return db


def build_template_bytes(title):
    """A small SAFE-like document using the real placeholder names."""
    doc = Document()
    doc.add_heading(title, level=1)
    doc.add_paragraph(
        "THIS CERTIFIES THAT in exchange for the payment by {investing_entity_name} "
        "(the \"Investor\") of ${purchase_amount} on or about {date}, "
        "{company_name}, a {state_of_incorporation} corporation, issues to the Investor the right"
    )
    doc.add_paragraph("The \"Post-Money Valuation Cap\" is ${valuation_cap}.")
    doc.add_paragraph("The \"Discount Rate\" is {discount}%.")

    # Placeholder split across runs, as Word does after edits
    split = doc.add_paragraph("Company address: ")
    split.add_run("{company_add")
    split.add_run("ress_1}")
    split.add_run(", {company_address_2}")

    table = doc.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "INVESTOR: {investing_entity_name}"
    table.cell(0, 1).text = "COMPANY: {company_name}"
    table.cell(1, 0).text = "By: {investor_name}\n{byline}\nTitle: {investor_title}\nEmail: {investor_email}\nAddress: {investor_address_1} {investor_address_2}"
    table.cell(1, 1).text = "By: {founder_name}\nTitle: {founder_title}\nEmail: {founder_email}"

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def template_dir(tmp_path):
    for investment_type, name in TEMPLATE_FILES.items():
        (tmp_path / name).write_bytes(build_template_bytes(f"SAFE ({investment_type})"))
    return tmp_path


@pytest.fixture
def template_store(template_dir):
    return LocalTemplateStore(template_dir)


def _document_text(content):
    doc = Document(io.BytesIO(content))
    parts = [p.text for p in doc.paragraphs]
    for table in doc.tables:
        for row in table.rows:
            for cell in row.cells:
                parts.append(cell.text)
    return "\n".join(parts)


@pytest.fixture
def docx_text():
    """All paragraph and table text of a rendered .docx"""
    return _document_text
