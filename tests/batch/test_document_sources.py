"""Tests for the YAML document source used by the backfill script."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
import yaml

from ledger_batch.backfill import BackfillCoordinator
from ledger_batch.sources import InMemoryDocumentSource, YamlDocumentSource
from ledger_kernel.domain.events import PaymentDirection, PaymentMethod
from ledger_kernel.exceptions import ConfigurationError


def _write(tmp_path, data, name="export.yaml"):
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data))
    return path


@pytest.fixture
def export(tmp_path, organization_id):
    return _write(
        tmp_path,
        {
            "organization_id": str(organization_id),
            "invoices": [
                {
                    "id": str(uuid4()),
                    "date": "2023-05-01",
                    "grand_total": "1180.00",
                    "total_tax": "180.00",
                    "customer_id": str(uuid4()),
                },
            ],
            "purchases": [
                {"id": str(uuid4()), "date": "2023-04-15", "grand_total": 250},
            ],
            "payments": [
                {
                    "id": str(uuid4()),
                    "date": "2023-05-10",
                    "amount": "100.00",
                    "direction": "inflow",
                    "method": "bank",
                },
            ],
        },
    )


class TestYamlDocumentSource:

    def test_loads_all_sections(self, export, organization_id):
        source = YamlDocumentSource(export)

        invoices = source.invoices(organization_id)
        purchases = source.purchases(organization_id)
        payments = source.payments(organization_id)

        assert len(invoices) == len(purchases) == len(payments) == 1
        assert invoices[0].grand_total == Decimal("1180.00")
        assert invoices[0].organization_id == organization_id
        assert purchases[0].date == date(2023, 4, 15)
        assert payments[0].direction == PaymentDirection.INFLOW
        assert payments[0].method == PaymentMethod.BANK

    def test_record_organization_overrides_default(self, tmp_path, organization_id, other_organization_id):
        path = _write(
            tmp_path,
            {
                "organization_id": str(organization_id),
                "invoices": [
                    {"id": str(uuid4()), "date": "2023-01-01", "grand_total": 10},
                    {
                        "id": str(uuid4()),
                        "organization_id": str(other_organization_id),
                        "date": "2023-01-01",
                        "grand_total": 20,
                    },
                ],
            },
        )
        source = YamlDocumentSource(path)

        assert len(source.invoices(organization_id)) == 1
        assert len(source.invoices(other_organization_id)) == 1
        assert source.payments(organization_id) == []

    def test_malformed_record_names_location(self, tmp_path, organization_id):
        path = _write(
            tmp_path,
            {
                "organization_id": str(organization_id),
                "payments": [
                    {"id": str(uuid4()), "date": "2023-01-01", "amount": 5, "direction": "inflow"},
                    {"id": str(uuid4()), "date": "2023-01-01", "amount": 5, "direction": "up"},
                ],
            },
        )

        with pytest.raises(ConfigurationError) as exc_info:
            YamlDocumentSource(path)

        assert "payments[1]" in str(exc_info.value)
        assert exc_info.value.field == "direction"

    def test_missing_organization(self, tmp_path):
        path = _write(
            tmp_path,
            {"invoices": [{"id": str(uuid4()), "date": "2023-01-01", "grand_total": 1}]},
        )
        with pytest.raises(ConfigurationError) as exc_info:
            YamlDocumentSource(path)
        assert exc_info.value.field == "organization_id"

    def test_section_must_be_list(self, tmp_path):
        path = _write(tmp_path, {"invoices": {"id": "x"}})
        with pytest.raises(ConfigurationError):
            YamlDocumentSource(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            YamlDocumentSource(path)

    def test_empty_file(self, tmp_path, organization_id):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        source = YamlDocumentSource(path)
        assert source.invoices(organization_id) == []

    def test_backfill_from_yaml(self, session, export, deterministic_clock, postings, organization_id):
        result = BackfillCoordinator(
            session, YamlDocumentSource(export), clock=deterministic_clock
        ).run(organization_id)

        assert result.posted == 3
        assert postings.count_groups(organization_id) == 3


def test_in_memory_source_is_a_document_source(make_invoice, organization_id):
    source = InMemoryDocumentSource(invoices=[make_invoice()])
    assert len(source.invoices(organization_id)) == 1
    assert source.purchases(organization_id) == []
