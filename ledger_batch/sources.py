"""
Historical document sources for backfill.

A source yields the validated event records of one organization, per
document kind.  ``InMemoryDocumentSource`` serves tests and callers that
already hold the documents; ``YamlDocumentSource`` reads an export file::

    organization_id: 6f1c...          # default for records without one
    invoices:
      - {id: ..., date: 2024-01-15, grand_total: "1180.00", total_tax: "180.00"}
    purchases:
      - {id: ..., date: 2024-01-16, grand_total: "5000.00", supplier_id: ...}
    payments:
      - {id: ..., date: 2024-01-20, amount: "500.00", direction: inflow,
         method: cash, customer_id: ..., status: completed}

The whole file is validated on load; a malformed record raises
ConfigurationError naming its position.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Protocol, runtime_checkable
from uuid import UUID

import yaml

from ledger_kernel.domain.events import InvoiceEvent, PaymentEvent, PurchaseEvent
from ledger_kernel.exceptions import ConfigurationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("batch.sources")


@runtime_checkable
class DocumentSource(Protocol):
    def invoices(self, organization_id: UUID) -> Iterable[InvoiceEvent]:
        ...

    def purchases(self, organization_id: UUID) -> Iterable[PurchaseEvent]:
        ...

    def payments(self, organization_id: UUID) -> Iterable[PaymentEvent]:
        ...


class InMemoryDocumentSource:
    """Documents held in memory, filtered per organization on read."""

    def __init__(
        self,
        invoices: Iterable[InvoiceEvent] = (),
        purchases: Iterable[PurchaseEvent] = (),
        payments: Iterable[PaymentEvent] = (),
    ):
        self._invoices = list(invoices)
        self._purchases = list(purchases)
        self._payments = list(payments)

    def invoices(self, organization_id: UUID) -> list[InvoiceEvent]:
        return [d for d in self._invoices if d.organization_id == organization_id]

    def purchases(self, organization_id: UUID) -> list[PurchaseEvent]:
        return [d for d in self._purchases if d.organization_id == organization_id]

    def payments(self, organization_id: UUID) -> list[PaymentEvent]:
        return [d for d in self._payments if d.organization_id == organization_id]


class YamlDocumentSource(InMemoryDocumentSource):
    """Documents loaded from a YAML export file."""

    _SECTIONS = (
        ("invoices", InvoiceEvent),
        ("purchases", PurchaseEvent),
        ("payments", PaymentEvent),
    )

    def __init__(self, path: str | Path):
        self.path = Path(path)
        with open(self.path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"{self.path}: top level must be a mapping")

        default_org = data.get("organization_id")
        loaded: dict[str, list] = {}
        for section, event_cls in self._SECTIONS:
            records = data.get(section) or []
            if not isinstance(records, list):
                raise ConfigurationError(
                    f"{self.path}: '{section}' must be a list", field=section
                )
            loaded[section] = [
                self._parse(event_cls, section, index, record, default_org)
                for index, record in enumerate(records)
            ]

        super().__init__(
            invoices=loaded["invoices"],
            purchases=loaded["purchases"],
            payments=loaded["payments"],
        )
        logger.info(
            "document_source_loaded",
            extra={
                "path": str(self.path),
                "invoice_count": len(loaded["invoices"]),
                "purchase_count": len(loaded["purchases"]),
                "payment_count": len(loaded["payments"]),
            },
        )

    def _parse(self, event_cls, section: str, index: int, record: Any, default_org):
        if not isinstance(record, dict):
            raise ConfigurationError(
                f"{self.path}: {section}[{index}] must be a mapping", field=section
            )
        record = dict(record)
        if record.get("organization_id") is None:
            record["organization_id"] = default_org
        try:
            return event_cls.from_mapping(record)
        except ConfigurationError as exc:
            raise ConfigurationError(
                f"{self.path}: {section}[{index}]: {exc}", field=exc.field
            ) from exc
