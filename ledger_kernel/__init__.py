"""
Ledger Kernel

A multi-tenant double-entry ledger with:
- Balanced posting groups derived from invoices, purchases and payments
- Idempotent, atomic posting per source document
- Lazily created chart-of-accounts entries
- Statements derived on demand from immutable entries
"""

__version__ = "0.1.0"
