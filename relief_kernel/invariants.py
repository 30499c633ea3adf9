"""
Ledger invariants contract.

These invariants are structural. They hold for every item regardless of
settings, caller role or deployment database. This module declares them;
enforcement lives in the stock record store, the stock ledger service, the
request workflow, ORM listeners and database check constraints.
"""

from enum import Enum, unique


@unique
class LedgerInvariant(str, Enum):
    """Non-configurable guarantees of the stock ledger."""

    CONSERVATION = "conservation"
    """total_quantity equals provincial_quantity plus the sum of shelter
    quantities after every committed change. Recomputed by
    StockRecordStore.update before every flush."""

    NON_NEGATIVITY = "non_negativity"
    """No balance is ever negative. Checked by StockLedgerService before
    mutation and backed by CHECK constraints."""

    TRANSFER_NEUTRALITY = "transfer_neutrality"
    """A transfer redistributes stock between sides of one item and never
    changes its total."""

    AUDIT_COMPLETENESS = "audit_completeness"
    """Every successful mutation appends exactly one movement in the same
    database transaction as the balance change."""

    APPEND_ONLY_LEDGER = "append_only_ledger"
    """Movements are never updated or deleted. Enforced by ORM listeners
    (relief_kernel.db.immutability)."""

    REQUEST_LIFECYCLE = "request_lifecycle"
    """A request is reviewed at most once; approval applies every line's
    transfer or none of them."""

    SERIALIZED_RECORD_WRITES = "serialized_record_writes"
    """Read-modify-write on one stock record is serialized by a row lock
    and a version check; different records proceed in parallel."""


ALL_LEDGER_INVARIANTS: frozenset[LedgerInvariant] = frozenset(LedgerInvariant)

# Enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "relief_services",
    "relief_config",
)
