"""
Relief Kernel - stock ledger for provincial disaster-relief logistics.

Tracks relief supplies held in the provincial pool and at shelters with:
- Conserved, non-negative balances per item
- Append-only movement ledger for every quantity change
- Row-locked, version-checked read-modify-write per stock record
- Replenishment request workflow with all-or-nothing approval
"""

__version__ = "0.1.0"
