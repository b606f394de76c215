"""
Millstone HTTP API — framework-agnostic handlers over the ledger service.
"""
