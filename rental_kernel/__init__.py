"""
Rental Kernel - escrowed rental agreement ledger.

A deterministic, auditable state machine for leased-property rentals with:
- Exact-payment activation and rent collection
- Late-fee enforcement on a fixed due-date grid
- Owner-controlled termination with deposit refund
- Append-only escrow entries and a hash-chained audit trail
"""

__version__ = "0.1.0"
