"""
Ledger Kernel

Double-entry bookkeeping core for German small-business accounting:
- Append-only journal with strictly ordered entries
- Balanced postings in integer minor units
- Storno (reversal) instead of mutation
- Period locks
"""

__version__ = "0.1.0"
