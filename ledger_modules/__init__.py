"""
Business modules built on the ledger kernel.

- documents: Belege, invoices and orders with their booking lifecycle.
- reporting: trial balance, P&L, balance sheet, journal export, tax report.
"""
