"""Microfinance ledger kernel: double-entry journals, account hierarchy, period closing."""
