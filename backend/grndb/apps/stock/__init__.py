"""
Stock module.

Weighted-average material ledger and carton/piece finished-goods stock.
"""
