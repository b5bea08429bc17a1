"""
Receiving module.

Goods receipts against purchase orders and job-work delivery challans:
pending quantities, receipt status, stock posting and source synchronisation.
"""
