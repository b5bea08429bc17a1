"""
Purchasing module.

Source documents that receipts are recorded against: purchase orders and
job-work delivery challans.
"""
