"""
Warehouse: the back-office records that move stock.

Owns companies, items, receiving and dispatch documents and manual
adjustments. Every quantity change goes through ``warehouse.services``,
which posts to the stock ledger in the same transaction.
"""
