"""Ledger operations, one module per aggregate.

Every function takes the acting gym id explicitly and runs as one unit of work
on ``db.session``: it commits once at the end or raises before writing.
"""
