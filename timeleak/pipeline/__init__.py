"""
Usage pipeline: event reconciliation feeding daily aggregation.
"""
