"""
Domain logic for place details: record shape, field handling and
cache reconciliation.
"""
