"""
Domain records, result types and pure helpers for the store service.
"""
