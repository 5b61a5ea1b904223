"""
Registry Integration — Listing clients and the image transfer executor.
"""
