"""
Bank Notifications - ingestion pipeline for bank SMS/push messages
"""

__version__ = "1.0.0"
