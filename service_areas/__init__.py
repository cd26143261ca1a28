"""
Service-area polygon resolution for the client dashboard.
"""

__version__ = "1.0.0"
