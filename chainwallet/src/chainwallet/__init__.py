"""
chainwallet - Ledger backends and wallet bridges for Block+ registration
"""

__version__ = "0.3.0"
