"""
Keeps a live server pool in sync with a SIP008 online config URL.
"""

__version__ = "0.3.0"
USER_AGENT = f"serverloader/{__version__}"
