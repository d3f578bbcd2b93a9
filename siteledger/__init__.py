"""
siteledger: site-ID allocation and site records for Form V-B energy reporting.
"""

__version__ = "0.1.0"
