"""
md2pdf - Markdown to PDF rendering service and CLI.
"""

__version__ = "0.1.0"
