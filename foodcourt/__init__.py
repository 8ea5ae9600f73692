"""Food-court order lifecycle core"""

__version__ = "1.0.0"
