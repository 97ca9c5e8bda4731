"""Point-of-sale checkout backend with Bakong settlement tracking."""

__version__ = "1.0.0"
