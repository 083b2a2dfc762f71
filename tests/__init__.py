"""Test suite package marker so shared helpers import as ``tests.*``."""
