"""sheet-reconcile — Copy matching values between spreadsheets by identifier."""

__version__ = "0.2.0"

HEADER_ROW: int = 2
FIRST_DATA_ROW: int = 3
PROVENANCE_OFFSET: int = 3
