from sheet_reconcile.cli import app

app()
