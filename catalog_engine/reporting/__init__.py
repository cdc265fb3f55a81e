"""Score and recommendation report exports (CSV, JSON, Parquet)."""
