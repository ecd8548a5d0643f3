"""Resolution engine, conflict table, result graph and downloads."""
