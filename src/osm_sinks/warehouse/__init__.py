"""BigQuery sink with staged loads, generalized tables and dataset rotation."""
