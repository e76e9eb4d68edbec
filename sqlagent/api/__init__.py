"""HTTP API for the SQL agent."""
