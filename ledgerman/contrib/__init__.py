"""Optional integrations for Ledgerman."""
