"""Admin back-office data access."""
