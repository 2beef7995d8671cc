"""Domain models, fiscal calendar, holiday rules and configuration validation."""
