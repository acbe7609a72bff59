"""Command-line interface for ESS Broker."""
