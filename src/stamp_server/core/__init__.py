"""Core ledger logic: rules, operators and change notification."""
