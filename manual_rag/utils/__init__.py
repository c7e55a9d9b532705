"""Shared utilities: logging, errors, text helpers and VIN validation."""
