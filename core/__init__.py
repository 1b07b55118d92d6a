"""Core domain: balance table, formulas, events, feedback, state and reducer."""

API_VERSION = "core-v1-20261019"
