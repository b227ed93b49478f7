"""Core: node registry, step sequence, execution tracking, errors and logging."""
