"""Core modules for oprelay."""
