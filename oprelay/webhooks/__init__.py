"""Inbound webhook handling: verification, routing and the HTTP surface."""
