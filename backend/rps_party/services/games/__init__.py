"""Game domain services: rules, pairing, scoring, timers and the round engine.

This package contains pure(ish) domain logic that is driven by the socket
handlers, keeping transport concerns separated from core game mechanics.
"""
