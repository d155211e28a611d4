"""
Integration tests for the parking facility engine.

These suites run the engine end to end: facility plus strategies plus the
application service and its message queue, including concurrent callers.
"""
