"""
Core package for shared utilities.

Holds configuration, structured logging and the error taxonomy shared by
the service and API layers.
"""
