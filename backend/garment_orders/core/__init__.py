"""
Core package for shared utilities.

Configuration, structured logging, caller identity and the domain error
taxonomy used across the service live here.
"""
