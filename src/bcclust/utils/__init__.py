"""
Shared utilities: exceptions, logging setup and input validation.
"""
