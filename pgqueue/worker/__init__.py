"""
Worker module.
Contains the claim loop and the worker process entry point.
"""
