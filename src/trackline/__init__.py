"""
trackline - Token-efficient output layer for project-tracker tools.

Operations hand their results to this package, which swaps UUIDs for short
keys (u0, s3, pr1) and renders everything as TOON text for the LLM caller.
"""

__version__ = "0.1.0"
