"""Structured NLU output parsing and slot validation.

The NLU layer turns a delimiter-formatted model completion into frozen `EntityOutput` /
`IntentOutput` objects and decides which required slots are still missing.
"""
