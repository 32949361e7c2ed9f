"""Domain layer: records, identifiers, torrc grammar, errors.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, commands, or config.
"""
