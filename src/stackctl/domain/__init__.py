"""Domain layer — field registry, stack state, rules, and codecs.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, commands, or config.
"""
