"""Service layer — resolver engine and the operations built on it.

Services may import from domain, infrastructure, config and plugins.
They must never import from commands or output.
"""
