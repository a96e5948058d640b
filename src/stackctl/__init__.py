"""stackctl — stack-configuration resolver and scaffolding CLI."""

__version__ = "0.1.0"
