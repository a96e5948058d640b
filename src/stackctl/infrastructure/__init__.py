"""Infrastructure layer — graph algorithms over the rule table.

This layer depends on stdlib and third-party libs (NetworkX).
It must never import from domain, services, commands, or output.
The service layer bridges between domain rules and infrastructure.
"""
