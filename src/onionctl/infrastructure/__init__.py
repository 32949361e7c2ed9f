"""Infrastructure layer: registry file, torrc file, OS facade, PID files.

This layer depends on stdlib, domain models and third-party libs (psutil, httpx).
It must never import from services, commands, or output.
The service layer bridges between domain rules and infrastructure.
"""
