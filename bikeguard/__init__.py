"""
BikeGuard backend package.

FastAPI service behind the mobile app and web dashboard: bike registry,
theft reports, security alerts, emergency contacts and the simulated
live-data snapshot. Authentication is delegated to an external identity
service.
"""
