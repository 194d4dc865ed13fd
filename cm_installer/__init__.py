"""Configuration management hand-off for unattended installations.

Core design goals:
- Client mode (talk to a master) or masterless mode (apply a fetched archive)
- Retry authentication against the master, never the archive fetch
- Package manager lock of the target always restored
- Backends (Salt, Puppet) selected from a static registry
- Centralized logging
"""

__all__ = []
