"""
launch-spine - concurrent container launching for cluster application masters.

- launchspine.core: errors, structured logging, settings, secrets
- launchspine.launch: launch workers, role providers, coordinator
"""

__version__ = "0.1.0"
