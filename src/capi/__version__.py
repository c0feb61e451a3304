"""Version information for the CAPI client.

Single source of truth for version number.
"""

__version__ = "0.3.0"
__version_info__ = tuple(int(part) for part in __version__.split("."))

# Version history:
# 0.3.0 - Task run/wait split, environment variables, metrics
# 0.2.0 - Package guid and download link resolution
# 0.1.0 - Processes, stats and task polling
