"""Extension layer — plugin system via pluggy.

Discovery: entry_points (pip-installed) via pluggy setuptools entrypoints,
plus single-file plugins from ``.stackctl/plugins/``.
INVARIANT: Plugin failures are warnings, never errors.
"""

from stackctl.plugins.hookspecs import hookimpl
from stackctl.plugins.manager import PluginManager

__all__ = ["PluginManager", "hookimpl"]
