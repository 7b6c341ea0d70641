"""Local mirror of a regulatory-text registry.

The package discovers agencies and titles from the registry API, keeps the
catalog in SQLite and materializes metric-annotated document snapshots.
"""

from .config import Settings, load_settings
from .service import RegistryMirror

__all__ = ["RegistryMirror", "Settings", "load_settings"]
__version__ = "0.1.0"
