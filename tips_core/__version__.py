"""Version information for tips-core."""

__version__ = "0.1.0"
__version_info__ = tuple(int(i) for i in __version__.split(".") if i.isdigit())

# Package metadata
__title__ = "tips-core"
__description__ = "Treatment timer reconciliation core for the TIPs tracking app"
__author__ = "TIPs App"
__author_email__ = "dev@tipsapp.io"
__license__ = "MIT"
__url__ = "https://github.com/tips-app/tips-core"
