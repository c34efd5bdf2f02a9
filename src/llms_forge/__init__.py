"""llms-forge - llms.txt discovery, segmentation and install.md tooling."""

from importlib.metadata import PackageNotFoundError, version

from llms_forge.sources.content import segment_content
from llms_forge.sources.discovery import discover, quick_check
from llms_forge.sources.install_md import is_valid_install_md, parse_install_md
from llms_forge.sources.urls import InvalidUrlError

try:
    __version__ = version("llms-forge")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "InvalidUrlError",
    "discover",
    "quick_check",
    "segment_content",
    "parse_install_md",
    "is_valid_install_md",
    "__version__",
]
