"""
This package assembles Firebase and GoogleSignIn macOS binaries into
universal xcframeworks and generates the Swift package manifest that
distributes them by URL and checksum.
"""

from .config import PackConfig, load_config
from .manifest.checksums import ChecksumRecord
from .manifest.generator import ManifestGenerator
from .packaging.orchestrator import PackagePipeline

__all__ = [
    "ChecksumRecord",
    "ManifestGenerator",
    "PackConfig",
    "PackagePipeline",
    "load_config",
]
