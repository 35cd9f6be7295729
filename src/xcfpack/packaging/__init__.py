"""
The `packaging` sub-package contains the artifact-assembly pipeline.

This includes:
- Fetching the vendor archive and resolving the pinned source checkout.
- Building the source once per architecture with the external toolchain.
- Assembling universal xcframeworks and zipping them with their checksums.
"""
