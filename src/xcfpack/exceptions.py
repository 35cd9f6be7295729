class XcfpackError(Exception):
    pass


class ConfigError(XcfpackError):
    pass


class LockError(XcfpackError):
    pass


class BuildError(XcfpackError):
    pass


class FetchError(BuildError):
    pass


class MissingBuildOutputError(BuildError):
    pass


class AssemblyError(BuildError):
    pass


class HeaderCollisionError(AssemblyError):
    pass


class BinaryFormatError(XcfpackError):
    pass


class ManifestError(XcfpackError):
    pass


class ChecksumFormatError(ManifestError):
    pass
