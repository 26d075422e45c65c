"""Exceptions raised while creating, reading or verifying bags.

Filesystem failures are not wrapped, they propagate unchanged as `OSError`.
"""


class BagError(Exception):
    """Base class for all bagsmith errors."""


class UnsupportedAlgorithmError(BagError, ValueError):
    """A requested checksum algorithm is unknown or unavailable in this runtime."""

    def __init__(self, algorithm: str):
        super().__init__(f"Checksum algorithm '{algorithm}' is not supported")
        self.algorithm = algorithm


class InvalidBagError(BagError):
    """The directory does not hold a readable bag."""


class OperationCancelledError(BagError):
    """The operation was cancelled through its cancel event."""


class VerificationError(BagError):
    """The bag on disk is not consistent with its manifests."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


class FileNotInManifestError(VerificationError):
    def __init__(self, path: str):
        super().__init__(f"File '{path}' is in the payload directory but isn't listed in any of the manifests", path)


class MissingPayloadFileError(VerificationError):
    def __init__(self, path: str, manifest_name: str):
        super().__init__(f"File '{path}' is listed in '{manifest_name}' but does not exist", path)
        self.manifest_name = manifest_name


class CorruptChecksumError(VerificationError):
    def __init__(self, path: str, algorithm: str, expected: str, actual: str):
        super().__init__(
            f"File '{path}' has {algorithm} checksum '{actual}' but the manifest expects '{expected}'",
            path,
        )
        self.algorithm = algorithm
        self.expected = expected
        self.actual = actual
