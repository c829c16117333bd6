"""Local identity store: path resolution, key material and safe writes."""

from .material import KeyAlgorithm, KeyMaterial, KeyMaterialProvider, KeyPairHandle
from .resolver import IdentityFilePair, IdentityPathResolver, Target
from .writer import SafeFileWriter

__all__ = [
    "IdentityFilePair",
    "IdentityPathResolver",
    "KeyAlgorithm",
    "KeyMaterial",
    "KeyMaterialProvider",
    "KeyPairHandle",
    "SafeFileWriter",
    "Target",
]
