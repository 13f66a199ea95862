# gembuild/src/gembuild/__init__.py
"""
This package contains the core logic for building gem specifications into
distributable, optionally signed archives and verifying them against a
trust store.
"""

from .models import (
    ARCHIVE_EOF_MAGIC,
    ARCHIVE_FORMAT_VERSION,
    ArchiveFooter,
    BuildReport,
)
from .packaging.orchestrator import BuildOrchestrator, BuildState
from .policy import HIGH_SECURITY, MEDIUM_SECURITY, SecurityPolicy, get_policy
from .specification import SigningRequest, Specification, Unsigned, Version
from .trust import TrustStore

# NOTE: The verifier is NOT imported here; import it from
# `gembuild.packaging.verifier` directly.

__all__ = [
    "ARCHIVE_EOF_MAGIC",
    "ARCHIVE_FORMAT_VERSION",
    "ArchiveFooter",
    "BuildOrchestrator",
    "BuildReport",
    "BuildState",
    "HIGH_SECURITY",
    "MEDIUM_SECURITY",
    "SecurityPolicy",
    "SigningRequest",
    "Specification",
    "TrustStore",
    "Unsigned",
    "Version",
    "get_policy",
]
