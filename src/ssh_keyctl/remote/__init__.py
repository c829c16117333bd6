"""Remote authorized_keys operations: deploy and revoke."""

from .authorized_keys import (
    AuthorizedKey,
    escape_for_sed,
    filter_authorized_keys,
    parse_key_line,
    sed_address,
)
from .deployer import RemoteDeployer
from .revoker import (
    LineRemover,
    ProbingRemover,
    RemovalReport,
    RemoteRevoker,
    RewriteRemover,
    StreamEditRemover,
    build_remover,
)

__all__ = [
    "AuthorizedKey",
    "LineRemover",
    "ProbingRemover",
    "RemovalReport",
    "RemoteDeployer",
    "RemoteRevoker",
    "RewriteRemover",
    "StreamEditRemover",
    "build_remover",
    "escape_for_sed",
    "filter_authorized_keys",
    "parse_key_line",
    "sed_address",
]
