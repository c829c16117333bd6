"""Sequences init, revoke and renew and owns their failure policy."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from ..config import AppConfig
from ..errors import AlreadyExistsError, KeyCtlError, LocalCleanupError, StoreIOError
from ..identity import (
    IdentityFilePair,
    IdentityPathResolver,
    KeyAlgorithm,
    KeyMaterialProvider,
    SafeFileWriter,
    Target,
)
from ..identity.material import default_comment, public_key_fingerprint
from ..ledger import ATTEMPTED, CONFIRMED, FAILED, DeploymentLedger
from ..paths import ensure_store_dir
from ..remote import RemoteDeployer, RemoteRevoker, build_remover
from ..utils.logging import get_logger
from .models import (
    InitRequest,
    LifecycleState,
    Operation,
    OperationResult,
    RenewRequest,
    RenewResult,
    RevokeRequest,
)

logger = get_logger(__name__)


class LifecycleOrchestrator:
    """Coordinates the local identity store and the remote authorized_keys.

    Init:   resolve -> generate -> persist private, then public -> deploy
    Revoke: resolve -> read public key -> remote removal -> optional delete
    Renew:  revoke, and only if that succeeded, init with force

    Nothing is rolled back: keys written before a failed deploy stay on
    disk, and a remote removal stays in place if local cleanup fails.
    Every raised KeyCtlError carries the phase it failed in.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        resolver: Optional[IdentityPathResolver] = None,
        writer: Optional[SafeFileWriter] = None,
        provider: Optional[KeyMaterialProvider] = None,
        deployer: Optional[RemoteDeployer] = None,
        revoker: Optional[RemoteRevoker] = None,
        ledger: Optional[DeploymentLedger] = None,
    ) -> None:
        self.config = config
        self.resolver = resolver or IdentityPathResolver(config.store_dir)
        self.writer = writer or SafeFileWriter()
        self.provider = provider or KeyMaterialProvider(
            rsa_bits=config.keys.rsa_bits, ecdsa_bits=config.keys.ecdsa_bits
        )
        self.deployer = deployer or RemoteDeployer(config.remote.copy_id_binary)
        self.revoker = revoker or RemoteRevoker(build_remover(config.remote))
        self.ledger = ledger or DeploymentLedger(
            config.ledger.path, enabled=config.ledger.enabled
        )
        self.state = LifecycleState.IDLE

    @contextmanager
    def _phase(self, state: LifecycleState) -> Iterator[None]:
        logger.debug("Entering %s", state.value)
        self.state = state
        try:
            yield
        except KeyCtlError as exc:
            if exc.phase is None:
                exc.phase = state.value
            self.state = LifecycleState.FAILED
            raise

    def init(self, request: InitRequest) -> OperationResult:
        return self._init(request, Operation.INIT)

    def _init(self, request: InitRequest, operation: Operation) -> OperationResult:
        with self._phase(LifecycleState.RESOLVING):
            target = Target.parse(request.target, request.port)
            identity = self.resolver.resolve(target, request.identity_name)

        # Collisions fail before any key is generated
        with self._phase(LifecycleState.PERSISTING):
            if not request.force:
                existing = identity.existing()
                if existing:
                    raise AlreadyExistsError(existing[0])
            try:
                ensure_store_dir(self.resolver.store_dir)
            except OSError as exc:
                raise StoreIOError(self.resolver.store_dir, exc) from exc

        with self._phase(LifecycleState.GENERATING):
            algorithm = KeyAlgorithm.parse(request.key_type)
            passphrase = request.passphrase.encode("utf-8") if request.passphrase else None
            logger.info("Generating %s key for %s", algorithm.value, target.host)
            material = self.provider.create(
                algorithm,
                request.comment or default_comment(),
                passphrase,
            )

        with self._phase(LifecycleState.PERSISTING):
            self.writer.write(
                identity.private_path, material.private_blob, is_private=True, force=request.force
            )
            self.writer.write(
                identity.public_path, material.public_blob, is_private=False, force=request.force
            )
            logger.info("Stored identity %s (%s)", identity.private_path, material.fingerprint)

        with self._phase(LifecycleState.REMOTE_ACTING):
            self._record(operation, ATTEMPTED, target, identity, material.fingerprint)
            try:
                self.deployer.deploy(identity.private_path, target)
            except KeyCtlError as exc:
                self._record(operation, FAILED, target, identity, material.fingerprint, str(exc))
                logger.warning(
                    "Deployment failed; the new key is kept at %s for a manual retry",
                    identity.private_path,
                )
                raise
            self._record(operation, CONFIRMED, target, identity, material.fingerprint)

        self.state = LifecycleState.DONE
        logger.info("Key deployed to %s", target.spec)
        return OperationResult(
            operation=operation,
            target=target,
            identity=identity,
            fingerprint=material.fingerprint,
        )

    def revoke(self, request: RevokeRequest) -> OperationResult:
        return self._revoke(request, Operation.REVOKE)

    def _revoke(self, request: RevokeRequest, operation: Operation) -> OperationResult:
        with self._phase(LifecycleState.RESOLVING):
            target = Target.parse(request.target, request.port)
            identity = self.resolver.resolve(target, request.identity_name)

        with self._phase(LifecycleState.READING):
            try:
                public_key = identity.public_path.read_bytes()
            except OSError as exc:
                raise StoreIOError(identity.public_path, exc) from exc
            fingerprint = _safe_fingerprint(public_key)

        with self._phase(LifecycleState.REMOTE_ACTING):
            self._record(operation, ATTEMPTED, target, identity, fingerprint)
            try:
                report = self.revoker.revoke(target, public_key, identity.private_path)
            except KeyCtlError as exc:
                self._record(operation, FAILED, target, identity, fingerprint, str(exc))
                raise
            self._record(operation, CONFIRMED, target, identity, fingerprint)

        deleted = False
        if request.delete_identity_file:
            with self._phase(LifecycleState.CLEANING_UP):
                self._delete_identity(identity)
                deleted = True

        self.state = LifecycleState.DONE
        return OperationResult(
            operation=operation,
            target=target,
            identity=identity,
            fingerprint=fingerprint,
            removed_lines=report.removed,
            deleted_local=deleted,
        )

    def renew(self, request: RenewRequest) -> RenewResult:
        try:
            revoked = self._revoke(request.to_revoke(), Operation.RENEW)
        except KeyCtlError:
            logger.error("Renew aborted: revoke failed, no new key was generated")
            raise
        initialized = self._init(request.to_init(), Operation.RENEW)
        return RenewResult(revoked=revoked, initialized=initialized)

    def _delete_identity(self, identity: IdentityFilePair) -> None:
        for path in (identity.private_path, identity.public_path):
            try:
                path.unlink()
            except FileNotFoundError:
                logger.debug("%s already absent", path)
            except OSError as exc:
                raise LocalCleanupError(path, exc) from exc
            else:
                logger.info("Deleted %s", path)

    def _record(
        self,
        operation: Operation,
        event: str,
        target: Target,
        identity: IdentityFilePair,
        fingerprint: Optional[str],
        detail: Optional[str] = None,
    ) -> None:
        self.ledger.record(
            operation.value,
            event,
            target=target.spec,
            host=target.host,
            port=target.port,
            identity=identity.name,
            fingerprint=fingerprint,
            detail=detail,
        )


def _safe_fingerprint(public_key: bytes) -> Optional[str]:
    try:
        return public_key_fingerprint(public_key.decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
