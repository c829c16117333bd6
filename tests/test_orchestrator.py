import os
import stat
import subprocess
import tempfile
import unittest
from pathlib import Path
from typing import List, Optional

from ssh_keyctl.config import AppConfig
from ssh_keyctl.errors import (
    AlreadyExistsError,
    DeploymentFailedError,
    InvalidTargetError,
    KeyGenerationError,
    LocalCleanupError,
    RevocationFailedError,
    StoreIOError,
)
from ssh_keyctl.identity import KeyAlgorithm, KeyMaterialProvider, SafeFileWriter, Target
from ssh_keyctl.ledger import DeploymentLedger
from ssh_keyctl.lifecycle import (
    InitRequest,
    LifecycleOrchestrator,
    LifecycleState,
    RenewRequest,
    RevokeRequest,
)
from ssh_keyctl.remote import LineRemover, RemovalReport, RemoteDeployer, RemoteRevoker


class RecordingRunner:
    def __init__(self, returncode: int = 0) -> None:
        self.returncode = returncode
        self.calls: List[List[str]] = []

    def __call__(self, command, check=False):
        self.calls.append(list(command))
        return subprocess.CompletedProcess(command, self.returncode)


class RecordingRemover(LineRemover):
    name = "recording"

    def __init__(self, fail: bool = False, removed: int = 1) -> None:
        self.fail = fail
        self.removed = removed
        self.calls: List[tuple] = []

    def remove(self, target: Target, key_text: str, identity_path: Optional[Path] = None) -> RemovalReport:
        self.calls.append((target.spec, key_text, identity_path))
        if self.fail:
            raise RevocationFailedError(target.spec, 255)
        return RemovalReport(strategy=self.name, removed=self.removed)


class CountingProvider(KeyMaterialProvider):
    def __init__(self) -> None:
        super().__init__()
        self.created = 0

    def create(self, algorithm, comment, passphrase=None):
        self.created += 1
        return super().create(algorithm, comment, passphrase)


class FailingWriter(SafeFileWriter):
    def __init__(self) -> None:
        self.paths: List[Path] = []

    def write(self, path: Path, data: bytes, *, is_private: bool, force: bool) -> None:
        self.paths.append(path)
        raise StoreIOError(path, PermissionError(13, "Permission denied"))


class OrchestratorTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.store = self.root / "keys"
        self.config = AppConfig()
        self.config.store.directory = str(self.store)
        self.config.ledger.path = str(self.root / "ledger.jsonl")
        self.runner = RecordingRunner()
        self.remover = RecordingRemover()
        self.provider = CountingProvider()
        self.ledger = DeploymentLedger(self.config.ledger.path)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _orchestrator(self, **overrides) -> LifecycleOrchestrator:
        kwargs = dict(
            provider=self.provider,
            deployer=RemoteDeployer(runner=self.runner),
            revoker=RemoteRevoker(self.remover),
            ledger=self.ledger,
        )
        kwargs.update(overrides)
        return LifecycleOrchestrator(self.config, **kwargs)

    def _seed_identity(self, name: str = "example.com") -> bytes:
        self.store.mkdir(exist_ok=True)
        material = KeyMaterialProvider().create(KeyAlgorithm.ED25519, "seed@local")
        (self.store / name).write_bytes(material.private_blob)
        (self.store / f"{name}.pub").write_bytes(material.public_blob)
        return material.public_blob


class InitTests(OrchestratorTestCase):
    def test_init_creates_files_and_deploys(self) -> None:
        result = self._orchestrator().init(InitRequest(target="alice@example.com", comment="me@here"))

        private = self.store / "example.com"
        public = self.store / "example.com.pub"
        self.assertTrue(private.is_file())
        self.assertTrue(public.read_bytes().startswith(b"ssh-ed25519 "))
        self.assertTrue(public.read_bytes().endswith(b" me@here\n"))
        if os.name == "posix":
            self.assertEqual(stat.S_IMODE(private.stat().st_mode), 0o600)
            self.assertEqual(stat.S_IMODE(self.store.stat().st_mode) & 0o077, 0)
        self.assertEqual(
            self.runner.calls,
            [["ssh-copy-id", "-i", str(private), "-p", "22", "alice@example.com"]],
        )
        self.assertEqual(result.identity.private_path, private)
        self.assertTrue(result.fingerprint.startswith("SHA256:"))
        self.assertEqual(
            [e.event for e in self.ledger.entries("example.com")], ["attempted", "confirmed"]
        )

    def test_second_init_without_force_fails_before_generating(self) -> None:
        orchestrator = self._orchestrator()
        orchestrator.init(InitRequest(target="example.com"))
        before = (self.store / "example.com").read_bytes()

        with self.assertRaises(AlreadyExistsError) as ctx:
            orchestrator.init(InitRequest(target="example.com"))
        self.assertEqual(ctx.exception.phase, "persisting")
        self.assertEqual(self.provider.created, 1)
        self.assertEqual((self.store / "example.com").read_bytes(), before)
        self.assertEqual(len(self.runner.calls), 1)
        self.assertIs(orchestrator.state, LifecycleState.FAILED)

    def test_force_overwrites_existing_identity(self) -> None:
        old_public = self._seed_identity()
        self._orchestrator().init(InitRequest(target="example.com", force=True))
        self.assertNotEqual((self.store / "example.com.pub").read_bytes(), old_public)

    def test_deploy_failure_keeps_new_files(self) -> None:
        self.runner.returncode = 1
        orchestrator = self._orchestrator()
        with self.assertRaises(DeploymentFailedError) as ctx:
            orchestrator.init(InitRequest(target="example.com"))
        self.assertEqual(ctx.exception.phase, "remote")
        self.assertTrue((self.store / "example.com").exists())
        self.assertTrue((self.store / "example.com.pub").exists())
        self.assertEqual(
            [e.event for e in self.ledger.entries()], ["attempted", "failed"]
        )

    def test_private_write_failure_stops_before_public_and_deploy(self) -> None:
        writer = FailingWriter()
        with self.assertRaises(StoreIOError) as ctx:
            self._orchestrator(writer=writer).init(InitRequest(target="example.com"))
        self.assertEqual(ctx.exception.phase, "persisting")
        self.assertEqual(writer.paths, [self.store / "example.com"])
        self.assertEqual(self.runner.calls, [])

    def test_invalid_target(self) -> None:
        with self.assertRaises(InvalidTargetError) as ctx:
            self._orchestrator().init(InitRequest(target="a@b@example.com"))
        self.assertEqual(ctx.exception.phase, "resolving")
        self.assertEqual(self.provider.created, 0)

    def test_unknown_key_type(self) -> None:
        with self.assertRaises(KeyGenerationError) as ctx:
            self._orchestrator().init(InitRequest(target="example.com", key_type="x448"))
        self.assertEqual(ctx.exception.phase, "generating")
        self.assertFalse((self.store / "example.com").exists())

    def test_explicit_identity_name(self) -> None:
        self._orchestrator().init(InitRequest(target="example.com", identity_name="work"))
        self.assertTrue((self.store / "work").exists())
        self.assertTrue((self.store / "work.pub").exists())
        self.assertEqual(self.runner.calls[0][2], str(self.store / "work"))


class RevokeTests(OrchestratorTestCase):
    def test_revoke_sends_public_key_and_deletes_files(self) -> None:
        public = self._seed_identity()
        result = self._orchestrator().revoke(
            RevokeRequest(target="alice@example.com", delete_identity_file=True)
        )
        self.assertEqual(
            self.remover.calls,
            [("alice@example.com", public.decode("ascii").strip(), self.store / "example.com")],
        )
        self.assertFalse((self.store / "example.com").exists())
        self.assertFalse((self.store / "example.com.pub").exists())
        self.assertTrue(result.deleted_local)
        self.assertEqual(result.removed_lines, 1)

    def test_revoke_keeps_files_by_default(self) -> None:
        self._seed_identity()
        self._orchestrator().revoke(RevokeRequest(target="example.com"))
        self.assertTrue((self.store / "example.com").exists())
        self.assertTrue((self.store / "example.com.pub").exists())

    def test_revoking_absent_key_is_success(self) -> None:
        self._seed_identity()
        self.remover.removed = 0
        result = self._orchestrator().revoke(RevokeRequest(target="example.com"))
        self.assertEqual(result.removed_lines, 0)

    def test_remote_failure_never_deletes_local_files(self) -> None:
        self._seed_identity()
        self.remover.fail = True
        with self.assertRaises(RevocationFailedError) as ctx:
            self._orchestrator().revoke(
                RevokeRequest(target="example.com", delete_identity_file=True)
            )
        self.assertEqual(ctx.exception.phase, "remote")
        self.assertTrue((self.store / "example.com").exists())
        self.assertTrue((self.store / "example.com.pub").exists())

    def test_missing_public_key_fails_before_remote(self) -> None:
        with self.assertRaises(StoreIOError) as ctx:
            self._orchestrator().revoke(RevokeRequest(target="example.com"))
        self.assertEqual(ctx.exception.phase, "reading")
        self.assertEqual(self.remover.calls, [])

    @unittest.skipUnless(hasattr(os, "geteuid") and os.geteuid() != 0, "root ignores permissions")
    def test_cleanup_failure_is_reported_after_remote_success(self) -> None:
        self._seed_identity()
        os.chmod(self.store, 0o500)
        try:
            with self.assertRaises(LocalCleanupError) as ctx:
                self._orchestrator().revoke(
                    RevokeRequest(target="example.com", delete_identity_file=True)
                )
        finally:
            os.chmod(self.store, 0o700)
        self.assertEqual(ctx.exception.phase, "cleanup")
        self.assertEqual(len(self.remover.calls), 1)


class RenewTests(OrchestratorTestCase):
    def test_renew_revokes_then_deploys_a_new_key(self) -> None:
        old_public = self._seed_identity()
        result = self._orchestrator().renew(RenewRequest(target="alice@example.com"))

        new_public = (self.store / "example.com.pub").read_bytes()
        self.assertNotEqual(new_public, old_public)
        self.assertEqual(self.remover.calls[0][1], old_public.decode("ascii").strip())
        self.assertEqual(len(self.runner.calls), 1)
        self.assertEqual(self.provider.created, 1)
        self.assertNotEqual(result.revoked.fingerprint, result.initialized.fingerprint)

    def test_renew_with_delete_recreates_same_slot(self) -> None:
        self._seed_identity()
        self._orchestrator().renew(
            RenewRequest(target="example.com", delete_identity_file=True)
        )
        self.assertTrue((self.store / "example.com").exists())
        self.assertTrue((self.store / "example.com.pub").exists())

    def test_failed_revoke_aborts_without_generating(self) -> None:
        old_public = self._seed_identity()
        self.remover.fail = True
        with self.assertRaises(RevocationFailedError):
            self._orchestrator().renew(RenewRequest(target="example.com"))
        self.assertEqual(self.provider.created, 0)
        self.assertEqual(self.runner.calls, [])
        self.assertEqual((self.store / "example.com.pub").read_bytes(), old_public)

    def test_renew_without_existing_key_never_generates(self) -> None:
        with self.assertRaises(StoreIOError):
            self._orchestrator().renew(RenewRequest(target="example.com"))
        self.assertEqual(self.provider.created, 0)
        self.assertFalse(self.store.exists() and any(self.store.iterdir()))


if __name__ == "__main__":
    unittest.main()
