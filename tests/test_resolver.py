import unittest
from pathlib import Path

from ssh_keyctl.errors import InvalidTargetError
from ssh_keyctl.identity import IdentityPathResolver, Target


class TargetParsingTests(unittest.TestCase):
    def test_host_only(self) -> None:
        target = Target.parse("example.com")
        self.assertEqual(target.host, "example.com")
        self.assertIsNone(target.user)
        self.assertEqual(target.port, 22)
        self.assertEqual(target.spec, "example.com")

    def test_user_and_host(self) -> None:
        target = Target.parse("alice@example.com", 2222)
        self.assertEqual(target.user, "alice")
        self.assertEqual(target.host, "example.com")
        self.assertEqual(target.port, 2222)
        self.assertEqual(str(target), "alice@example.com")

    def test_rejects_more_than_one_at(self) -> None:
        with self.assertRaises(InvalidTargetError):
            Target.parse("a@b@example.com")

    def test_rejects_empty_components(self) -> None:
        for text in ("", "alice@", "@example.com"):
            with self.subTest(text=text):
                with self.assertRaises(InvalidTargetError):
                    Target.parse(text)

    def test_rejects_out_of_range_port(self) -> None:
        with self.assertRaises(InvalidTargetError):
            Target.parse("example.com", 70000)


class IdentityPathResolverTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = Path("/tmp/keyctl-store")
        self.resolver = IdentityPathResolver(self.store)

    def test_default_name_is_host(self) -> None:
        for text in ("example.com", "alice@example.com"):
            with self.subTest(text=text):
                pair = self.resolver.resolve_spec(text)
                self.assertEqual(pair.private_path, self.store / "example.com")
                self.assertEqual(pair.public_path, self.store / "example.com.pub")

    def test_explicit_name_used_verbatim(self) -> None:
        pair = self.resolver.resolve(Target.parse("alice@example.com"), "work_key")
        self.assertEqual(pair.private_path, self.store / "work_key")
        self.assertEqual(pair.public_path, self.store / "work_key.pub")
        self.assertEqual(pair.name, "work_key")

    def test_identity_name_cannot_leave_store(self) -> None:
        with self.assertRaises(InvalidTargetError):
            self.resolver.resolve(Target.parse("example.com"), "../escape")

    def test_identity_name_must_be_plain_file_name(self) -> None:
        for name in ("keys/work", "..", ".", "a\\b"):
            with self.subTest(name=name):
                with self.assertRaises(InvalidTargetError):
                    self.resolver.resolve(Target.parse("example.com"), name)

    def test_invalid_target_surfaces_as_error(self) -> None:
        with self.assertRaises(InvalidTargetError):
            self.resolver.resolve_spec("a@b@c")


if __name__ == "__main__":
    unittest.main()
