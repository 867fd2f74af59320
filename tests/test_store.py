"""
Tests for the credential store and the local document backend.

Tests:
  - profile CRUD, duplicate titles, cascading rename
  - command CRUD, line number assignment, reorder renumbering
  - cloud store shares the same contract
  - DirectoryBackend / SftpBackend whole-document persistence
"""
import json
import tempfile
import unittest
from pathlib import Path

from fakes import MemoryBackend, FakeSFTP, connected_manager

from sshdeck.cloud import CloudAccount
from sshdeck.core.ssh_manager import SSHManager
from sshdeck.errors import DuplicateTitle, ProfileNotFound, CommandNotFound
from sshdeck.models import Profile, Command
from sshdeck.store import (
    DirectoryBackend, SftpBackend, LocalCredentialStore, CloudCredentialStore,
)


def _profile(title, host="10.0.0.1"):
    return Profile(title=title, username="root", password="pw", host=host)


def _command(title, profile="web", text="uptime"):
    return Command(line_number=0, title=title, command=text, profile=profile)


# ── Tests: profiles ───────────────────────────────────────────────────────────

class TestProfiles(unittest.TestCase):

    def setUp(self):
        self.backend = MemoryBackend()
        self.store = LocalCredentialStore(self.backend)

    def test_add_and_list(self):
        self.store.add_profile(_profile("web"))
        self.store.add_profile(_profile("db"))
        self.assertEqual([p.title for p in self.store.list_profiles()], ["web", "db"])
        self.assertEqual(self.store.get_profile("db").port, 22)

    def test_duplicate_profile_leaves_store_unchanged(self):
        self.store.add_profile(_profile("web"))
        writes_before = len(self.backend.writes)
        with self.assertRaises(DuplicateTitle):
            self.store.add_profile(_profile("web", host="other"))
        self.assertEqual(len(self.backend.writes), writes_before)
        self.assertEqual(self.store.get_profile("web").host, "10.0.0.1")

    def test_rename_cascades_to_referencing_commands_only(self):
        self.store.add_profile(_profile("A"))
        self.store.add_profile(_profile("C"))
        self.store.add_command(_command("one", profile="A"))
        self.store.add_command(_command("two", profile="C"))
        self.store.add_command(_command("three", profile="A"))

        moved = self.store.rename_profile("A", "B")

        self.assertEqual(moved, 2)
        by_title = {c.title: c.profile for c in self.store.list_commands()}
        self.assertEqual(by_title, {"one": "B", "two": "C", "three": "B"})
        self.assertEqual([p.title for p in self.store.list_profiles()], ["B", "C"])

    def test_rename_to_existing_title_is_rejected(self):
        self.store.add_profile(_profile("A"))
        self.store.add_profile(_profile("B"))
        self.store.add_command(_command("one", profile="A"))
        with self.assertRaises(DuplicateTitle):
            self.store.rename_profile("A", "B")
        self.assertEqual(self.store.get_command("one").profile, "A")

    def test_rename_missing_profile(self):
        with self.assertRaises(ProfileNotFound):
            self.store.rename_profile("nope", "B")

    def test_update_profile_keeps_title_and_commands(self):
        self.store.add_profile(_profile("web"))
        self.store.add_command(_command("one", profile="web"))
        moved = self.store.update_profile("web", _profile("web", host="192.168.1.5"))
        self.assertEqual(moved, 0)
        self.assertEqual(self.store.get_profile("web").host, "192.168.1.5")
        self.assertEqual(self.store.get_command("one").profile, "web")

    def test_delete_profile_does_not_touch_commands(self):
        self.store.add_profile(_profile("web"))
        self.store.add_command(_command("one", profile="web"))
        self.store.delete_profile("web")
        self.assertEqual(self.store.list_profiles(), [])
        self.assertEqual(self.store.get_command("one").profile, "web")

    def test_delete_missing_profile(self):
        with self.assertRaises(ProfileNotFound):
            self.store.delete_profile("web")


# ── Tests: commands ───────────────────────────────────────────────────────────

class TestCommands(unittest.TestCase):

    def setUp(self):
        self.backend = MemoryBackend()
        self.store = LocalCredentialStore(self.backend)

    def _lines(self):
        return [(c.line_number, c.title) for c in self.store.list_commands()]

    def test_add_assigns_next_line_number(self):
        first = self.store.add_command(_command("a"))
        second = self.store.add_command(_command("b"))
        self.assertEqual((first.line_number, second.line_number), (1, 2))

    def test_add_after_delete_uses_max_plus_one(self):
        self.store.add_command(_command("a"))
        self.store.add_command(_command("b"))
        self.store.add_command(_command("c"))
        self.store.delete_command("b")
        self.assertEqual(self._lines(), [(1, "a"), (3, "c")])
        self.assertEqual(self.store.add_command(_command("d")).line_number, 4)

    def test_duplicate_command_leaves_store_unchanged(self):
        self.store.add_command(_command("a", text="uptime"))
        with self.assertRaises(DuplicateTitle):
            self.store.add_command(_command("a", text="reboot"))
        self.assertEqual(len(self.store.list_commands()), 1)
        self.assertEqual(self.store.get_command("a").command, "uptime")

    def test_reorder_renumbers_in_submitted_order(self):
        for t in ("a", "b", "c", "d"):
            self.store.add_command(_command(t))
        result = self.store.reorder_commands([3, 1, 4, 2])
        self.assertEqual([(c.line_number, c.title) for c in result],
                         [(1, "c"), (2, "a"), (3, "d"), (4, "b")])
        self.assertEqual(self._lines(), [(1, "c"), (2, "a"), (3, "d"), (4, "b")])

    def test_reorder_closes_gaps_left_by_delete(self):
        for t in ("a", "b", "c", "d"):
            self.store.add_command(_command(t))
        self.store.delete_command("b")
        self.store.reorder_commands([4, 1, 3])
        self.assertEqual(self._lines(), [(1, "d"), (2, "a"), (3, "c")])

    def test_reorder_keeps_unlisted_commands(self):
        for t in ("a", "b", "c"):
            self.store.add_command(_command(t))
        self.store.reorder_commands([3])
        self.assertEqual(self._lines(), [(1, "c"), (2, "a"), (3, "b")])

    def test_reorder_preserves_other_fields(self):
        self.store.add_command(Command(0, "a", "ls -la", "web", url="http://x"))
        self.store.add_command(_command("b"))
        self.store.reorder_commands([2, 1])
        a = self.store.get_command("a")
        self.assertEqual((a.line_number, a.command, a.profile, a.url), (2, "ls -la", "web", "http://x"))

    def test_reorder_rejects_unknown_and_repeated(self):
        self.store.add_command(_command("a"))
        self.store.add_command(_command("b"))
        with self.assertRaises(ValueError):
            self.store.reorder_commands([1, 7])
        with self.assertRaises(ValueError):
            self.store.reorder_commands([1, 1])
        self.assertEqual(self._lines(), [(1, "a"), (2, "b")])

    def test_replace_all_with_colliding_line_numbers_keeps_every_command(self):
        self.store.replace_all([], [
            Command(1, "a", "uptime", "web"),
            Command(1, "b", "uptime", "web"),
            Command(2, "c", "uptime", "web"),
        ])
        self.assertEqual(self._lines(), [(1, "a"), (2, "b"), (3, "c")])

        self.store.reorder_commands([2, 1])

        self.assertEqual(self._lines(), [(1, "b"), (2, "a"), (3, "c")])

    def test_reorder_legacy_commands_without_line_numbers(self):
        self.backend.write("commands", [
            {"title": t, "command": "ls", "profile": "web"} for t in ("a", "b", "c")
        ])
        self.assertEqual(self._lines(), [(1, "a"), (2, "b"), (3, "c")])

        result = self.store.reorder_commands([3])

        self.assertEqual([(c.line_number, c.title) for c in result],
                         [(1, "c"), (2, "a"), (3, "b")])
        self.assertEqual(len(self.store.list_commands()), 3)

    def test_add_after_legacy_load_continues_numbering(self):
        self.backend.write("commands", [
            {"title": "a", "command": "ls", "profile": "web"},
            {"title": "b", "command": "ls", "profile": "web"},
        ])
        self.assertEqual(self.store.add_command(_command("c")).line_number, 3)
        self.assertEqual(self._lines(), [(1, "a"), (2, "b"), (3, "c")])

    def test_update_command_keeps_line_number(self):
        self.store.add_command(_command("a"))
        self.store.add_command(_command("b"))
        self.store.update_command("b", Command(0, "bee", "df -h", "db", url=""))
        self.assertEqual(self._lines(), [(1, "a"), (2, "bee")])
        self.assertEqual(self.store.get_command("bee").profile, "db")

    def test_update_command_collision(self):
        self.store.add_command(_command("a"))
        self.store.add_command(_command("b"))
        with self.assertRaises(DuplicateTitle):
            self.store.update_command("b", _command("a"))

    def test_missing_command(self):
        with self.assertRaises(CommandNotFound):
            self.store.delete_command("x")
        with self.assertRaises(CommandNotFound):
            self.store.get_command("x")


# ── Tests: the cloud store honours the same contract ─────────────────────────

class TestCloudCredentialStore(unittest.TestCase):

    def test_cascade_and_last_synced_preserved(self):
        from datetime import datetime, timezone
        from sshdeck.models import Configuration

        account = CloudAccount(MemoryBackend(), "alice")
        stamp = datetime(2026, 3, 1, tzinfo=timezone.utc)
        account.save_configuration(Configuration(last_synced_at=stamp))

        store = CloudCredentialStore(account)
        store.add_profile(_profile("A"))
        store.add_command(_command("one", profile="A"))
        store.rename_profile("A", "B")

        cfg = account.load_configuration()
        self.assertEqual([c.profile for c in cfg.commands], ["B"])
        self.assertEqual(cfg.last_synced_at, stamp)


# ── Tests: backends ───────────────────────────────────────────────────────────

class TestDirectoryBackend(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_local_store_uses_original_file_layout(self):
        store = LocalCredentialStore(DirectoryBackend(self.root))
        store.add_profile(_profile("web"))
        store.add_command(Command(0, "up", "uptime", "web", url=""))

        profiles = json.loads((self.root / "profiles.json").read_text("utf-8"))
        commands = json.loads((self.root / "commands.json").read_text("utf-8"))
        self.assertEqual(profiles[0]["title"], "web")
        self.assertEqual(commands[0]["lineNumber"], 1)
        self.assertEqual(commands[0]["profile"], "web")

    def test_reads_legacy_files_without_port_or_url(self):
        (self.root / "profiles.json").write_text(
            json.dumps([{"title": "old", "username": "u", "password": "p", "host": "h"}]), "utf-8")
        (self.root / "commands.json").write_text(
            json.dumps([{"lineNumber": 1, "title": "c", "command": "ls", "profile": "old"}]), "utf-8")
        store = LocalCredentialStore(DirectoryBackend(self.root))
        self.assertEqual(store.get_profile("old").port, 22)
        self.assertEqual(store.get_command("c").url, "")

    def test_missing_files_read_as_empty(self):
        store = LocalCredentialStore(DirectoryBackend(self.root / "fresh"))
        self.assertEqual(store.list_profiles(), [])
        self.assertEqual(store.list_commands(), [])

    def test_nested_names_and_no_temp_leftovers(self):
        backend = DirectoryBackend(self.root)
        backend.write("alice/configuration", {"profiles": []})
        self.assertEqual(backend.read("alice/configuration"), {"profiles": []})
        leftovers = [p.name for p in (self.root / "alice").iterdir()]
        self.assertEqual(leftovers, ["configuration.json"])

    def test_rejects_path_escape(self):
        backend = DirectoryBackend(self.root)
        with self.assertRaises(ValueError):
            backend.write("../evil", {})


class TestSftpBackend(unittest.TestCase):

    def test_write_is_upload_then_rename(self):
        sftp = FakeSFTP()
        manager = connected_manager(SSHManager("cloud.example.com", user="deck"), sftp)
        backend = SftpBackend(manager, "/srv/deck")

        backend.write("alice/devices", [{"deviceId": "dev-1"}])

        self.assertEqual(len(sftp.renames), 1)
        src, dst = sftp.renames[0]
        self.assertEqual(dst, "/srv/deck/alice/devices.json")
        self.assertTrue(src.startswith("/srv/deck/alice/devices.json."))
        self.assertIn("/srv/deck/alice", sftp.dirs)
        self.assertEqual(backend.read("alice/devices"), [{"deviceId": "dev-1"}])

    def test_missing_document_reads_as_none(self):
        manager = connected_manager(SSHManager("cloud.example.com"), FakeSFTP())
        self.assertIsNone(SftpBackend(manager, "/srv/deck").read("alice/configuration"))


if __name__ == "__main__":
    unittest.main()
