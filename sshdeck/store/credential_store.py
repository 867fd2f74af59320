"""
Credential store: CRUD over one owner's profiles and commands.

Commands point at profiles by title, so renaming a profile has to rewrite
every command that names it. That cascade is the only relational rule the
store enforces; deleting a profile leaves its commands dangling until they
are run.
"""
from dataclasses import replace
from typing import Optional

from ..errors import DuplicateTitle, ProfileNotFound, CommandNotFound
from ..models import Profile, Command, Configuration
from ..utils.logging import vlog

LOCAL_PROFILES = "profiles"
LOCAL_COMMANDS = "commands"


class CredentialStore:
    """
    Shared contract for the local and cloud stores.
    Subclasses provide _read() -> (profiles, commands) and _save(profiles, commands);
    every mutation is load → modify copy → save whole document.
    """

    def _read(self) -> tuple[list, list]:
        raise NotImplementedError

    def _load(self) -> tuple[list, list]:
        profiles, commands = self._read()
        return profiles, _normalize_lines(commands)

    def _save(self, profiles: list, commands: list):
        raise NotImplementedError

    # ── reads ───────────────────────────────────────────────────────────────

    def list_profiles(self) -> list[Profile]:
        profiles, _ = self._load()
        return profiles

    def list_commands(self) -> list[Command]:
        _, commands = self._load()
        return sorted(commands, key=lambda c: c.line_number)

    def get_profile(self, title: str) -> Profile:
        found = _find(self.list_profiles(), title)
        if found is None:
            raise ProfileNotFound(title)
        return found

    def get_command(self, title: str) -> Command:
        found = _find(self.list_commands(), title)
        if found is None:
            raise CommandNotFound(title)
        return found

    def snapshot(self) -> tuple[list[Profile], list[Command]]:
        profiles, commands = self._load()
        return profiles, sorted(commands, key=lambda c: c.line_number)

    # ── profiles ────────────────────────────────────────────────────────────

    def add_profile(self, profile: Profile):
        profiles, commands = self._load()
        if _find(profiles, profile.title) is not None:
            raise DuplicateTitle("profile", profile.title)
        self._save(profiles + [profile], commands)
        vlog(f"[store] added profile {profile.title!r}")

    def update_profile(self, title: str, profile: Profile) -> int:
        """
        Replace the fields of profile *title*. A changed title is a rename and
        cascades to commands. Returns the number of commands re-pointed.
        """
        profiles, commands = self._load()
        idx = _index(profiles, title)
        if idx is None:
            raise ProfileNotFound(title)
        if profile.title != title and _find(profiles, profile.title) is not None:
            raise DuplicateTitle("profile", profile.title)

        profiles = list(profiles)
        profiles[idx] = profile
        updated = 0
        if profile.title != title:
            commands, updated = _repoint(commands, title, profile.title)
        self._save(profiles, commands)
        vlog(f"[store] updated profile {title!r} ({updated} command(s) re-pointed)")
        return updated

    def rename_profile(self, old_title: str, new_title: str) -> int:
        current = self.get_profile(old_title)
        return self.update_profile(old_title, replace(current, title=new_title))

    def delete_profile(self, title: str):
        profiles, commands = self._load()
        if _find(profiles, title) is None:
            raise ProfileNotFound(title)
        self._save([p for p in profiles if p.title != title], commands)
        vlog(f"[store] deleted profile {title!r}")

    # ── commands ────────────────────────────────────────────────────────────

    def add_command(self, command: Command) -> Command:
        """Append *command*; its line number is assigned here. Returns the stored command."""
        profiles, commands = self._load()
        if _find(commands, command.title) is not None:
            raise DuplicateTitle("command", command.title)
        next_line = max((c.line_number for c in commands), default=0) + 1
        stored = replace(command, line_number=next_line)
        self._save(profiles, commands + [stored])
        vlog(f"[store] added command {stored.title!r} at line {next_line}")
        return stored

    def update_command(self, old_title: str, command: Command) -> Command:
        """Edit title/command/url/profile in place; the line number is kept."""
        profiles, commands = self._load()
        idx = _index(commands, old_title)
        if idx is None:
            raise CommandNotFound(old_title)
        if command.title != old_title and _find(commands, command.title) is not None:
            raise DuplicateTitle("command", command.title)
        commands = list(commands)
        stored = replace(command, line_number=commands[idx].line_number)
        commands[idx] = stored
        self._save(profiles, commands)
        return stored

    def delete_command(self, title: str):
        profiles, commands = self._load()
        if _find(commands, title) is None:
            raise CommandNotFound(title)
        self._save(profiles, [c for c in commands if c.title != title])
        vlog(f"[store] deleted command {title!r}")

    def reorder_commands(self, new_order: list[int]) -> list[Command]:
        """
        Persist a drag-reorder. *new_order* lists existing line numbers in the
        wanted order; each command gets line_number = position + 1. Commands
        missing from *new_order* keep their relative order after the listed ones.
        """
        profiles, commands = self._load()
        current = sorted(commands, key=lambda c: c.line_number)
        by_line = {c.line_number: n for n, c in enumerate(current)}
        wanted = [int(n) for n in new_order]
        unknown = [n for n in wanted if n not in by_line]
        if unknown:
            raise ValueError(f"unknown line number(s): {unknown}")
        if len(set(wanted)) != len(wanted):
            raise ValueError("line numbers in the new order must be unique")

        listed = {by_line[n] for n in wanted}
        ordered = [current[by_line[n]] for n in wanted]
        ordered += [c for n, c in enumerate(current) if n not in listed]
        renumbered = [replace(c, line_number=i + 1) for i, c in enumerate(ordered)]
        self._save(profiles, renumbered)
        return renumbered

    # ── whole document ──────────────────────────────────────────────────────

    def replace_all(self, profiles: list[Profile], commands: list[Command]):
        self._save(list(profiles), _normalize_lines(commands))
        vlog(f"[store] replaced with {len(profiles)} profile(s), {len(commands)} command(s)")


class LocalCredentialStore(CredentialStore):
    """profiles.json + commands.json in one local directory."""

    def __init__(self, backend):
        self.backend = backend

    def _read(self):
        profiles = [Profile.from_dict(p) for p in self.backend.read(LOCAL_PROFILES) or []]
        commands = [Command.from_dict(c) for c in self.backend.read(LOCAL_COMMANDS) or []]
        return profiles, commands

    def _save(self, profiles, commands):
        self.backend.write(LOCAL_PROFILES, [p.to_dict() for p in profiles])
        self.backend.write(LOCAL_COMMANDS, [c.to_dict() for c in commands])


class CloudCredentialStore(CredentialStore):
    """The profiles/commands halves of an account's configuration document."""

    def __init__(self, account):
        self.account = account

    def _read(self):
        cfg = self.account.load_configuration()
        return cfg.profiles, cfg.commands

    def _save(self, profiles, commands):
        cfg = self.account.load_configuration()
        self.account.save_configuration(
            Configuration(profiles=profiles, commands=commands, last_synced_at=cfg.last_synced_at)
        )


# ── helpers ─────────────────────────────────────────────────────────────────

def _find(items: list, title: str):
    return next((i for i in items if i.title == title), None)


def _index(items: list, title: str) -> Optional[int]:
    return next((n for n, i in enumerate(items) if i.title == title), None)


def _repoint(commands: list[Command], old: str, new: str) -> tuple[list[Command], int]:
    out, n = [], 0
    for c in commands:
        if c.profile == old:
            out.append(replace(c, profile=new))
            n += 1
        else:
            out.append(c)
    return out, n


def _normalize_lines(commands: list[Command]) -> list[Command]:
    """
    Line numbers must be positive and unique. Documents that break this
    (legacy files without lineNumber, hand-merged lists) are renumbered 1..N
    in their current order; ties keep document order.
    """
    ordered = sorted(commands, key=lambda c: c.line_number)
    numbers = [c.line_number for c in ordered]
    if len(set(numbers)) == len(numbers) and all(n > 0 for n in numbers):
        return list(commands)
    return [replace(c, line_number=i + 1) for i, c in enumerate(ordered)]
