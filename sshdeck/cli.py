#!/usr/bin/env python3
"""
sshdeck  —  SSH command deck with multi-device cloud sync
=========================================================

Subcommands:
  init      Write the global config.yaml (cloud location, account, timeout).
  profile   Manage SSH connection profiles.
  command   Manage stored commands and their order.
  run       Run a stored command on its profile.
  exec      Run ad-hoc command text on a profile.
  cloud     Push/pull the configuration to/from the cloud account.
  device    Register this device, heartbeat, log out, list or remove devices.
  agent     Keep this device online and apply pushed configurations.

Run 'sshdeck <subcommand> --help' for more details.
"""
import argparse
import getpass
import sys
from pathlib import Path

_open_backends: list = []


# ── setup helpers ────────────────────────────────────────────────────────────

def _load_settings(args):
    """config.yaml → SSHDECK_* env → command-line flags, later wins."""
    from sshdeck import config as _cfg
    from sshdeck.utils.logging import set_verbose

    _cfg.apply_settings(_cfg.load_config_file())
    _cfg.apply_env()
    overrides = {}
    if getattr(args, "data_dir", None):
        overrides["data_dir"] = args.data_dir
    if getattr(args, "cloud", None):
        overrides["cloud_url"] = args.cloud
    if getattr(args, "account", None):
        overrides["account"] = args.account
    _cfg.apply_settings(overrides)
    set_verbose(getattr(args, "verbose", False))


def _local_store():
    from sshdeck import config as _cfg
    from sshdeck.store import DirectoryBackend, LocalCredentialStore
    return LocalCredentialStore(DirectoryBackend(_cfg.get_data_dir()))


def _account():
    from sshdeck import config as _cfg
    from sshdeck.cloud import CloudAccount
    from sshdeck.store import open_backend

    if not _cfg.CLOUD_URL or not _cfg.ACCOUNT:
        print("error: no cloud configured (need cloud_url and account).", file=sys.stderr)
        print("Run 'sshdeck init --cloud URL --account NAME' or pass --cloud/--account.",
              file=sys.stderr)
        sys.exit(1)
    backend = open_backend(_cfg.CLOUD_URL)
    _open_backends.append(backend)
    return CloudAccount(backend, _cfg.ACCOUNT)


def _close_backends():
    while _open_backends:
        close = getattr(_open_backends.pop(), "close", None)
        if close is not None:
            close()


def _confirm(message: str, assume_yes: bool) -> bool:
    if assume_yes:
        return True
    if not sys.stdin.isatty():
        print(f"error: {message} Re-run with --yes to confirm.", file=sys.stderr)
        return False
    try:
        choice = input(f"{message} Continue? [y/N]: ").strip().lower()
    except (EOFError, KeyboardInterrupt):
        choice = "n"
    return choice in ("y", "yes")


def _fmt_ts(ts) -> str:
    return ts.strftime("%Y-%m-%d %H:%M:%S UTC") if ts else "never"


# ── init ─────────────────────────────────────────────────────────────────────

def cmd_init(args):
    """Write the global config.yaml."""
    import yaml
    from sshdeck import config as _cfg

    target = Path(args.config) if args.config else _cfg.get_config_file()
    if target.exists() and not args.force:
        print(f"error: {target} already exists", file=sys.stderr)
        print("Use --force to overwrite.", file=sys.stderr)
        sys.exit(1)

    settings = {
        "data_dir": args.data_dir or str(_cfg.get_global_config_dir() / "data"),
        "command_timeout_ms": args.timeout or _cfg.COMMAND_TIMEOUT_MS,
    }
    if args.cloud:
        settings["cloud_url"] = args.cloud
    if args.account:
        settings["account"] = args.account

    content = "# sshdeck configuration\n" + yaml.safe_dump(settings, sort_keys=False)

    if args.dry_run:
        print(f"[dry-run] Would write {target}:")
        print(content)
        return

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    print(f"Created {target}")
    if args.verbose:
        print(content)


# ── profile ──────────────────────────────────────────────────────────────────

def cmd_profile(args):
    from sshdeck.models import Profile

    store = _local_store()
    sub = args.profile_sub

    if sub == "list":
        profiles = store.list_profiles()
        if not profiles:
            print("No profiles.")
        for p in profiles:
            print(f"{p.title:<24} {p.username}@{p.host}:{p.port}")
    elif sub == "add":
        password = args.password
        if password is None:
            password = getpass.getpass(f"Password for {args.user}@{args.host}: ")
        store.add_profile(Profile(title=args.title, username=args.user, password=password,
                                  host=args.host, port=args.port))
        print(f"Added profile {args.title!r}")
    elif sub == "edit":
        current = store.get_profile(args.title)
        edited = Profile(
            title=args.new_title or current.title,
            username=args.user or current.username,
            password=current.password if args.password is None else args.password,
            host=args.host or current.host,
            port=args.port or current.port,
        )
        moved = store.update_profile(args.title, edited)
        print(f"Updated profile {edited.title!r}"
              + (f" ({moved} command(s) re-pointed)" if moved else ""))
    elif sub == "rename":
        moved = store.rename_profile(args.old, args.new)
        print(f"Renamed profile {args.old!r} → {args.new!r} ({moved} command(s) re-pointed)")
    elif sub == "delete":
        store.delete_profile(args.title)
        print(f"Deleted profile {args.title!r}")
    else:
        print("error: a subcommand is required (list, add, edit, rename, delete).", file=sys.stderr)
        sys.exit(1)


# ── command ──────────────────────────────────────────────────────────────────

def cmd_command(args):
    from sshdeck.models import Command

    store = _local_store()
    sub = args.command_sub

    if sub == "list":
        commands = store.list_commands()
        if not commands:
            print("No commands.")
        for c in commands:
            url = f"  <{c.url}>" if c.url else ""
            print(f"{c.line_number:>3}. {c.title:<24} [{c.profile}] {c.command}{url}")
    elif sub == "add":
        stored = store.add_command(Command(line_number=0, title=args.title, command=args.text,
                                           profile=args.profile, url=args.url or ""))
        print(f"Added command {stored.title!r} at line {stored.line_number}")
    elif sub == "edit":
        current = store.get_command(args.title)
        edited = Command(
            line_number=current.line_number,
            title=args.new_title or current.title,
            command=args.text or current.command,
            profile=args.profile or current.profile,
            url=current.url if args.url is None else args.url,
        )
        store.update_command(args.title, edited)
        print(f"Updated command {edited.title!r}")
    elif sub == "delete":
        store.delete_command(args.title)
        print(f"Deleted command {args.title!r}")
    elif sub == "reorder":
        for c in store.reorder_commands(args.order):
            print(f"{c.line_number:>3}. {c.title}")
    else:
        print("error: a subcommand is required (list, add, edit, delete, reorder).", file=sys.stderr)
        sys.exit(1)


# ── run / exec ───────────────────────────────────────────────────────────────

def _print_output(text: str):
    sys.stdout.write(text)
    if text and not text.endswith("\n"):
        sys.stdout.write("\n")
    sys.stdout.flush()


def cmd_run(args):
    from sshdeck.core.executor import CommandExecutor

    result = CommandExecutor(_local_store()).run_command(args.title, timeout_ms=args.timeout)
    _print_output(result.output)


def cmd_exec(args):
    from sshdeck.core.executor import CommandExecutor

    result = CommandExecutor(_local_store()).execute(" ".join(args.text), args.profile,
                                                 timeout_ms=args.timeout)
    _print_output(result.output)


# ── cloud ────────────────────────────────────────────────────────────────────

def cmd_cloud(args):
    from sshdeck.cloud import SyncReconciler

    account = _account()
    reconciler = SyncReconciler(account)
    store = _local_store()
    sub = args.cloud_sub

    if sub == "status":
        stats = reconciler.stats()
        profiles, commands = store.snapshot()
        print(f"\nAccount     : {account.name}")
        print(f"Cloud       : {account.backend.describe()}")
        print(f"Local       : {len(profiles)} profile(s), {len(commands)} command(s)")
        print(f"Remote      : {stats['profiles']} profile(s), {stats['commands']} command(s)")
        print(f"Last synced : {_fmt_ts(stats['last_synced_at'])}")
    elif sub == "push":
        if not _confirm("This will REPLACE all cloud data with your local data.", args.yes):
            sys.exit(1)
        cfg = reconciler.push_from(store)
        print(f"Pushed {len(cfg.profiles)} profile(s), {len(cfg.commands)} command(s) to cloud.")
    elif sub == "pull":
        if not _confirm("This will REPLACE all local data with cloud data.", args.yes):
            sys.exit(1)
        profiles, commands = reconciler.pull_into(store)
        print(f"Pulled {len(profiles)} profile(s), {len(commands)} command(s) from cloud.")
    elif sub == "push-to-devices":
        staged = reconciler.push_to_devices(args.device_ids)
        print(f"Configuration queued for push to {len(staged)} device(s).")
        skipped = [d for d in args.device_ids if d not in staged]
        if skipped:
            print(f"Unknown device(s) skipped: {', '.join(skipped)}")
    else:
        print("error: a subcommand is required (status, push, pull, push-to-devices).",
              file=sys.stderr)
        sys.exit(1)


# ── device ───────────────────────────────────────────────────────────────────

def cmd_device(args):
    from sshdeck.cloud import SyncReconciler
    from sshdeck.device import local_device_id, local_device_name

    sub = args.device_sub

    if sub == "whoami":
        print(f"{local_device_id()}  {local_device_name()}")
        return

    account = _account()
    registry = account.registry
    device_id = local_device_id()

    if sub == "register":
        registry.register_device(device_id, local_device_name())
        print(f"Registered {device_id}")
    elif sub == "heartbeat":
        registry.heartbeat(device_id)
        print(f"Heartbeat sent for {device_id}")
    elif sub == "logout":
        registry.explicit_logout(device_id)
        print(f"{device_id} marked offline")
    elif sub == "list":
        statuses = registry.list_devices()
        if not statuses:
            print("No devices.")
        for s in statuses:
            d = s.device
            state = "online" if s.effective_online else "offline"
            mark = "*" if d.device_id == device_id else " "
            pending = "  [push pending]" if d.pending_push else ""
            print(f"{mark} {d.device_id:<40} {state:<8} {d.device_name}  "
                  f"(last seen {_fmt_ts(d.last_seen)}){pending}")
    elif sub == "remove":
        registry.remove_device(args.device_id)
        print(f"Removed {args.device_id}")
    elif sub == "check":
        applied = SyncReconciler(account).check_and_apply_pending_push(device_id, _local_store())
        print("Configuration updated from cloud." if applied else "No pending push.")
    else:
        print("error: a subcommand is required "
              "(register, heartbeat, logout, list, remove, check, whoami).", file=sys.stderr)
        sys.exit(1)


# ── agent ────────────────────────────────────────────────────────────────────

def cmd_agent(args):
    from sshdeck.session import DeviceSession

    DeviceSession(_account(), _local_store()).run_forever()


# ── main ──────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", help="Show extra output")
    common.add_argument("--data-dir", metavar="PATH",
                        help="Local store directory (profiles.json, commands.json)")
    common.add_argument("--cloud", metavar="URL",
                        help="Cloud location: file:///path or sftp://user@host:port/path")
    common.add_argument("--account", metavar="NAME", help="Cloud account name")

    parser = argparse.ArgumentParser(
        prog="sshdeck",
        description="SSH command deck with multi-device cloud sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # ── init ──────────────────────────────────────────────────────────────────
    init_p = subparsers.add_parser("init", parents=[common],
                                   help="Write the global config.yaml")
    init_p.add_argument("--timeout", type=int, metavar="MS",
                        help="Command timeout in milliseconds (default: 10000)")
    init_p.add_argument("--config", metavar="PATH",
                        help="Write to PATH instead of the global config file")
    init_p.add_argument("--force", action="store_true", help="Overwrite an existing config")
    init_p.add_argument("-n", "--dry-run", action="store_true",
                        help="Preview without writing files")

    # ── profile ───────────────────────────────────────────────────────────────
    profile_p = subparsers.add_parser("profile", help="Manage SSH connection profiles")
    profile_sub = profile_p.add_subparsers(dest="profile_sub", metavar="ACTION")
    profile_sub.add_parser("list", parents=[common], help="List profiles")
    p = profile_sub.add_parser("add", parents=[common], help="Add a profile")
    p.add_argument("title")
    p.add_argument("--host", required=True)
    p.add_argument("--user", required=True)
    p.add_argument("--password", help="Prompted for when omitted")
    p.add_argument("--port", type=int, default=22)
    p = profile_sub.add_parser("edit", parents=[common], help="Edit a profile")
    p.add_argument("title")
    p.add_argument("--title", dest="new_title", metavar="NEW_TITLE")
    p.add_argument("--host")
    p.add_argument("--user")
    p.add_argument("--password")
    p.add_argument("--port", type=int)
    p = profile_sub.add_parser("rename", parents=[common],
                               help="Rename a profile and re-point its commands")
    p.add_argument("old")
    p.add_argument("new")
    p = profile_sub.add_parser("delete", parents=[common], help="Delete a profile")
    p.add_argument("title")

    # ── command ───────────────────────────────────────────────────────────────
    command_p = subparsers.add_parser("command", help="Manage stored commands")
    command_sub = command_p.add_subparsers(dest="command_sub", metavar="ACTION")
    command_sub.add_parser("list", parents=[common], help="List commands in order")
    p = command_sub.add_parser("add", parents=[common], help="Add a command")
    p.add_argument("title")
    p.add_argument("text", help="Shell text to run remotely")
    p.add_argument("--profile", required=True, help="Profile title to run it on")
    p.add_argument("--url", help="Companion link")
    p = command_sub.add_parser("edit", parents=[common], help="Edit a command")
    p.add_argument("title")
    p.add_argument("--title", dest="new_title", metavar="NEW_TITLE")
    p.add_argument("--text")
    p.add_argument("--profile")
    p.add_argument("--url")
    p = command_sub.add_parser("delete", parents=[common], help="Delete a command")
    p.add_argument("title")
    p = command_sub.add_parser("reorder", parents=[common],
                               help="Reorder by listing current line numbers in the new order")
    p.add_argument("order", nargs="+", type=int, metavar="LINE")

    # ── run / exec ────────────────────────────────────────────────────────────
    run_p = subparsers.add_parser("run", parents=[common], help="Run a stored command")
    run_p.add_argument("title")
    run_p.add_argument("--timeout", type=int, metavar="MS",
                       help="Override the command timeout (milliseconds)")
    exec_p = subparsers.add_parser("exec", parents=[common], help="Run ad-hoc text on a profile")
    exec_p.add_argument("profile")
    exec_p.add_argument("text", nargs="+", help="Command text; words are joined with spaces")
    exec_p.add_argument("--timeout", type=int, metavar="MS",
                        help="Override the command timeout (milliseconds)")

    # ── cloud ─────────────────────────────────────────────────────────────────
    cloud_p = subparsers.add_parser("cloud", help="Sync with the cloud account")
    cloud_sub = cloud_p.add_subparsers(dest="cloud_sub", metavar="ACTION")
    cloud_sub.add_parser("status", parents=[common], help="Local vs. cloud counts")
    p = cloud_sub.add_parser("push", parents=[common], help="Replace cloud data with local data")
    p.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    p = cloud_sub.add_parser("pull", parents=[common], help="Replace local data with cloud data")
    p.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    p = cloud_sub.add_parser("push-to-devices", parents=[common],
                             help="Queue the cloud configuration for other devices")
    p.add_argument("device_ids", nargs="+", metavar="DEVICE_ID")

    # ── device ────────────────────────────────────────────────────────────────
    device_p = subparsers.add_parser("device", help="Device registration and liveness")
    device_sub = device_p.add_subparsers(dest="device_sub", metavar="ACTION")
    device_sub.add_parser("register", parents=[common], help="Register this device")
    device_sub.add_parser("heartbeat", parents=[common], help="Send one heartbeat")
    device_sub.add_parser("logout", parents=[common], help="Mark this device offline")
    device_sub.add_parser("list", parents=[common], help="List devices and their status")
    p = device_sub.add_parser("remove", parents=[common], help="Remove a device")
    p.add_argument("device_id")
    device_sub.add_parser("check", parents=[common], help="Apply a pending push, if any")
    device_sub.add_parser("whoami", parents=[common], help="Show this device's id and name")

    # ── agent ─────────────────────────────────────────────────────────────────
    subparsers.add_parser("agent", parents=[common],
                          help="Heartbeat and apply pushed configurations until Ctrl-C")

    return parser


def main(argv=None):
    """CLI entry point for sshdeck"""
    from sshdeck.errors import DuplicateTitle, SshDeckError

    parser = build_parser()
    args = parser.parse_args(argv)

    handlers = {
        "init": cmd_init,
        "profile": cmd_profile,
        "command": cmd_command,
        "run": cmd_run,
        "exec": cmd_exec,
        "cloud": cmd_cloud,
        "device": cmd_device,
        "agent": cmd_agent,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    try:
        _load_settings(args)
        handler(args)
    except DuplicateTitle as exc:
        print(f"conflict: {exc}", file=sys.stderr)
        sys.exit(2)
    except (SshDeckError, ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        _close_backends()


if __name__ == "__main__":
    main()
