#!/usr/bin/env python3
"""Web app installer CLI.

Creates browser app-mode launchers and desktop entries for web apps, one at a
time or per preset category, and maintains launchers created earlier.

Usage:
  webapp_installer.py                                        interactive menu
  webapp_installer.py create --name "App" --url "https://example.com"
  webapp_installer.py create-category work --overwrite never
  webapp_installer.py fix-wayland --dry-run
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path

try:
    from webapp_scripts.webapp_common import (
        DEFAULT_WAYLAND_WRAPPER,
        DEFAULT_X11_BROWSER,
        LOG_FILE_RELATIVE,
        InvalidInput,
        WebAppError,
        get_target_home,
        setup_logger,
    )
    from webapp_scripts.webapp_engine import (
        GenerateResult,
        GeneratorConfig,
        OverwritePolicy,
        WebAppGenerator,
        WebAppSpec,
        negotiate_batch_policy,
    )
    from webapp_scripts.webapp_maintenance import fix_launchers, list_installed
    from webapp_scripts.webapp_presets import PresetCategory, load_presets
except ModuleNotFoundError:
    from webapp_common import (
        DEFAULT_WAYLAND_WRAPPER,
        DEFAULT_X11_BROWSER,
        LOG_FILE_RELATIVE,
        InvalidInput,
        WebAppError,
        get_target_home,
        setup_logger,
    )
    from webapp_engine import (
        GenerateResult,
        GeneratorConfig,
        OverwritePolicy,
        WebAppGenerator,
        WebAppSpec,
        negotiate_batch_policy,
    )
    from webapp_maintenance import fix_launchers, list_installed
    from webapp_presets import PresetCategory, load_presets


# -------------------------------- Output ------------------------------------ #


def say(msg: str = "") -> None:
    print(msg)


def info(msg: str) -> None:
    say(f"  [*] {msg}")


def ok(msg: str) -> None:
    say(f"  [OK] {msg}")


def warn(msg: str) -> None:
    say(f"  [!] {msg}")


def err(msg: str) -> None:
    print(f"  [X] {msg}", file=sys.stderr)


def prompt(text: str) -> str:
    try:
        return input(f"  {text}").strip()
    except EOFError:
        return ""


def _yes(value: str) -> bool:
    return value.strip().lower() in {"y", "yes"}


# ------------------------------- Helpers ------------------------------------ #


def _home(args: argparse.Namespace) -> Path:
    return Path(args.home).expanduser() if args.home else get_target_home()


def _generator(args: argparse.Namespace) -> WebAppGenerator:
    cfg = GeneratorConfig.from_env(home=_home(args), browsers=args.browser)
    return WebAppGenerator(cfg)


def report_result(result: GenerateResult) -> None:
    for w in result.warnings:
        warn(w)
    if result.status == "created":
        ok(f"Created: {result.name}  ->  {result.launcher}")
    elif result.status == "skipped":
        info(f"Skipped: {result.name}")
    else:
        err(f"{result.name}: {result.error}")


def negotiate_policy(generator: WebAppGenerator, category: PresetCategory) -> OverwritePolicy:
    existing = generator.existing([app.name for app in category.apps])
    if not existing:
        return OverwritePolicy.ASK
    say("")
    info(f"{len(existing)} of {len(category.apps)} apps already exist.")
    say("    1)  Ask for each app")
    say("    2)  Overwrite all")
    say("    3)  Skip all existing")
    return negotiate_batch_policy(prompt("How to handle existing apps? [1-3]: "))


def run_batch(
    generator: WebAppGenerator,
    category: PresetCategory,
    policy: OverwritePolicy,
    separate_profile: bool,
) -> int:
    say("")
    say(f"  Creating category: {category.title} ({len(category.apps)} apps)")
    say("  " + "-" * 40)
    results = generator.generate_batch(category.apps, policy, separate_profile=separate_profile)
    for result in results:
        report_result(result)

    created = sum(1 for r in results if r.status == "created")
    skipped = sum(1 for r in results if r.status == "skipped")
    failed = sum(1 for r in results if r.status == "failed")
    say("")
    ok(f"Category '{category.title}': {len(results)} apps processed ({created} created, {skipped} skipped, {failed} failed).")
    return 1 if failed else 0


# ------------------------------- Commands ----------------------------------- #


def create(args: argparse.Namespace) -> int:
    spec = WebAppSpec.create(
        name=args.name or "",
        url=args.url or "",
        separate_profile=_yes(args.separate),
        icon_url=args.icon_url,
    )
    result = _generator(args).generate(spec, args.overwrite)
    report_result(result)
    return 0


def create_category(args: argparse.Namespace) -> int:
    generator = _generator(args)
    category = load_presets(generator.config.home, args.presets_file).get(args.category)
    policy = OverwritePolicy.parse(args.overwrite)
    if policy is OverwritePolicy.ASK and sys.stdin.isatty():
        policy = negotiate_policy(generator, category)
    return run_batch(generator, category, policy, _yes(args.separate))


def categories(args: argparse.Namespace) -> int:
    catalog = load_presets(_home(args), args.presets_file)
    for key, category in catalog.categories.items():
        say(f"{key}: {category.title} ({len(category.apps)} apps)")
    return 0


def list_apps(args: argparse.Namespace) -> int:
    apps = list_installed(_home(args))
    if args.json:
        print(json.dumps([asdict(a) for a in apps], indent=2))
        return 0
    if not apps:
        say("No web apps installed.")
        return 0
    for a in apps:
        state = "ok" if a.launcher_exists else "missing"
        say(f"{a.app_id}: name={a.name} url={a.url or 'N/A'} launcher={state}")
    return 0


def fix_wayland(args: argparse.Namespace) -> int:
    bin_dir = GeneratorConfig(home=_home(args)).bin_dir
    say("")
    say(f"  WebApp Wayland fix, scanning: {bin_dir}")
    say("")
    report = fix_launchers(
        bin_dir,
        x11_browser=args.x11_browser,
        wayland_wrapper=args.wayland_wrapper,
        dry_run=args.dry_run,
    )
    for name in report.skipped:
        info(f"{name}: already has Wayland support")
    verb = "would fix" if report.dry_run else "fixed"
    for name in report.fixed:
        ok(f"{name}: {verb}")
    say("")
    ok(f"Done: {len(report.fixed)} launcher(s) {verb}, {len(report.skipped)} already up to date ({report.total} total)")
    if report.fixed and not report.dry_run:
        say(f"    Wayland  ->  {args.wayland_wrapper}")
        say(f"    X11      ->  {args.x11_browser}")
    return 0


def menu(args: argparse.Namespace) -> int:
    generator = _generator(args)
    catalog = load_presets(generator.config.home, args.presets_file)
    keys = list(catalog.categories)

    say("")
    say("  WebApp Installer")
    say("  " + "=" * 40)
    say("    1)  Create single app (manual)")
    for idx, key in enumerate(keys, start=2):
        say(f"    {idx})  Create all {catalog.categories[key].title} apps")
    exit_choice = str(len(keys) + 2)
    say(f"    {exit_choice})  Exit")
    say("")
    choice = prompt(f"Your choice [1-{exit_choice}]: ")

    if choice in {"", exit_choice}:
        info("Exiting.")
        return 0

    if choice == "1":
        name = prompt("App name: ")
        if not name:
            warn("No name given, aborting")
            return 0
        url = prompt("App URL:  ")
        if not url:
            warn("No URL given, aborting")
            return 0
        icon = prompt("Icon URL (optional, Enter to skip): ")
        sep = prompt("Separate browser profile? (y/n) [n]: ") or "n"
        spec = WebAppSpec.create(name=name, url=url, separate_profile=_yes(sep), icon_url=icon or None)
        say("")
        report_result(generator.generate(spec, args.overwrite))
        return 0

    if choice.isdigit() and 2 <= int(choice) < len(keys) + 2:
        category = catalog.categories[keys[int(choice) - 2]]
        policy = OverwritePolicy.parse(args.overwrite)
        if policy is OverwritePolicy.ASK:
            policy = negotiate_policy(generator, category)
        return run_batch(generator, category, policy, separate_profile=False)

    err(f"Invalid choice: {choice}")
    return 1


# ------------------------------- Parser ------------------------------------- #


def _add_overwrite(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--overwrite",
        choices=["ask", "always", "never", "yes", "no"],
        default="ask",
        help="What to do when the app already exists",
    )


def _add_presets(p: argparse.ArgumentParser) -> None:
    p.add_argument("--presets-file", default=None, help="JSON preset file merged over the bundled presets")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="webapp-installer",
        description="Create browser app-mode launchers and desktop entries for web apps",
    )
    p.add_argument("--home", default=None, help="Home directory to install into (default: invoking user's home)")
    p.add_argument("--log-file", default=None, help="Action log file")
    p.add_argument("--browser", action="append", default=None, help="Browser candidate, repeatable, in preference order")
    sub = p.add_subparsers(dest="command", required=True)

    x = sub.add_parser("create", help="Create a single web app")
    x.add_argument("--name", required=True)
    x.add_argument("--url", required=True)
    x.add_argument("--icon-url", default=None)
    x.add_argument("--separate", choices=["y", "n", "yes", "no"], default="n", help="Isolated browser profile")
    _add_overwrite(x)
    x.set_defaults(func=create)

    x = sub.add_parser("create-category", help="Create every web app of a preset category")
    x.add_argument("category")
    x.add_argument("--separate", choices=["y", "n", "yes", "no"], default="n")
    _add_overwrite(x)
    _add_presets(x)
    x.set_defaults(func=create_category)

    x = sub.add_parser("categories", help="List preset categories")
    _add_presets(x)
    x.set_defaults(func=categories)

    x = sub.add_parser("list", help="List installed web apps")
    x.add_argument("--json", action="store_true")
    x.set_defaults(func=list_apps)

    x = sub.add_parser("fix-wayland", help="Add run-time Wayland detection to older launchers")
    x.add_argument("--x11-browser", default=DEFAULT_X11_BROWSER)
    x.add_argument("--wayland-wrapper", default=DEFAULT_WAYLAND_WRAPPER)
    x.add_argument("--dry-run", action="store_true")
    x.set_defaults(func=fix_wayland)

    x = sub.add_parser("menu", help="Interactive terminal menu")
    _add_overwrite(x)
    _add_presets(x)
    x.set_defaults(func=menu)

    return p


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else list(argv)
    if not argv:
        argv = ["menu"]
    parser = build_parser()
    args = parser.parse_args(argv)

    log_file = Path(args.log_file) if args.log_file else _home(args) / LOG_FILE_RELATIVE
    setup_logger(log_file)

    try:
        return int(args.func(args))
    except InvalidInput as exc:
        err(str(exc))
        return 2
    except FileNotFoundError as exc:
        err(str(exc))
        return 2
    except WebAppError as exc:
        err(str(exc))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
