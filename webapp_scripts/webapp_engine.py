#!/usr/bin/env python3
"""Web app launcher generator.

Turns a display name and a URL into two artifacts under the user's home:
- ~/.local/bin/<app_id>                         executable bash launcher
- ~/.local/share/applications/<app_id>.desktop  desktop entry for app menus

The launcher picks the browser invocation at run time. Wayland sessions use
the wrapper binary when it is installed (or the baked browser with Ozone
flags), X11 sessions use the browser resolved at generation time. Optional
icons are installed through webapp_icons.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import os
import shlex
import shutil
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

from pydantic import BaseModel, ValidationError, field_validator

try:
    from webapp_scripts.webapp_common import (
        APP_NAME,
        APPLICATIONS_RELATIVE,
        DEFAULT_BROWSER_PREF,
        DEFAULT_WAYLAND_WRAPPER,
        FALLBACK_APP_ID,
        ICON_DOWNLOAD_TIMEOUT,
        ICON_SIZES,
        LOCAL_BIN_RELATIVE,
        WAYLAND_PLATFORM_FLAGS,
        WEBAPP_PROFILES_RELATIVE,
        WINDOW_CLASS_PREFIX,
        InvalidInput,
        NoBrowserFound,
        WebAppError,
        ask_yes_no,
        get_target_home,
    )
    from webapp_scripts.webapp_icons import IconInstaller
except ModuleNotFoundError:
    from webapp_common import (
        APP_NAME,
        APPLICATIONS_RELATIVE,
        DEFAULT_BROWSER_PREF,
        DEFAULT_WAYLAND_WRAPPER,
        FALLBACK_APP_ID,
        ICON_DOWNLOAD_TIMEOUT,
        ICON_SIZES,
        LOCAL_BIN_RELATIVE,
        WAYLAND_PLATFORM_FLAGS,
        WEBAPP_PROFILES_RELATIVE,
        WINDOW_CLASS_PREFIX,
        InvalidInput,
        NoBrowserFound,
        WebAppError,
        ask_yes_no,
        get_target_home,
    )
    from webapp_icons import IconInstaller


# ------------------------------ Data Models --------------------------------- #


class OverwritePolicy(str, enum.Enum):
    ASK = "ask"
    ALWAYS = "always"
    NEVER = "never"

    @classmethod
    def parse(cls, value: "str | OverwritePolicy") -> "OverwritePolicy":
        if isinstance(value, OverwritePolicy):
            return value
        text = str(value).strip().lower()
        aliases = {"yes": cls.ALWAYS, "y": cls.ALWAYS, "no": cls.NEVER, "n": cls.NEVER}
        if text in aliases:
            return aliases[text]
        try:
            return cls(text)
        except ValueError:
            raise InvalidInput(f"Unknown overwrite policy: {value} (use ask|always|never)") from None


class WebAppSpec(BaseModel):
    name: str
    url: str
    separate_profile: bool = False
    icon_url: str | None = None

    @field_validator("name", "url")
    @classmethod
    def _required_single_line(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        if "\n" in value or "\r" in value:
            raise ValueError("must be a single line")
        return value

    @field_validator("icon_url")
    @classmethod
    def _optional_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @classmethod
    def create(cls, **fields: Any) -> "WebAppSpec":
        try:
            return cls(**fields)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'spec'}: {err['msg']}" for err in exc.errors()
            )
            raise InvalidInput(f"Name and URL are required ({problems})") from exc


@dataclasses.dataclass(frozen=True)
class AppPaths:
    launcher: Path
    desktop_entry: Path
    profile_dir: Path

    def any_exists(self) -> bool:
        return self.launcher.exists() or self.desktop_entry.exists()


@dataclasses.dataclass
class GenerateResult:
    """Outcome of one generate() call."""

    status: str  # "created" | "skipped" | "failed"
    name: str
    app_id: str
    launcher: Path | None = None
    desktop_entry: Path | None = None
    icons: list[Path] = dataclasses.field(default_factory=list)
    warnings: list[str] = dataclasses.field(default_factory=list)
    error: str | None = None


@dataclasses.dataclass(slots=True)
class GeneratorConfig:
    home: Path = dataclasses.field(default_factory=get_target_home)
    browser_candidates: list[str] = dataclasses.field(default_factory=lambda: list(DEFAULT_BROWSER_PREF))
    wayland_wrapper: str | None = DEFAULT_WAYLAND_WRAPPER
    icon_sizes: tuple[int, ...] = ICON_SIZES
    icon_timeout: int = ICON_DOWNLOAD_TIMEOUT

    @classmethod
    def from_env(cls, home: Path | None = None, browsers: Sequence[str] | None = None) -> "GeneratorConfig":
        """Build a config from WEBAPP_* environment variables and CLI overrides."""
        cfg = cls(home=home) if home else cls()
        env_pref = os.environ.get("WEBAPP_BROWSER_PREF", "")
        if browsers:
            cfg.browser_candidates = list(browsers)
        elif env_pref.strip():
            cfg.browser_candidates = [b for b in env_pref.split(":") if b.strip()]
        if "WEBAPP_WAYLAND_WRAPPER" in os.environ:
            cfg.wayland_wrapper = os.environ["WEBAPP_WAYLAND_WRAPPER"].strip() or None
        return cfg

    @property
    def bin_dir(self) -> Path:
        return self.home / LOCAL_BIN_RELATIVE

    @property
    def applications_dir(self) -> Path:
        return self.home / APPLICATIONS_RELATIVE

    @property
    def profiles_dir(self) -> Path:
        return self.home / WEBAPP_PROFILES_RELATIVE

    def paths_for(self, app_id: str) -> AppPaths:
        return AppPaths(
            launcher=self.bin_dir / app_id,
            desktop_entry=self.applications_dir / f"{app_id}.desktop",
            profile_dir=self.profiles_dir / app_id,
        )


# ------------------------------ Identifiers --------------------------------- #


def derive_app_id(name: str) -> str:
    """Lowercase ASCII alphanumeric token, always starting with a letter."""
    token = "".join(ch for ch in name.lower() if ch.isascii() and ch.isalnum())
    if not token:
        return FALLBACK_APP_ID
    if not token[0].isalpha():
        token = f"x{token}"
    return token


def window_class(app_id: str) -> str:
    return f"{WINDOW_CLASS_PREFIX}{app_id}"


# --------------------------- Browser resolution ----------------------------- #


def resolve_browser(candidates: Iterable[str]) -> str:
    """Return the first usable browser from candidates.

    Absolute candidates must be executable files; bare names go through PATH.
    """
    tried: list[str] = []
    for cand in candidates:
        cand = cand.strip()
        if not cand:
            continue
        tried.append(cand)
        if os.path.isabs(cand):
            if os.path.isfile(cand) and os.access(cand, os.X_OK):
                return cand
            continue
        found = shutil.which(cand)
        if found:
            return found
    raise NoBrowserFound(f"No supported browser found (tried: {', '.join(tried) or 'nothing'})")


class SessionKind(str, enum.Enum):
    WAYLAND = "wayland"
    X11 = "x11"


@dataclasses.dataclass(frozen=True)
class BrowserStrategy:
    """How the launcher invokes the browser for one session kind."""

    session: SessionKind
    binary: str
    wrapper: str | None = None
    platform_args: tuple[str, ...] = ()


def session_strategies(browser_bin: str, wayland_wrapper: str | None) -> dict[SessionKind, BrowserStrategy]:
    return {
        SessionKind.WAYLAND: BrowserStrategy(
            session=SessionKind.WAYLAND,
            binary=browser_bin,
            wrapper=wayland_wrapper,
            platform_args=WAYLAND_PLATFORM_FLAGS,
        ),
        SessionKind.X11: BrowserStrategy(session=SessionKind.X11, binary=browser_bin),
    }


# ------------------------------- Templates ---------------------------------- #


def _fallback_names(candidates: Iterable[str]) -> list[str]:
    names: list[str] = []
    for cand in candidates:
        base = os.path.basename(cand.strip())
        if base and base not in names:
            names.append(base)
    return names


def _render_strategy(strategy: BrowserStrategy) -> list[str]:
    direct = [f"BROWSER_BIN={shlex.quote(strategy.binary)}"]
    if strategy.platform_args:
        direct.append(f"PLATFORM_ARGS=( {' '.join(shlex.quote(a) for a in strategy.platform_args)} )")

    lines = [f"    {strategy.session.value})"]
    if strategy.wrapper:
        wrapper = shlex.quote(strategy.wrapper)
        lines.append(f"        if command -v {wrapper} >/dev/null 2>&1; then")
        lines.append(f"            BROWSER_BIN={wrapper}")
        lines.append("        else")
        lines.extend(f"            {line}" for line in direct)
        lines.append("        fi")
    else:
        lines.extend(f"        {line}" for line in direct)
    lines.append("        ;;")
    return lines


def render_launcher(
    spec: WebAppSpec,
    app_id: str,
    paths: AppPaths,
    strategies: dict[SessionKind, BrowserStrategy],
    fallback_browsers: Sequence[str],
) -> str:
    q = shlex.quote
    case_arms: list[str] = []
    for kind in SessionKind:
        case_arms.extend(_render_strategy(strategies[kind]))

    lines = [
        "#!/usr/bin/env bash",
        "set -euo pipefail",
        "# WebApp launcher generated by webapp-installer.",
        "# The session type is resolved once at launch: wayland or x11.",
        "",
        f"APP_URL={q(spec.url)}",
        f"APP_ID={q(app_id)}",
        f"CLASS={q(window_class(app_id))}",
        f"PROFILE_DIR={q(str(paths.profile_dir))}",
        f"SEPARATE_PROFILE={1 if spec.separate_profile else 0}",
        f"FALLBACK_BROWSERS=( {' '.join(q(b) for b in fallback_browsers)} )",
        "",
        'SESSION="x11"',
        'if [[ -n "${WAYLAND_DISPLAY:-}" ]]; then',
        '    SESSION="wayland"',
        "fi",
        "",
        "PLATFORM_ARGS=()",
        'case "$SESSION" in',
        *case_arms,
        "esac",
        "",
        'if ! command -v "$BROWSER_BIN" >/dev/null 2>&1; then',
        '    BROWSER_BIN=""',
        '    for candidate in "${FALLBACK_BROWSERS[@]}"; do',
        '        if command -v "$candidate" >/dev/null 2>&1; then',
        '            BROWSER_BIN="$candidate"',
        "            break",
        "        fi",
        "    done",
        "fi",
        "",
        'if [[ -z "$BROWSER_BIN" ]]; then',
        '    exec xdg-open "$APP_URL"',
        "fi",
        "",
        'ARGS=( --class="$CLASS" --app="$APP_URL" )',
        'if [[ "$SEPARATE_PROFILE" == "1" ]]; then',
        '    mkdir -p "$PROFILE_DIR"',
        '    ARGS+=( --user-data-dir="$PROFILE_DIR" --profile-directory=Default )',
        "fi",
        "",
        'exec "$BROWSER_BIN" ${PLATFORM_ARGS[@]+"${PLATFORM_ARGS[@]}"} "${ARGS[@]}" >/dev/null 2>&1',
    ]
    return "\n".join(lines) + "\n"


def _desktop_exec(path: Path) -> str:
    # "%" introduces a field code in Exec=
    text = str(path).replace("%", "%%")
    if not any(ch in text for ch in " \t\"'\\`$"):
        return text
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("`", "\\`").replace("$", "\\$")
    return f'"{escaped}"'


def render_desktop_entry(spec: WebAppSpec, app_id: str, paths: AppPaths) -> str:
    lines = [
        "[Desktop Entry]",
        f"Name={spec.name}",
        f"Comment=WebApp for {spec.url}",
        f"Exec={_desktop_exec(paths.launcher)}",
        "Terminal=false",
        "Type=Application",
        f"Icon={app_id}",
        "Categories=Network;",
        f"StartupWMClass={window_class(app_id)}",
    ]
    return "\n".join(lines) + "\n"


# ------------------------------- Generator ---------------------------------- #

AskFn = Callable[[str], bool]


def _default_ask(question: str) -> bool:
    return ask_yes_no(question, default_yes=False)


def negotiate_batch_policy(choice: str) -> OverwritePolicy:
    """Map the up-front batch menu answer to a policy.

    1 (or empty) asks per app, 2 overwrites all, 3 skips all.
    """
    mapping = {
        "": OverwritePolicy.ASK,
        "1": OverwritePolicy.ASK,
        "2": OverwritePolicy.ALWAYS,
        "3": OverwritePolicy.NEVER,
    }
    key = choice.strip()
    if key not in mapping:
        raise InvalidInput(f"Invalid choice: {choice}")
    return mapping[key]


class WebAppGenerator:
    """Create launcher + desktop entry pairs for web apps."""

    def __init__(
        self,
        config: GeneratorConfig,
        icon_installer: IconInstaller | None = None,
        logger: logging.Logger | None = None,
    ):
        self.config = config
        self.logger = logger or logging.getLogger(APP_NAME)
        self.icons = icon_installer or IconInstaller.for_home(
            config.home,
            sizes=config.icon_sizes,
            timeout=config.icon_timeout,
            logger=self.logger,
        )

    def existing(self, names: Iterable[str]) -> list[str]:
        """Names whose launcher or desktop entry is already on disk."""
        return [n for n in names if self.config.paths_for(derive_app_id(n)).any_exists()]

    def generate(
        self,
        spec: WebAppSpec,
        policy: OverwritePolicy | str = OverwritePolicy.ASK,
        ask: AskFn | None = None,
    ) -> GenerateResult:
        if not isinstance(spec, WebAppSpec):
            raise InvalidInput("Name and URL are required")
        policy = OverwritePolicy.parse(policy)
        app_id = derive_app_id(spec.name)
        paths = self.config.paths_for(app_id)
        browser_bin = resolve_browser(self.config.browser_candidates)

        if paths.any_exists():
            if policy is OverwritePolicy.NEVER:
                self.logger.info("webapp_skipped id=%s reason=exists policy=never", app_id)
                return GenerateResult("skipped", spec.name, app_id, paths.launcher, paths.desktop_entry)
            if policy is OverwritePolicy.ASK and not (ask or _default_ask)(f"Overwrite '{spec.name}'?"):
                self.logger.info("webapp_skipped id=%s reason=declined", app_id)
                return GenerateResult("skipped", spec.name, app_id, paths.launcher, paths.desktop_entry)

        for directory in (self.config.bin_dir, self.config.applications_dir, self.config.profiles_dir):
            directory.mkdir(parents=True, exist_ok=True)

        result = GenerateResult("created", spec.name, app_id, paths.launcher, paths.desktop_entry)
        if spec.icon_url:
            icon_result = self.icons.install(spec.icon_url, app_id)
            result.icons = icon_result.installed
            result.warnings.extend(icon_result.warnings)

        strategies = session_strategies(browser_bin, self.config.wayland_wrapper)
        launcher = render_launcher(spec, app_id, paths, strategies, _fallback_names(self.config.browser_candidates))
        paths.launcher.write_text(launcher, encoding="utf-8")
        paths.launcher.chmod(0o755)

        paths.desktop_entry.write_text(render_desktop_entry(spec, app_id, paths), encoding="utf-8")
        paths.desktop_entry.chmod(0o644)

        self.logger.info(
            "webapp_created id=%s launcher=%s desktop=%s browser=%s icons=%s",
            app_id,
            paths.launcher,
            paths.desktop_entry,
            browser_bin,
            len(result.icons),
        )
        return result

    def generate_batch(
        self,
        presets: Sequence[Any],
        policy: OverwritePolicy | str,
        separate_profile: bool = False,
        ask: AskFn | None = None,
    ) -> list[GenerateResult]:
        """Run generate() over presets in order; one failure never stops the rest."""
        policy = OverwritePolicy.parse(policy)
        results: list[GenerateResult] = []
        for preset in presets:
            name = str(getattr(preset, "name", "") or "")
            try:
                spec = WebAppSpec.create(
                    name=name,
                    url=str(getattr(preset, "url", "") or ""),
                    separate_profile=separate_profile,
                )
                results.append(self.generate(spec, policy, ask=ask))
            except (WebAppError, OSError) as exc:
                self.logger.error("webapp_failed name=%s err=%s", name, exc)
                results.append(GenerateResult("failed", name, derive_app_id(name), error=str(exc)))
        return results
