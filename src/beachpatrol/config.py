from __future__ import annotations

import os
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_BROWSERS: tuple[str, ...] = ("chromium", "firefox")

# Chromium needs these to get GPU acceleration under a Wayland session.
_WAYLAND_CHROMIUM_ARGS = [
    "--ozone-platform-hint=auto",
    "--enable-features=AcceleratedVideoDecodeLinuxGL",
    "--use-gl=angle",
    "--use-angle=vulkan",
]


def _default_launch_options() -> dict:
    return {
        "headless": False,
        "args": [],
        # No "controlled by automated test software" infobar
        "ignore_default_args": ["--enable-automation"],
    }


class BrowserConfig(BaseModel):
    browser_name: Literal["chromium", "firefox"] = "chromium"
    profile: str = "default"
    incognito: bool = False
    launch_options: dict = Field(default_factory=_default_launch_options)
    context_options: dict = Field(default_factory=lambda: {"no_viewport": True})
    extension_dir: str | None = None


class BeachpatrolConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BEACHPATROL_",
        env_nested_delimiter="__",
    )

    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    commands_dir: str | None = None
    max_message_size: int = 1024 * 1024
    log_level: Literal["error", "warning", "info", "debug"] = "info"


def _is_truthy(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes")


def apply_env_overrides(config: BeachpatrolConfig) -> BeachpatrolConfig:
    """Apply the desktop environment variables that tune the browser launch.

    These come from the surrounding session rather than from ``BEACHPATROL_*``
    settings, so pydantic-settings does not pick them up on its own.
    """
    bcfg = config.browser

    # CI -> no chromium sandbox (containers rarely allow user namespaces)
    ci = os.environ.get("CI")
    if ci is not None and _is_truthy(ci) and bcfg.browser_name == "chromium":
        bcfg.launch_options["chromium_sandbox"] = False

    # XDG_SESSION_TYPE=wayland -> chromium Ozone/ANGLE flags
    if (
        os.environ.get("XDG_SESSION_TYPE") == "wayland"
        and bcfg.browser_name == "chromium"
    ):
        args = list(bcfg.launch_options.get("args", []))
        for flag in _WAYLAND_CHROMIUM_ARGS:
            if flag not in args:
                args.append(flag)
        bcfg.launch_options["args"] = args

    return config


def load_config(
    *,
    profile: str | None = None,
    browser: str | None = None,
    incognito: bool = False,
    headless: bool = False,
) -> BeachpatrolConfig:
    """Build the server configuration.

    Priority (highest to lowest):
        1. Command-line flags passed as keyword arguments
        2. ``BEACHPATROL_*`` environment variables (via pydantic-settings)
        3. Built-in defaults

    Desktop environment overrides (``CI``, ``XDG_SESSION_TYPE``) are applied
    last since they depend on the chosen browser.
    """
    config = BeachpatrolConfig()
    bcfg = config.browser

    if profile:
        bcfg.profile = profile
    if browser:
        if browser not in SUPPORTED_BROWSERS:
            raise ValueError(f"Unsupported browser {browser}")
        bcfg.browser_name = browser  # type: ignore[assignment]
    if incognito:
        bcfg.incognito = True
    if headless:
        bcfg.launch_options["headless"] = True

    return apply_env_overrides(config)


def get_version() -> str:
    """Return the package version string."""
    try:
        from importlib.metadata import version

        return version("beachpatrol")
    except Exception:
        return "0.4.0"


def launch_kwargs(config: BeachpatrolConfig) -> dict[str, Any]:
    """Return the launch options with the incognito flag for the chosen browser."""
    bcfg = config.browser
    opts = dict(bcfg.launch_options)
    args = list(opts.get("args", []))
    if bcfg.incognito:
        flag = "--incognito" if bcfg.browser_name == "chromium" else "-private-window"
        if flag not in args:
            args.append(flag)
    if bcfg.extension_dir and bcfg.browser_name == "chromium":
        args.append(f"--disable-extensions-except={bcfg.extension_dir}")
        args.append(f"--load-extension={bcfg.extension_dir}")
        # playwright's defaults include --disable-extensions
        ignored = opts.get("ignore_default_args")
        if isinstance(ignored, list) and "--disable-extensions" not in ignored:
            opts["ignore_default_args"] = [*ignored, "--disable-extensions"]
    opts["args"] = args
    return opts
