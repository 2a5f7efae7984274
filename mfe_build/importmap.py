"""Import map and module registry injection.

This module handles:
- Rendering the browser import map and the runtime registry script
- Choosing the HTML shell to inject into (local or remote baseline)
- Replacing the placeholder or the previously injected fragments
- Writing the updated shell

A freshly built container emits a shell that carries a placeholder
comment; any other shell already carries an import map and registry from
an earlier run, and those are swapped in place.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from mfe_build.context import RunContext
from mfe_build.manifest.baseline import fetch_remote_html
from mfe_build.manifest.store import write_atomic

logger = logging.getLogger(__name__)


def _script_json(value: Any) -> str:
    """Serialize JSON safe for inclusion in an inline script."""
    return json.dumps(value, separators=(",", ":"), sort_keys=True).replace("</", "<\\/")


def render_import_map(imports: dict[str, str]) -> str:
    """Render ``<script type="importmap">`` for module name -> URL."""
    return f'<script type="importmap">{_script_json({"imports": imports})}</script>'


def render_registry(registry: dict[str, dict[str, str]], global_name: str = "mfe") -> str:
    """Render the script assigning the registry to ``window.<global_name>.modules``."""
    return (
        f"<script>window.{global_name} = window.{global_name} || {{}};"
        f"window.{global_name}.modules = {_script_json(registry)}</script>"
    )


def injected_pattern(global_name: str = "mfe") -> re.Pattern[str]:
    """Pattern matching a previously injected import map and registry pair."""
    return re.compile(
        r'<script type="importmap">.+?<script>window\.'
        + re.escape(global_name)
        + r".+?</script>",
        re.DOTALL,
    )


def inject(
    html: str,
    fragment: str,
    container_rebuilt: bool,
    placeholder: str = "<!-- mfe placeholder -->",
    global_name: str = "mfe",
) -> tuple[str, bool]:
    """Put ``fragment`` into the shell.

    Args:
        html: Shell document.
        fragment: Import map plus registry markup.
        container_rebuilt: Whether the shell is a fresh container build.
        placeholder: Marker a fresh shell carries.
        global_name: Registry global, used to find earlier injections.

    Returns:
        Tuple of (updated HTML, whether a replacement happened).
    """
    if container_rebuilt:
        if placeholder not in html:
            return html, False
        return html.replace(placeholder, fragment, 1), True

    updated, count = injected_pattern(global_name).subn(lambda _: fragment, html, count=1)
    return updated, count > 0


async def load_shell(ctx: RunContext) -> str | None:
    """Return the shell to inject into, or None when there is none yet.

    The local artifact directory is authoritative in local mode and when
    the container was rebuilt; otherwise the remote baseline shell is used.

    Raises:
        FetchError: If the remote shell cannot be fetched.
    """
    settings = ctx.settings
    if ctx.container_rebuilt or not ctx.mode.is_remote:
        try:
            return settings.html_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    if ctx.client is None or ctx.baseline_url is None:
        raise ValueError("remote runs need an HTTP client and a baseline URL")
    return await fetch_remote_html(
        ctx.client,
        ctx.baseline_url,
        settings.html_name,
        timeout=settings.fetch_timeout,
    )


async def assemble(ctx: RunContext) -> bool:
    """Inject the current import map and registry into the shell and write it.

    Returns:
        True if the shell was written.
    """
    settings = ctx.settings
    html = await load_shell(ctx)
    if html is None:
        logger.warning(
            "No HTML shell at %s yet; build the container to create one",
            settings.html_path,
        )
        return False

    fragment = render_import_map(ctx.store.import_map()) + render_registry(
        ctx.store.registry(), settings.registry_global
    )
    updated, replaced = inject(
        html,
        fragment,
        ctx.container_rebuilt,
        placeholder=settings.html_placeholder,
        global_name=settings.registry_global,
    )
    if not replaced:
        logger.warning("No injection point found in the HTML shell; left unchanged")

    write_atomic(settings.html_path, updated)
    logger.info("Wrote HTML shell to %s", settings.html_path)
    return True


__all__ = [
    "assemble",
    "inject",
    "injected_pattern",
    "load_shell",
    "render_import_map",
    "render_registry",
]
