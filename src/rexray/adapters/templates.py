"""Service descriptor rendering.

Why it lives in adapters:
- The unit file and init script are infrastructure details (Jinja2); the
  core only knows the template fields.
"""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

UNIT_FILE_TEMPLATE = "unit_file.service.j2"
INIT_SCRIPT_TEMPLATE = "init_script.sh.j2"


def _get_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=False,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )


def render_unit_file(*, bin_file_name: str, bin_file_path: Path, env_file_path: Path) -> str:
    """Render the systemd unit file."""

    template = _get_env().get_template(UNIT_FILE_TEMPLATE)
    return template.render(
        bin_file_name=bin_file_name,
        bin_file_path=str(bin_file_path),
        env_file_path=str(env_file_path),
    )


def render_init_script(*, bin_file_name: str, bin_file_path: Path) -> str:
    """Render the LSB init script used by update-rc.d and chkconfig."""

    template = _get_env().get_template(INIT_SCRIPT_TEMPLATE)
    return template.render(
        bin_file_name=bin_file_name,
        bin_file_path=str(bin_file_path),
    )
