"""Roles command - list angel role templates."""

import typer

from jubilee.api.cli.output_formatter import JubileeConsole
from jubilee.api.cli.runtime import get_settings, is_debug
from jubilee.core.domain.roles import load_role_catalog


def list_roles(ctx: typer.Context):
    """List angel roles and whether their feature mode is enabled."""
    settings = get_settings(ctx)
    catalog = load_role_catalog(settings.roles_path)
    enabled = {role.key: settings.mode_enabled(role.required_mode) for role in catalog}
    JubileeConsole(debug=is_debug(ctx)).print_roles(catalog, enabled)
