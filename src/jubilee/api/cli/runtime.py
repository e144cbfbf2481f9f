"""Shared setup for CLI commands: logging, settings and the agent service."""

import logging
from pathlib import Path
from typing import Optional

import structlog
import typer

from jubilee.application.factory import JubileeFactory
from jubilee.application.service import AgentService
from jubilee.application.settings import JubileeSettings


def configure_logging(debug: bool, level: str = "WARNING") -> None:
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(level=log_level, format="%(message)s")
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
    )


def get_settings(ctx: typer.Context) -> JubileeSettings:
    obj = ctx.obj or {}
    settings = obj.get("settings")
    if settings is None:
        settings = JubileeSettings.load_from_file(obj.get("config_path"))
    return settings


def get_config_path(ctx: typer.Context) -> Optional[Path]:
    return (ctx.obj or {}).get("config_path")


def is_debug(ctx: typer.Context) -> bool:
    return bool((ctx.obj or {}).get("debug", False))


def create_service(settings: JubileeSettings) -> AgentService:
    return AgentService(JubileeFactory(settings).build())
