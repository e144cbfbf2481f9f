"""System prompts for the Triune, angels and the safety guard."""

from jubilee.core.prompts.angel_prompts import build_angel_prompt
from jubilee.core.prompts.triune_prompts import (
    build_mind_prompt,
    build_prophet_prompt,
    build_will_prompt,
)

__all__ = ["build_angel_prompt", "build_mind_prompt", "build_prophet_prompt", "build_will_prompt"]
