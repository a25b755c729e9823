"""
Editor configuration.

Values come from the environment with sensible defaults:

    TEMPLATEVIEW_UNDO_DEPTH            max entries kept on the undo stack (100)
    TEMPLATEVIEW_MAX_INFERENCE_DEPTH   recursion bound for sample-data walks (10)
    TEMPLATEVIEW_DEFAULT_LANGUAGE      expression language for new blocks ("jsonata")

from_env(env_file) loads a .env file first; variables already set win.
"""

import logging
import os
from typing import Literal

import dotenv
from pydantic import BaseModel, Field


class EditorConfig(BaseModel):
    undo_depth: int = Field(default=100, ge=1)
    max_inference_depth: int = Field(default=10, ge=1)
    default_language: Literal["jsonata", "javascript"] = "jsonata"

    @classmethod
    def from_env(cls, env_file: str | None = None) -> "EditorConfig":
        if env_file is not None:
            dotenv.load_dotenv(env_file)
        return cls(
            undo_depth=int(os.environ.get("TEMPLATEVIEW_UNDO_DEPTH", "100")),
            max_inference_depth=int(os.environ.get("TEMPLATEVIEW_MAX_INFERENCE_DEPTH", "10")),
            default_language=os.environ.get("TEMPLATEVIEW_DEFAULT_LANGUAGE", "jsonata"),
        )


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format='%(levelname)s:%(name)s: %(message)s',
        force=True
    )
