"""OpenAI client construction for the hosted inference provider."""

from __future__ import annotations

import os
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from openai import OpenAI

__all__ = ["API_KEY_ENV", "load_client"]

API_KEY_ENV = "OPENAI_API_KEY"


def load_client(
    *,
    api_base: Optional[str] = None,
    timeout: Optional[float] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Any:
    """Build an OpenAI client from ``OPENAI_API_KEY``.

    ``.env`` is only consulted when no explicit ``env`` mapping is given.
    """
    if env is None:
        load_dotenv()
        env = os.environ
    api_key = env.get(API_KEY_ENV)
    if not api_key:
        raise RuntimeError(
            f"{API_KEY_ENV} not found in environment. Set it or add to .env "
            "to use the openai inference provider."
        )
    kwargs: dict[str, Any] = {"api_key": api_key}
    if api_base:
        kwargs["base_url"] = api_base
    if timeout is not None:
        kwargs["timeout"] = timeout
    return OpenAI(**kwargs)
