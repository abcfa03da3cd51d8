"""Shared response envelopes."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class OkResponse(BaseModel):
    """Successful response without payload."""

    ok: Literal[True] = True


__all__ = ["OkResponse"]
