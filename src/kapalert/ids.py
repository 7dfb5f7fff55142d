"""Identifier generators."""

from __future__ import annotations

import uuid


class UUIDGenerator:
    """Random uuid4 identifiers. Implements the IDGenerator protocol."""

    def generate(self) -> str:
        return str(uuid.uuid4())
