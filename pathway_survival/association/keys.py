"""Identifiers of analysis units."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class UnitKey:
    """
    A pathway, or one module of a pathway.

    Attributes:
        pathway: Pathway name
        module: 1-based module index (None at pathway level)
    """

    pathway: str
    module: Optional[int] = None

    @property
    def is_module(self) -> bool:
        return self.module is not None

    @property
    def label(self) -> str:
        if self.module is None:
            return self.pathway
        return f"{self.pathway}#{self.module}"

    def __str__(self) -> str:
        return self.label
