"""
🎯 Transformer Base
Contract every value transformer implements
"""

from abc import ABC, abstractmethod
from typing import Mapping, Optional

TransformerArgs = Optional[Mapping[str, Optional[str]]]


class Transformer(ABC):
    """
    Named, pure, string-to-string function.

    Implementations must be total: any ``str`` or ``None`` input and any
    args (including unknown keys or ``None``) produce a deterministic
    ``str``. Malformed values degrade to a documented default instead of
    raising. Instances hold no mutable state so one instance is shared by
    every concurrent pipeline run.
    """

    name: str = ""

    @abstractmethod
    def transform(self, value: Optional[str], args: TransformerArgs = None) -> str:
        """Transform ``value``; never raises for malformed input"""

    def __call__(self, value: Optional[str], args: TransformerArgs = None) -> str:
        return self.transform(value, args)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
