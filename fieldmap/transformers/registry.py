"""
🏭 Transformer Registry
Resolves transformers by name. Populated once by the composition root,
then frozen and read-only for the lifetime of the process.
"""

from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from fieldmap.core.exceptions import ConfigurationError, DuplicateNameError, UnknownTransformerError
from fieldmap.core.logging import LoggerMixin
from fieldmap.transformers.base import Transformer, TransformerArgs
from fieldmap.transformers.standard import STANDARD_TRANSFORMERS


class TransformerRegistry(LoggerMixin):
    """
    Name -> transformer mapping.

    Names are matched case-insensitively, so ``formatPhone`` and
    ``FORMATPHONE`` collide at registration and both resolve at lookup.
    """

    def __init__(self, transformers: Iterable[Transformer] = ()):
        self._transformers: Mapping[str, Transformer] = {}
        self._frozen = False
        for transformer in transformers:
            self.register(transformer)

    @staticmethod
    def _normalize(name: str) -> str:
        return name.strip().casefold()

    def register(self, transformer: Transformer) -> None:
        """
        Add a transformer.

        Raises:
            DuplicateNameError: another transformer already uses the name
            ConfigurationError: the registry is frozen or the name is blank
        """
        if self._frozen:
            raise ConfigurationError(
                f"Cannot register '{transformer.name}': registry is frozen",
                name=transformer.name,
            )
        if not transformer.name or not transformer.name.strip():
            raise ConfigurationError(
                f"Transformer {transformer.__class__.__name__} has no name",
                transformer=transformer.__class__.__name__,
            )

        key = self._normalize(transformer.name)
        if key in self._transformers:
            raise DuplicateNameError(transformer.name)

        self._transformers[key] = transformer
        self.logger.debug(f"Registered transformer '{transformer.name}'")

    def freeze(self) -> "TransformerRegistry":
        """Make the registry read-only. Idempotent."""
        if not self._frozen:
            self._transformers = MappingProxyType(dict(self._transformers))
            self._frozen = True
            self.logger.info(f"🔒 Transformer registry frozen with {len(self)} transformers",
                             transformers=self.registered_names())
        return self

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def get(self, name: Optional[str]) -> Optional[Transformer]:
        if not name:
            return None
        return self._transformers.get(self._normalize(name))

    def resolve(self, name: str) -> Transformer:
        """
        Raises:
            UnknownTransformerError: no transformer registered under ``name``
        """
        transformer = self.get(name)
        if transformer is None:
            raise UnknownTransformerError(name)
        return transformer

    def transform(self, name: str, value: Optional[str], args: TransformerArgs = None) -> str:
        """Resolve then invoke"""
        return self.resolve(name).transform(value, args)

    def apply_all(self, value: Optional[str],
                  chain: Iterable[Tuple[str, TransformerArgs]]) -> Optional[str]:
        """
        Run a bare chain of ``(name, args)`` over a single value.

        Every name is resolved before the first transformer runs, so an
        unknown name raises without any transformer having been applied.
        """
        resolved = [(self.resolve(name), args) for name, args in chain]
        for transformer, args in resolved:
            value = transformer.transform(value, args)
        return value

    def registered_names(self) -> List[str]:
        return sorted(t.name for t in self._transformers.values())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def __len__(self) -> int:
        return len(self._transformers)


def build_default_registry(extra: Iterable[Transformer] = (), freeze: bool = True) -> TransformerRegistry:
    """
    Composition-root helper: standard transformers plus ``extra``.
    """
    transformers: List[Transformer] = [cls() for cls in STANDARD_TRANSFORMERS]
    transformers.extend(extra)
    registry = TransformerRegistry(transformers)
    return registry.freeze() if freeze else registry


# Singleton used by the CLI composition root
_transformer_registry: Optional[TransformerRegistry] = None


def get_transformer_registry() -> TransformerRegistry:
    """
    Get singleton transformer registry instance
    """
    global _transformer_registry

    if _transformer_registry is None:
        _transformer_registry = build_default_registry()

    return _transformer_registry
