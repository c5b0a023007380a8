"""
🎯 Transformers Package
Pure string-to-string value transformers and the registry resolving them by name
"""

from .base import Transformer, TransformerArgs
from .registry import TransformerRegistry, build_default_registry, get_transformer_registry
from .standard import (
    STANDARD_TRANSFORMERS,
    BooleanToYNTransformer,
    FormatPhoneTransformer,
    ToBooleanTransformer,
    ToUpperTransformer,
)

__all__ = [
    "Transformer",
    "TransformerArgs",
    "TransformerRegistry",
    "build_default_registry",
    "get_transformer_registry",
    "STANDARD_TRANSFORMERS",
    "BooleanToYNTransformer",
    "FormatPhoneTransformer",
    "ToBooleanTransformer",
    "ToUpperTransformer",
]
