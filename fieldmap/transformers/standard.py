"""
🧰 Standard transformers
Built-in value normalizers shipped with the engine
"""

from typing import Optional

from fieldmap.transformers.base import Transformer, TransformerArgs


class FormatPhoneTransformer(Transformer):
    """
    Keeps only the digits of a phone number.

    - ``"(555) 123-4567"`` -> ``"5551234567"``
    - ``"+1-555-123-4567"`` -> ``"15551234567"``
    - ``None`` -> ``""``
    - text without any digit (``"abc"``) is returned unchanged, so
      non-numeric text stays distinguishable from an unformatted number.
    """

    name = "formatPhone"

    def transform(self, value: Optional[str], args: TransformerArgs = None) -> str:
        if value is None:
            return ""

        digits = "".join(ch for ch in value if ch.isdecimal())
        if not digits:
            return value
        return digits


class ToBooleanTransformer(Transformer):
    """Canonical "True"/"False"; None or empty input is "False"."""

    name = "toBoolean"
    TRUE_VALUES = frozenset({"true", "t", "yes", "y", "1"})

    def transform(self, value: Optional[str], args: TransformerArgs = None) -> str:
        if not value:
            return "False"
        return "True" if value.strip().lower() in self.TRUE_VALUES else "False"


class ToUpperTransformer(Transformer):
    name = "toUpper"

    def transform(self, value: Optional[str], args: TransformerArgs = None) -> str:
        if value is None:
            return ""
        return value.upper()


class BooleanToYNTransformer(Transformer):
    """
    "true"/"false" (any case, surrounding blanks ignored) to "Y"/"N".
    Anything else, including None, yields "".
    """

    name = "booleanToYN"

    def transform(self, value: Optional[str], args: TransformerArgs = None) -> str:
        if value is None:
            return ""

        normalized = value.strip().lower()
        if normalized == "true":
            return "Y"
        if normalized == "false":
            return "N"
        return ""


STANDARD_TRANSFORMERS = (
    FormatPhoneTransformer,
    ToBooleanTransformer,
    ToUpperTransformer,
    BooleanToYNTransformer,
)
