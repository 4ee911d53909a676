"""Pin electrical type resolution.

EasyEDA pins carry an optional numeric type hint. When the hint is missing
the pin name is matched against an ordered table of regular expressions;
the first match wins. Users can prepend their own rules from the config
file without touching the built-in table.
"""
import logging
import re
from typing import Iterable, List, Optional, Sequence, Tuple

from .primitives import PinType

logger = logging.getLogger(__name__)

# EasyEDA electrical type codes; "0" and missing mean "no hint"
EE_PIN_TYPE_CODES = {
    "1": PinType.INPUT,
    "2": PinType.OUTPUT,
    "3": PinType.BIDIRECTIONAL,
    "4": PinType.POWER_IN,
}

DEFAULT_PIN_TYPE_RULES: Tuple[Tuple[str, str], ...] = (
    # Supply rails: VCC, VDD, VDDA, VDDIO, AVDD, DVDD, VBAT, VIN, VBUS, V+, 3V3, +5V
    (r"^[AD]?V(CC|DD)[A-Z0-9_]*$", PinType.POWER_IN.value),
    (r"^(VBAT|VBUS|VIN|VPP|V\+)$", PinType.POWER_IN.value),
    (r"^\+?\d+V\d*$", PinType.POWER_IN.value),
    # Grounds and negative rails: GND, AGND, DGND, PGND, GNDA, VSS, AVSS, VEE, V-
    (r"^[ADP]?GND[A-Z0-9_]*$", PinType.POWER_IN.value),
    (r"^[AD]?VSS[A-Z0-9_]*$", PinType.POWER_IN.value),
    (r"^(VEE|V-)$", PinType.POWER_IN.value),
)


class PinTypeRules:
    """Ordered ``(pattern, type)`` table used to infer pin types from names."""

    def __init__(self, rules: Iterable[Sequence[str]] = DEFAULT_PIN_TYPE_RULES):
        self._rules: List[Tuple[re.Pattern, PinType]] = []
        for pattern, type_name in rules:
            self._rules.append((re.compile(pattern, re.IGNORECASE), PinType(type_name)))

    def __len__(self) -> int:
        return len(self._rules)

    @classmethod
    def with_overrides(cls, overrides: Optional[Iterable[Sequence[str]]]) -> "PinTypeRules":
        """Built-in table with user rules taking precedence.

        Invalid entries are logged and ignored so that a typo in the config
        file does not stop a batch.
        """
        rules: List[Tuple[str, str]] = []
        for entry in overrides or ():
            try:
                pattern, type_name = entry
                re.compile(pattern)
                PinType(type_name)
            except (TypeError, ValueError, re.error) as e:
                logger.warning("Ignoring pin type rule %r: %s", entry, e)
                continue
            rules.append((pattern, type_name))
        rules.extend(DEFAULT_PIN_TYPE_RULES)
        return cls(rules)

    def infer(self, name: str) -> PinType:
        """Infer a type from a pin name; unknown names are unspecified."""
        name = name.strip()
        for pattern, pin_type in self._rules:
            if pattern.match(name):
                return pin_type
        return PinType.UNSPECIFIED

    def resolve(self, type_code: str, name: str) -> PinType:
        """Use the EasyEDA type hint when present, otherwise infer from the name."""
        hinted = EE_PIN_TYPE_CODES.get(type_code.strip())
        if hinted is not None:
            return hinted
        return self.infer(name)


DEFAULT_RULES = PinTypeRules()
