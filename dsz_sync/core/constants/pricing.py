"""
Pricing constants — GST factor, rounding endings, change epsilon.

Pricing rule constants.

Every pricing constant lives here. When GST or rounding changes, update ONE file.
Version: 1.0.0
"""

# Australian GST multiplier applied when supplier prices exclude GST
GST_FACTOR: float = 1.10

# Price differences at or below this are treated as unchanged
PRICE_EPSILON: float = 0.01

MARKUP_PERCENTAGE: str = "percentage"
MARKUP_FIXED: str = "fixed"

GST_INCLUDE: str = "include"
GST_EXCLUDE: str = "exclude"

ROUNDING_99: str = "99"
ROUNDING_95: str = "95"
ROUNDING_NEAREST: str = "nearest"

# Fractional endings for the charm-price rounding modes
ROUNDING_ENDINGS: dict[str, float] = {
    ROUNDING_99: 0.99,
    ROUNDING_95: 0.95,
}
