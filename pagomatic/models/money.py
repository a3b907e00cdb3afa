# ==============================================================================
# UTILIDADES NUMÉRICAS - Montos y cantidades en punto fijo
# ==============================================================================
# Todos los montos y cantidades se manejan como Decimal para evitar la
# deriva de los flotantes. Los archivos JSON guardan cadenas ("12.50"),
# pero se aceptan números de respaldos antiguos.
# ==============================================================================

from decimal import Decimal, InvalidOperation
from typing import Any, Optional


ZERO = Decimal('0')

# Tolerancia de redondeo usada en comparaciones de saldos
TOLERANCE = Decimal('0.05')

# Margen para considerar que una entidad todavía tiene saldo
BALANCE_EPSILON = Decimal('0.1')

CENT = Decimal('0.01')

# Rango de exponentes aceptado para montos y cantidades no nulos:
# 1e-12 <= |valor| < 1e12
MIN_EXPONENT = -12
MAX_EXPONENT = 11


def parse_decimal(value: Any) -> Optional[Decimal]:
    """
    Convierte un valor persistido a Decimal.

    Returns:
        Decimal finito, o None si el valor no es utilizable
        (None, cadena vacía, NaN, infinito, texto no numérico, o una
        magnitud fuera de rango).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, str):
        text = value.strip().replace(',', '')
        if not text:
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None

    if not result.is_finite():
        return None
    if result.is_zero():
        return ZERO
    # adjusted() no aplica el contexto decimal
    if not MIN_EXPONENT <= result.adjusted() <= MAX_EXPONENT:
        return None
    return result


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """Como parse_decimal pero con valor por defecto (0)."""
    result = parse_decimal(value)
    return default if result is None else result


def money_to_json(value: Optional[Decimal]) -> Optional[str]:
    """Serializa un Decimal para JSON (cadena sin exponente)."""
    if value is None:
        return None
    text = format(value, 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text or '0'


def round_money(value: Decimal) -> Decimal:
    """Redondea a centavos."""
    return value.quantize(CENT)
