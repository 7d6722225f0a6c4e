from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class IssBreakdown:
    valor: Decimal
    aliquota: Decimal
    valor_iss: Decimal
    valor_liquido: Decimal


def to_decimal(value: Any) -> Decimal:
    """Converte para Decimal sem passar por float binário."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # repr do float ("1500.1") em vez da expansão binária completa
        return Decimal(repr(value))
    try:
        return Decimal(str(value).strip().replace(",", "."))
    except InvalidOperation as e:
        raise ValueError(f"Valor numérico inválido: {value!r}") from e


def compute_iss(valor: Any, aliquota: Any) -> IssBreakdown:
    """ISS = valor x alíquota / 100 e líquido = valor - ISS, arredondados ao centavo (HALF_UP)."""
    valor_dec = to_decimal(valor).quantize(CENTS, rounding=ROUND_HALF_UP)
    aliquota_dec = to_decimal(aliquota)
    valor_iss = (valor_dec * aliquota_dec / Decimal(100)).quantize(CENTS, rounding=ROUND_HALF_UP)
    return IssBreakdown(
        valor=valor_dec,
        aliquota=aliquota_dec,
        valor_iss=valor_iss,
        valor_liquido=valor_dec - valor_iss,
    )
