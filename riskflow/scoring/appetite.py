"""
Risk Appetite Guard

Residual risk above the context's appetite must be acted on:

    residual > appetite  →  MITIGATE | TRANSFER only
    otherwise            →  any option

If either level is unknown the choice is not constrained yet.
"""
from __future__ import annotations

from typing import Optional

from riskflow.core.errors import ValidationError
from riskflow.schemas.enums import RiskLevel, TreatmentOption

ALL_OPTIONS = frozenset(TreatmentOption)
ABOVE_APPETITE_OPTIONS = frozenset({TreatmentOption.MITIGATE, TreatmentOption.TRANSFER})


def exceeds_appetite(risk_level: Optional[RiskLevel], appetite: Optional[RiskLevel]) -> bool:
    if risk_level is None or appetite is None:
        return False
    return risk_level.ordinal > appetite.ordinal


def allowed_treatment_options(
    risk_level: Optional[RiskLevel], appetite: Optional[RiskLevel]
) -> frozenset[TreatmentOption]:
    if exceeds_appetite(risk_level, appetite):
        return ABOVE_APPETITE_OPTIONS
    return ALL_OPTIONS


def check_treatment_option(
    option: Optional[TreatmentOption],
    risk_level: Optional[RiskLevel],
    appetite: Optional[RiskLevel],
) -> None:
    if option is None:
        return
    allowed = allowed_treatment_options(risk_level, appetite)
    if option not in allowed:
        names = ", ".join(sorted(o.value for o in allowed))
        raise ValidationError(
            f"Residual risk level {risk_level.value} exceeds risk appetite {appetite.value} "
            f"({risk_level.value} > {appetite.value}); treatment option {option.value} "
            f"is not allowed (allowed: {names})."
        )
