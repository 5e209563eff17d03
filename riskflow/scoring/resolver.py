"""
Risk Level Resolver

    (context, likelihood, impact) → risk level

Backed by the context's likelihood×impact matrix. A missing cell is a
configuration error surfaced as ValidationError; the resolver never falls
back to a default level and never writes.
"""
from __future__ import annotations

from typing import Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from riskflow.core.errors import ValidationError
from riskflow.models.context import RiskMatrixCell
from riskflow.schemas.enums import RiskLevel

MatrixCells = Mapping[tuple[int, int], RiskLevel]


def _not_covered(likelihood: int, impact: int) -> ValidationError:
    return ValidationError(
        f"Likelihood {likelihood} and impact {impact} combination is not covered by the risk matrix."
    )


def validate_levels(matrix_size: int, likelihood: int, impact: int, label: str = "") -> None:
    prefix = f"{label} " if label else ""
    if not 1 <= likelihood <= matrix_size:
        raise ValidationError(f"{prefix}likelihood must be between 1 and {matrix_size}.".capitalize())
    if not 1 <= impact <= matrix_size:
        raise ValidationError(f"{prefix}impact must be between 1 and {matrix_size}.".capitalize())


def lookup_risk_level(cells: MatrixCells, likelihood: int, impact: int) -> RiskLevel:
    """In-memory lookup over ``{(likelihood, impact): level}``."""
    try:
        return cells[(likelihood, impact)]
    except KeyError:
        raise _not_covered(likelihood, impact) from None


async def resolve_risk_level(
    db: AsyncSession, context_id: str, likelihood: int, impact: int
) -> RiskLevel:
    level = await db.scalar(
        select(RiskMatrixCell.risk_level).where(
            RiskMatrixCell.context_id == context_id,
            RiskMatrixCell.likelihood_level == likelihood,
            RiskMatrixCell.impact_level == impact,
        )
    )
    if level is None:
        raise _not_covered(likelihood, impact)
    return level
