"""
Context configuration API.

  POST/GET   /v1/konteks                         → create / search contexts
  GET/PATCH  /v1/konteks/{id}                    → read / edit an INACTIVE context
  PATCH      /v1/konteks/{id}/activate|deactivate
  DELETE     /v1/konteks/{id}                    → archive
  GET        /v1/konteks/{id}/readiness          → activation checklist

  /v1/konteks/{id}/risk-categories[/{cid}]
  /v1/konteks/{id}/risk-categories/{cid}/likelihood-scales[/{sid}]
  /v1/konteks/{id}/risk-categories/{cid}/impact-scales[/{sid}]
  /v1/konteks/{id}/risk-matrices[/{mid}],  POST .../risk-matrices/bulk

Writes require ADMINISTRATOR or KOMITE_PUSAT.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from riskflow.core.auth import Caller, get_caller
from riskflow.models.database import get_db
from riskflow.schemas.common import Page
from riskflow.schemas.context import (
    CategoryCreate,
    CategoryReadiness,
    CategoryResponse,
    CategoryUpdate,
    ContextCreate,
    ContextResponse,
    ContextUpdate,
    MatrixBulkCreate,
    MatrixBulkResponse,
    MatrixCellCreate,
    MatrixCellResponse,
    MatrixCellUpdate,
    ReadinessResponse,
    ScaleCreate,
    ScaleResponse,
    ScaleUpdate,
)
from riskflow.schemas.enums import ContextStatus, RiskLevel
from riskflow.services import category_service, context_service, matrix_service, scale_service

router = APIRouter(prefix="/v1/konteks", tags=["context"])


# ── Context ──

@router.post("", response_model=ContextResponse, status_code=201)
async def create_context(
    body: ContextCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await context_service.create_context(db, caller, body)


@router.get("", response_model=Page[ContextResponse])
async def list_contexts(
    name: Optional[str] = None,
    code: Optional[str] = None,
    status: Optional[ContextStatus] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await context_service.list_contexts(db, name, code, status, page, limit)
    return Page[ContextResponse].of(result, ContextResponse)


@router.get("/{context_id}", response_model=ContextResponse)
async def get_context(
    context_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await context_service.get_context(db, context_id)


@router.patch("/{context_id}", response_model=ContextResponse)
async def update_context(
    context_id: str,
    body: ContextUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await context_service.update_context(db, caller, context_id, body)


@router.patch("/{context_id}/activate", response_model=ContextResponse)
async def activate_context(
    context_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await context_service.activate_context(db, caller, context_id)


@router.patch("/{context_id}/deactivate", response_model=ContextResponse)
async def deactivate_context(
    context_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await context_service.deactivate_context(db, caller, context_id)


@router.delete("/{context_id}", response_model=ContextResponse)
async def archive_context(
    context_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await context_service.archive_context(db, caller, context_id)


@router.get("/{context_id}/readiness", response_model=ReadinessResponse)
async def context_readiness(
    context_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    readiness = await context_service.get_readiness(db, context_id)
    return ReadinessResponse(
        context_id=readiness.context.id,
        status=readiness.context.status,
        matrix_size=readiness.context.matrix_size,
        categories=[CategoryReadiness(**vars(c)) for c in readiness.categories],
        matrix_cells=readiness.matrix_cells,
        expected_matrix_cells=readiness.expected_matrix_cells,
        is_complete=readiness.is_complete,
        missing=readiness.missing,
    )


# ── Categories ──

@router.post("/{context_id}/risk-categories", response_model=CategoryResponse, status_code=201)
async def create_category(
    context_id: str,
    body: CategoryCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await category_service.create_category(db, caller, context_id, body)


@router.get("/{context_id}/risk-categories", response_model=Page[CategoryResponse])
async def list_categories(
    context_id: str,
    name: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await category_service.list_categories(db, context_id, name, page, limit)
    return Page[CategoryResponse].of(result, CategoryResponse)


@router.get("/{context_id}/risk-categories/{category_id}", response_model=CategoryResponse)
async def get_category(
    context_id: str,
    category_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await category_service.get_category(db, context_id, category_id)


@router.patch("/{context_id}/risk-categories/{category_id}", response_model=CategoryResponse)
async def update_category(
    context_id: str,
    category_id: str,
    body: CategoryUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await category_service.update_category(db, caller, context_id, category_id, body)


@router.delete("/{context_id}/risk-categories/{category_id}", status_code=204)
async def delete_category(
    context_id: str,
    category_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    await category_service.delete_category(db, caller, context_id, category_id)
    return Response(status_code=204)


# ── Likelihood / impact scales ──

def _register_scale_routes(kind: str) -> None:
    base = f"/{{context_id}}/risk-categories/{{category_id}}/{kind}-scales"

    @router.post(base, response_model=ScaleResponse, status_code=201, name=f"create_{kind}_scale")
    async def create_scale(
        context_id: str,
        category_id: str,
        body: ScaleCreate,
        caller: Caller = Depends(get_caller),
        db: AsyncSession = Depends(get_db),
    ):
        return await scale_service.create_scale(db, caller, kind, context_id, category_id, body)

    @router.get(base, response_model=list[ScaleResponse], name=f"list_{kind}_scales")
    async def list_scales(
        context_id: str,
        category_id: str,
        caller: Caller = Depends(get_caller),
        db: AsyncSession = Depends(get_db),
    ):
        return await scale_service.list_scales(db, kind, context_id, category_id)

    @router.get(base + "/{scale_id}", response_model=ScaleResponse, name=f"get_{kind}_scale")
    async def get_scale(
        context_id: str,
        category_id: str,
        scale_id: str,
        caller: Caller = Depends(get_caller),
        db: AsyncSession = Depends(get_db),
    ):
        return await scale_service.get_scale(db, kind, context_id, category_id, scale_id)

    @router.patch(base + "/{scale_id}", response_model=ScaleResponse, name=f"update_{kind}_scale")
    async def update_scale(
        context_id: str,
        category_id: str,
        scale_id: str,
        body: ScaleUpdate,
        caller: Caller = Depends(get_caller),
        db: AsyncSession = Depends(get_db),
    ):
        return await scale_service.update_scale(
            db, caller, kind, context_id, category_id, scale_id, body
        )

    @router.delete(base + "/{scale_id}", status_code=204, name=f"delete_{kind}_scale")
    async def delete_scale(
        context_id: str,
        category_id: str,
        scale_id: str,
        caller: Caller = Depends(get_caller),
        db: AsyncSession = Depends(get_db),
    ):
        await scale_service.delete_scale(db, caller, kind, context_id, category_id, scale_id)
        return Response(status_code=204)


for _kind in scale_service.SCALE_MODELS:
    _register_scale_routes(_kind)


# ── Matrix ──

@router.post("/{context_id}/risk-matrices", response_model=MatrixCellResponse, status_code=201)
async def create_matrix_cell(
    context_id: str,
    body: MatrixCellCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await matrix_service.create_cell(db, caller, context_id, body)


@router.post("/{context_id}/risk-matrices/bulk", response_model=MatrixBulkResponse, status_code=201)
async def bulk_create_matrix_cells(
    context_id: str,
    body: MatrixBulkCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await matrix_service.bulk_create_cells(db, caller, context_id, body)
    return MatrixBulkResponse(
        created=[MatrixCellResponse.model_validate(c) for c in result.created],
        total_cells=result.total_cells,
        expected_cells=result.expected_cells,
        is_complete=result.is_complete,
    )


@router.get("/{context_id}/risk-matrices", response_model=list[MatrixCellResponse])
async def list_matrix_cells(
    context_id: str,
    risk_level: Optional[RiskLevel] = None,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await matrix_service.list_cells(db, context_id, risk_level)


@router.get("/{context_id}/risk-matrices/{cell_id}", response_model=MatrixCellResponse)
async def get_matrix_cell(
    context_id: str,
    cell_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await matrix_service.get_cell(db, context_id, cell_id)


@router.patch("/{context_id}/risk-matrices/{cell_id}", response_model=MatrixCellResponse)
async def update_matrix_cell(
    context_id: str,
    cell_id: str,
    body: MatrixCellUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await matrix_service.update_cell(db, caller, context_id, cell_id, body)


@router.delete("/{context_id}/risk-matrices/{cell_id}", status_code=204)
async def delete_matrix_cell(
    context_id: str,
    cell_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    await matrix_service.delete_cell(db, caller, context_id, cell_id)
    return Response(status_code=204)
