import logging
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from sqlalchemy.orm import Session

from aggregation import Summary
from auth import InvalidToken, read_access_token
from database import get_db
from errors import TransactionNotFound, ValidationFailed
from filters import TransactionFilters, build_filters, parse_type
from models import Transaction
from money import cents_to_decimal
from schemas import (
    BalancePointOut,
    BreakdownRowOut,
    CategorySuggestionOut,
    DeletedOut,
    SeriesBucketOut,
    SummaryOut,
    TransactionIn,
    TransactionOut,
    TransactionPageOut,
    TransactionPatch,
)
from services import (
    DEFAULT_PAGE_SIZE,
    CategoryService,
    StatsService,
    TransactionService,
)

logging.basicConfig(level=logging.INFO)

app = FastAPI(title="Finance Tracker")


def _extract_bearer_token(authorization: Optional[str]) -> str:
    prefix = "Bearer "
    if not authorization or not authorization.startswith(prefix):
        raise HTTPException(
            status_code=401,
            detail="No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return authorization[len(prefix) :].strip()


def current_user_id(authorization: Optional[str] = Header(default=None)) -> int:
    token = _extract_bearer_token(authorization)
    try:
        return read_access_token(token)
    except InvalidToken as exc:
        raise HTTPException(
            status_code=401, detail=str(exc), headers={"WWW-Authenticate": "Bearer"}
        ) from exc


def get_transaction_service(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
) -> TransactionService:
    return TransactionService(db, user_id)


def get_stats_service(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
) -> StatsService:
    return StatsService(db, user_id)


def get_category_service(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
) -> CategoryService:
    return CategoryService(db, user_id)


def _int_param(request: Request, name: str, default: int) -> int:
    raw = request.query_params.get(name)
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def filters_from_request(request: Request) -> TransactionFilters:
    params = request.query_params
    try:
        return build_filters(
            type=params.get("type"),
            categories=params.getlist("category"),
            preset=params.get("range"),
            start=params.get("start"),
            end=params.get("end"),
            query=params.get("q"),
        )
    except ValidationFailed as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def transaction_out(txn: Transaction) -> TransactionOut:
    return TransactionOut(
        id=txn.id,
        type=txn.type,
        amount=cents_to_decimal(txn.amount_cents),
        amount_cents=txn.amount_cents,
        category=txn.category,
        note=txn.note,
        date=txn.occurred_at,
        created_at=txn.created_at,
        updated_at=txn.updated_at,
    )


def summary_out(summary: Summary) -> SummaryOut:
    return SummaryOut(
        total_income=cents_to_decimal(summary.total_income),
        total_income_cents=summary.total_income,
        total_expense=cents_to_decimal(summary.total_expense),
        total_expense_cents=summary.total_expense,
        balance=cents_to_decimal(summary.balance),
        balance_cents=summary.balance,
        income_count=summary.income_count,
        expense_count=summary.expense_count,
        category_breakdown=[
            BreakdownRowOut(
                category=row.category,
                type=row.type,
                total=cents_to_decimal(row.total),
                total_cents=row.total,
                count=row.count,
            )
            for row in summary.category_breakdown
        ],
    )


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/api/transactions", status_code=201, response_model=TransactionOut)
def create_transaction(
    payload: TransactionIn,
    service: TransactionService = Depends(get_transaction_service),
):
    try:
        txn = service.create(payload)
    except ValidationFailed as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return transaction_out(txn)


@app.get("/api/transactions", response_model=TransactionPageOut)
def list_transactions(
    request: Request,
    service: TransactionService = Depends(get_transaction_service),
):
    filters = filters_from_request(request)
    page = service.list(
        filters,
        page=_int_param(request, "page", 1),
        page_size=_int_param(request, "limit", DEFAULT_PAGE_SIZE),
    )
    return TransactionPageOut(
        items=[transaction_out(txn) for txn in page.items],
        total=page.total,
        page=page.page,
        limit=page.page_size,
        total_pages=page.total_pages,
    )


@app.delete("/api/transactions", response_model=DeletedOut)
def delete_transactions_by_category(
    request: Request,
    service: TransactionService = Depends(get_transaction_service),
):
    try:
        count = service.delete_by_category(request.query_params.get("category", ""))
    except ValidationFailed as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return DeletedOut(deleted=count)


@app.delete("/api/transactions/all", response_model=DeletedOut)
def delete_all_transactions(
    service: TransactionService = Depends(get_transaction_service),
):
    return DeletedOut(deleted=service.delete_all())


@app.get("/api/transactions/stats", response_model=SummaryOut)
def transaction_stats(
    request: Request, service: StatsService = Depends(get_stats_service)
):
    filters = filters_from_request(request)
    return summary_out(service.summary(filters))


@app.get("/api/transactions/running-balance", response_model=list[BalancePointOut])
def transaction_running_balance(
    request: Request, service: StatsService = Depends(get_stats_service)
):
    filters = filters_from_request(request)
    return [
        BalancePointOut(
            transaction_id=point.transaction_id,
            date=point.occurred_at,
            type=point.type,
            amount_cents=point.amount_cents,
            balance=cents_to_decimal(point.balance),
            balance_cents=point.balance,
        )
        for point in service.running_balance(filters)
    ]


@app.get("/api/transactions/series", response_model=list[SeriesBucketOut])
def transaction_series(
    request: Request, service: StatsService = Depends(get_stats_service)
):
    filters = filters_from_request(request)
    granularity = request.query_params.get("granularity", "auto")
    try:
        buckets = service.series(filters, granularity)
    except ValidationFailed as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [
        SeriesBucketOut(
            start=bucket.start,
            end=bucket.end,
            income_cents=bucket.income,
            expense_cents=bucket.expense,
        )
        for bucket in buckets
    ]


@app.get("/api/transactions/{transaction_id}", response_model=TransactionOut)
def get_transaction(
    transaction_id: int,
    service: TransactionService = Depends(get_transaction_service),
):
    try:
        txn = service.get(transaction_id)
    except TransactionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return transaction_out(txn)


@app.api_route(
    "/api/transactions/{transaction_id}",
    methods=["PATCH", "PUT"],
    response_model=TransactionOut,
)
def update_transaction(
    transaction_id: int,
    payload: TransactionPatch,
    service: TransactionService = Depends(get_transaction_service),
):
    try:
        txn = service.update(transaction_id, payload)
    except TransactionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationFailed as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return transaction_out(txn)


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: int,
    service: TransactionService = Depends(get_transaction_service),
):
    try:
        service.delete(transaction_id)
    except TransactionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/categories", response_model=list[CategorySuggestionOut])
def category_suggestions(
    request: Request, service: CategoryService = Depends(get_category_service)
):
    try:
        txn_type = parse_type(request.query_params.get("type"))
    except ValidationFailed as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    suggestions = service.suggest(
        prefix=request.query_params.get("q"),
        transaction_type=txn_type,
        limit=_int_param(request, "limit", 10),
    )
    return [CategorySuggestionOut(name=s.name, count=s.count) for s in suggestions]
