"""FastAPI application exposing document scanning and revenue endpoints."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Dict, List, Literal, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, File, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..core.env import get_env_int
from ..core.field_extract import POLICY_SOURCE_CUSTOMER, scan_text
from ..core.forecast import CHURN_WINDOW_DAYS, PROFITABILITY_LIMIT, ForecastEngine
from ..core.parse_pdf import extract_document_text
from ..core.redact import redact_text
from ..historian import Ledger
from ..historian.schema import ForecastEvent, Marker, ScanEvent, ScanFields
from ..store.db import get_db, init_db
from ..store.sales_ledger import SqlSalesLedger

load_dotenv()

LOGGER = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

MAX_UPLOAD_MB = get_env_int("MAX_UPLOAD_MB", 15)
PREVIEW_CHARS = 300


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Agency CRM", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ledger = Ledger()


class SaleCreate(BaseModel):
    amount: float = Field(ge=0)
    status: Literal["LEAD", "OFFER", "ACTIVE", "LOST", "CANCELLED"] = "LEAD"
    sale_date: Optional[date] = None
    end_date: Optional[date] = None
    customer_id: Optional[str] = None
    policy_number: Optional[str] = None
    customer_name: Optional[str] = None
    plate_number: Optional[str] = None
    branch_id: Optional[str] = None
    employee_id: Optional[str] = None


class TargetUpsert(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000, le=2100)
    amount: float = Field(ge=0)
    branch_id: Optional[str] = None
    user_id: Optional[str] = None


class CustomerCreate(BaseModel):
    name: str = Field(min_length=1)


class TaskCreate(BaseModel):
    sale_id: str
    title: str = Field(min_length=1)
    is_completed: bool = False


def get_sales_ledger(db: Session = Depends(get_db)) -> SqlSalesLedger:  # noqa: B008
    return SqlSalesLedger(db)


def get_forecast_engine(
    sales_ledger: SqlSalesLedger = Depends(get_sales_ledger),  # noqa: B008
) -> ForecastEngine:
    return ForecastEngine(sales_ledger)


@app.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


@app.post("/ocr/scan")
async def scan_document(document: Optional[UploadFile] = File(None)) -> JSONResponse:  # noqa: B008
    if document is None:
        raise HTTPException(status_code=400, detail="Please upload a document")

    start = time.monotonic()
    max_bytes = MAX_UPLOAD_MB * 1024 * 1024
    # read at most one byte past the limit
    content = await document.read(max_bytes + 1)
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded document is empty")
    if len(content) > max_bytes:
        raise HTTPException(status_code=413, detail="Uploaded document is too large")

    filename = document.filename or "uploaded"
    LOGGER.info("Processing OCR for file: %s", filename)
    text = await run_in_threadpool(
        extract_document_text,
        content,
        filename=filename,
        content_type=document.content_type,
    )
    if not text:
        raise HTTPException(status_code=400, detail="No text could be extracted from document")

    scan = await run_in_threadpool(scan_text, text)
    fields = scan.fields.as_dict()

    markers = [Marker(type="Note", text="Document scan")]
    found = [key for key, value in fields.items() if value is not None]
    if found:
        markers.append(Marker(type="Note", text=f"Extracted fields: {', '.join(found)}"))
    if scan.policy_number_source == POLICY_SOURCE_CUSTOMER:
        markers.append(
            Marker(type="Decision", text="Policy number taken from customer number label")
        )

    event = ScanEvent(
        filename=filename,
        content_type=document.content_type,
        text_chars=len(text),
        duration_ms=int((time.monotonic() - start) * 1000),
        fields=ScanFields(**fields),
        policy_number_source=scan.policy_number_source,
        preview=redact_text(text[:PREVIEW_CHARS]),
        markers=markers,
    )
    await run_in_threadpool(ledger.append, event)
    return JSONResponse(
        {
            "success": True,
            "data": fields,
            "policy_number_source": scan.policy_number_source,
            "raw_text": text,
        }
    )


@app.post("/sales", status_code=201)
def create_sale(
    payload: SaleCreate,
    sales_ledger: SqlSalesLedger = Depends(get_sales_ledger),  # noqa: B008
) -> Dict[str, Any]:
    try:
        sale = sales_ledger.record_sale(**payload.model_dump())
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {
        "id": sale.id,
        "status": sale.status,
        "amount": sale.amount,
        "sale_date": sale.sale_date.isoformat(),
        "end_date": sale.end_date.isoformat() if sale.end_date else None,
        "customer_id": sale.customer_id,
    }


@app.post("/customers", status_code=201)
def create_customer(
    payload: CustomerCreate,
    sales_ledger: SqlSalesLedger = Depends(get_sales_ledger),  # noqa: B008
) -> Dict[str, Any]:
    customer = sales_ledger.add_customer(payload.name)
    return {"id": customer.id, "name": customer.name}


@app.post("/tasks", status_code=201)
def create_task(
    payload: TaskCreate,
    sales_ledger: SqlSalesLedger = Depends(get_sales_ledger),  # noqa: B008
) -> Dict[str, Any]:
    try:
        task = sales_ledger.add_task(
            payload.sale_id, payload.title, is_completed=payload.is_completed
        )
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {
        "id": task.id,
        "sale_id": task.sale_id,
        "title": task.title,
        "is_completed": task.is_completed,
    }


@app.put("/revenue/targets")
def upsert_target(
    payload: TargetUpsert,
    sales_ledger: SqlSalesLedger = Depends(get_sales_ledger),  # noqa: B008
) -> Dict[str, Any]:
    target = sales_ledger.upsert_target(
        payload.month,
        payload.year,
        payload.amount,
        branch_id=payload.branch_id,
        user_id=payload.user_id,
    )
    return {
        "id": target.id,
        "month": target.month,
        "year": target.year,
        "amount": target.amount,
        "branch_id": target.branch_id,
        "user_id": target.user_id,
    }


@app.get("/revenue/targets/progress")
def target_progress(
    month: Optional[int] = Query(None, ge=1, le=12),  # noqa: B008
    year: Optional[int] = Query(None, ge=2000, le=2100),  # noqa: B008
    branch_id: Optional[str] = None,
    user_id: Optional[str] = None,
    engine: ForecastEngine = Depends(get_forecast_engine),  # noqa: B008
) -> Dict[str, Any]:
    today = engine.today
    resolved_month = month or today.month
    resolved_year = year or today.year
    progress = engine.get_target_progress(
        resolved_month, resolved_year, branch_id=branch_id, user_id=user_id
    )
    return {
        "month": resolved_month,
        "year": resolved_year,
        "target": progress.target,
        "achieved": progress.achieved,
        "percentage": progress.percentage,
    }


@app.get("/revenue/forecast")
def forecast(
    branch_id: Optional[str] = None,
    user_id: Optional[str] = None,
    engine: ForecastEngine = Depends(get_forecast_engine),  # noqa: B008
) -> Dict[str, Any]:
    start = time.monotonic()
    result = engine.calculate_forecast(branch_id=branch_id, user_id=user_id)

    ledger.append(
        ForecastEvent(
            branch_id=branch_id,
            user_id=user_id,
            months=engine.months,
            forecasted_amount=result.forecasted_amount,
            confidence=result.confidence,
            growth_rate=result.growth_rate,
            latency_ms=int((time.monotonic() - start) * 1000),
            markers=[Marker(type="Note", text=f"Confidence {result.confidence}")],
        )
    )
    return {
        "forecasted_amount": result.forecasted_amount,
        "confidence": result.confidence,
        "growth_rate": result.growth_rate,
    }


@app.get("/revenue/trends")
def revenue_trends(
    year: Optional[int] = Query(None, ge=2000, le=2100),  # noqa: B008
    branch_id: Optional[str] = None,
    user_id: Optional[str] = None,
    engine: ForecastEngine = Depends(get_forecast_engine),  # noqa: B008
) -> List[Dict[str, Any]]:
    trends = engine.revenue_trends(year=year, branch_id=branch_id, user_id=user_id)
    return [{"month": point.month.strftime("%Y-%m"), "revenue": point.total} for point in trends]


@app.get("/revenue/profitability")
def customer_profitability(
    limit: int = Query(PROFITABILITY_LIMIT, ge=1, le=500),  # noqa: B008
    engine: ForecastEngine = Depends(get_forecast_engine),  # noqa: B008
) -> List[Dict[str, Any]]:
    return [
        {
            "id": row.customer_id,
            "name": row.name,
            "total_revenue": row.total_revenue,
            "sale_count": row.sale_count,
            "average_order_value": row.average_order_value,
            "segment": row.segment,
        }
        for row in engine.customer_profitability(limit=limit)
    ]


@app.get("/revenue/churn")
def churn_risks(
    days: int = Query(CHURN_WINDOW_DAYS, ge=1, le=365),  # noqa: B008
    engine: ForecastEngine = Depends(get_forecast_engine),  # noqa: B008
) -> List[Dict[str, Any]]:
    return [
        {
            "id": risk.sale_id,
            "customer_name": risk.customer_name,
            "policy_number": risk.policy_number,
            "end_date": risk.end_date.isoformat(),
            "amount": risk.amount,
            "risk_level": risk.risk_level,
            "days_left": risk.days_left,
        }
        for risk in engine.churn_risks(days=days)
    ]
