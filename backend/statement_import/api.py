"""FastAPI service exposing the import pipeline.

Endpoints:
  GET  /health -> simple health check
  GET  /rules  -> automation rules loaded from AUTOMATION_RULES_FILE
  POST /import/csv        (multipart: file=<csv>, mapping=<json>, dry_run)
  POST /import/statement  (multipart: file=<pdf|txt>, account_name)
  POST /categorize        (json: descriptions, optional rules/categories)

Run (dev): uvicorn statement_import.api:app --reload --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from tempfile import SpooledTemporaryFile
from typing import List, Optional, Tuple

from fastapi import FastAPI, UploadFile, File, Form, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ValidationError

import logging
import os
import traceback

from .categorize import RuleEvaluator, load_rules_file
from .constants import DEFAULT_STATEMENT_ACCOUNT
from .csv_import import CsvMappingError
from .importer import ImportSummary, TransactionImporter
from .models import AutomationRule, Category, CsvMapping, ImportResult
from .pdf_parser import DocumentReadError, lines_from_text
from .statement_parser import compute_balance_mismatches, detect_layout, parse_bank_statement, parse_statement_lines
from .utils import summarize_transactions


logging.basicConfig(level=os.getenv("API_LOG_LEVEL", "INFO"))
logger = logging.getLogger("statement_api")

MAX_FILE_BYTES = int(os.getenv("MAX_FILE_BYTES", 15 * 1024 * 1024))  # 15MB default
IMPORT_PREVIEW_LIMIT = int(os.getenv("IMPORT_PREVIEW_LIMIT", 20))


@asynccontextmanager
async def lifespan(app: FastAPI):
    _load_default_rules(app)
    yield


app = FastAPI(title="Statement Import API", version="0.1.0", lifespan=lifespan)
app.add_middleware(GZipMiddleware, minimum_size=1024)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.state.rules = []
app.state.categories = []


class CategorizeRequest(BaseModel):
    descriptions: List[str]
    rules: Optional[List[AutomationRule]] = None
    categories: Optional[List[Category]] = None


class CategoryAssignment(BaseModel):
    description: str
    matched: bool
    category_id: Optional[str] = None
    category_name: Optional[str] = None


class CategorizeResponse(BaseModel):
    matches: List[CategoryAssignment]


def upload_name(file: UploadFile) -> str:
    """Lower-cased client filename; empty when the part carried none."""
    return (file.filename or "").strip().lower()


def _debug_enabled(request: Request) -> bool:
    return request.query_params.get("debug") == "1" or os.getenv("API_DEBUG") == "1"


def _load_default_rules(app: FastAPI) -> None:
    """Load the default automation rules named by AUTOMATION_RULES_FILE."""
    path = os.getenv("AUTOMATION_RULES_FILE")
    if not path:
        return
    try:
        rules, categories = load_rules_file(path)
    except (OSError, ValueError) as e:
        logger.error("Could not load automation rules from %s: %s", path, e)
        return
    app.state.rules = rules
    app.state.categories = categories
    logger.info("Loaded %d automation rules from %s", len(rules), path)


def _importer(request: Request) -> TransactionImporter:
    return TransactionImporter(request.app.state.rules, request.app.state.categories)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/rules")
def list_rules(request: Request):
    return {
        "count": len(request.app.state.rules),
        "rules": [r.model_dump(mode="json") for r in request.app.state.rules],
        "categories": [c.model_dump(mode="json") for c in request.app.state.categories],
    }


async def _read_upload(file: UploadFile) -> SpooledTemporaryFile:
    """Stream an upload into a spooled file, enforcing MAX_FILE_BYTES."""
    spooled: SpooledTemporaryFile[bytes] = SpooledTemporaryFile(
        max_size=MAX_FILE_BYTES + 1024
    )
    total = 0
    chunk_size = 1024 * 64
    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        total += len(chunk)
        if total > MAX_FILE_BYTES:
            spooled.close()
            raise HTTPException(
                status_code=413,
                detail=f"File too large (> {MAX_FILE_BYTES // (1024 * 1024)}MB)",
            )
        spooled.write(chunk)
    if total == 0:
        spooled.close()
        raise HTTPException(status_code=400, detail="Empty file")
    spooled.seek(0)
    return spooled


def _decode(spooled: SpooledTemporaryFile) -> str:
    try:
        return spooled.read().decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise HTTPException(
            status_code=400, detail={"message": "File is not UTF-8 text"}
        ) from e
    finally:
        spooled.close()


def _parse_failure(e: Exception, debug: bool) -> HTTPException:
    tb = traceback.format_exc()
    logger.error("Parse failure: %s\n%s", e, tb)
    detail = {"error": "PARSE_FAILURE", "message": str(e)}
    if debug:
        detail["traceback"] = tb
    return HTTPException(status_code=500, detail=detail)


def _transactions_payload(summary: ImportSummary) -> list[dict]:
    return [t.model_dump(mode="json") for t in summary.transactions]


@app.post("/import/csv")
async def import_csv(
    request: Request,
    file: UploadFile = File(...),
    mapping: str = Form(...),
    dry_run: bool = Form(False),
):
    if not upload_name(file).endswith((".csv", ".txt")):
        raise HTTPException(status_code=400, detail="Only CSV files are supported")
    try:
        column_mapping = CsvMapping.model_validate_json(mapping)
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail={"message": "Invalid column mapping", "errors": [err["msg"] for err in e.errors()]},
        ) from e
    content = _decode(await _read_upload(file))
    importer = _importer(request)
    try:
        summary = await run_in_threadpool(importer.import_csv, content, column_mapping)
    except CsvMappingError as e:
        raise HTTPException(status_code=400, detail={"message": str(e)}) from e
    except Exception as e:  # pragma: no cover - defensive
        raise _parse_failure(e, _debug_enabled(request)) from e

    payload = {
        "fileName": file.filename,
        "metrics": summarize_transactions(summary.transactions),
        "total": summary.imported,
        "skipped": summary.skipped,
        "errors": [err.model_dump() for err in summary.errors],
    }
    if dry_run:
        payload["preview"] = [
            t.model_dump(mode="json") for t in summary.preview(IMPORT_PREVIEW_LIMIT)
        ]
    else:
        payload["transactions"] = _transactions_payload(summary)
    logger.info(
        "csv import %s: %d transactions, %d errors (dry_run=%s)",
        file.filename,
        summary.imported,
        len(summary.errors),
        dry_run,
    )
    return payload


def _parse_statement_upload(
    spooled: SpooledTemporaryFile, is_pdf: bool, account: str
) -> Tuple[ImportResult, str, List[str]]:
    if is_pdf:
        try:
            return parse_bank_statement(spooled, account)
        finally:
            spooled.close()
    lines = lines_from_text(_decode(spooled))
    layout = detect_layout(lines)
    return parse_statement_lines(lines, account, layout), layout, lines


@app.post("/import/statement")
async def import_statement(
    request: Request,
    file: UploadFile = File(...),
    account_name: Optional[str] = Form(None),
):
    name = upload_name(file)
    is_pdf = name.endswith(".pdf")
    if not is_pdf and not name.endswith(".txt"):
        raise HTTPException(status_code=400, detail="Only PDF or text statements are supported")
    spooled = await _read_upload(file)
    account = (account_name or "").strip() or DEFAULT_STATEMENT_ACCOUNT
    try:
        # parsing is CPU / IO bound, run off the event loop
        result, layout, raw_lines = await run_in_threadpool(
            _parse_statement_upload, spooled, is_pdf, account
        )
    except DocumentReadError as e:
        raise HTTPException(
            status_code=422, detail={"error": "UNREADABLE_DOCUMENT", "message": str(e)}
        ) from e
    except HTTPException:
        raise
    except Exception as e:  # pragma: no cover - defensive
        raise _parse_failure(e, _debug_enabled(request)) from e

    summary = _importer(request).finalize(result, account)
    # Optionally compute balance mismatches (can be expensive on large statements)
    mismatches = (
        await run_in_threadpool(compute_balance_mismatches, summary.transactions)
        if request.query_params.get("mismatches") == "1"
        else []
    )
    logger.info(
        "statement import %s (%s layout): %d transactions, %d errors",
        file.filename,
        layout,
        summary.imported,
        len(summary.errors),
    )
    return {
        "fileName": file.filename,
        "layout": layout,
        "metrics": summarize_transactions(summary.transactions),
        "transactions": _transactions_payload(summary),
        "errors": [err.model_dump() for err in summary.errors],
        "skipped": summary.skipped,
        "raw_line_count": len(raw_lines),
        "balance_mismatches": mismatches,
    }


@app.post("/categorize", response_model=CategorizeResponse)
def categorize(req: CategorizeRequest, request: Request):
    rules = req.rules if req.rules is not None else request.app.state.rules
    categories = req.categories if req.categories is not None else request.app.state.categories
    evaluator = RuleEvaluator(rules, categories)
    out: List[CategoryAssignment] = []
    for description in req.descriptions:
        matched = evaluator.match(description)
        out.append(
            CategoryAssignment(
                description=description,
                matched=matched is not None,
                category_id=matched.category_id if matched else None,
                category_name=matched.category_name if matched else None,
            )
        )
    return CategorizeResponse(matches=out)


if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run("statement_import.api:app", host="0.0.0.0", port=8000, reload=True)
