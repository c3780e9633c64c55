"""
Production Line Planner - FastAPI Web Backend
"""

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from fastapi import FastAPI, HTTPException, File, UploadFile
from fastapi.responses import HTMLResponse, FileResponse, PlainTextResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from line_planner import __version__
from line_planner.constants import (
    PlannerSettings,
    ProductInfo,
    load_settings_from_yaml,
    save_settings_to_yaml,
)
from line_planner.data_loader import load_orders_file, SUPPORTED_EXTENSIONS
from line_planner.errors import (
    FileLoadError,
    OrderNotFoundError,
    StorageError,
    ValidationError,
)
from line_planner.output_generator import (
    item_display_dict,
    export_schedule_to_excel,
    export_to_json,
    generate_schedule_report,
)
from line_planner.planner import ProductionPlanner
from line_planner.repository import create_repository
from line_planner.validator import OrderForm, initial_form_state


logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Production Line Planner",
    description="Coil winding order scheduling calculator",
    version=__version__
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global data holders
settings: PlannerSettings = None
planner: ProductionPlanner = None
settings_path: Path = None


def get_base_path():
    return Path(__file__).parent.parent


def get_config_path():
    return Path(os.environ.get("LINE_PLANNER_CONFIG", get_base_path() / "config" / "settings.yaml"))


class OrderRequest(BaseModel):
    code: Optional[str] = None
    product: Optional[str] = None
    start_time: Optional[str] = None
    speed: Optional[Union[float, str]] = None
    simultaneous_coils: Optional[Union[float, str]] = None
    avg_length: Optional[Union[float, str]] = None
    total_coils: Optional[Union[float, str]] = None
    planned_quantity: Optional[Union[float, str]] = None
    pallet_changes: Optional[Union[float, str]] = None

    def to_form(self) -> OrderForm:
        values = self.model_dump()
        return OrderForm(**{
            name: "" if value is None else str(value)
            for name, value in values.items()
        })


class ProductRequest(BaseModel):
    description: str


def init_planner(config_path: str | Path) -> ProductionPlanner:
    """Load settings and build the planner for the configured backend."""
    global settings, planner, settings_path

    settings = load_settings_from_yaml(config_path)
    settings_path = Path(config_path)
    repository = create_repository(settings.storage, base_path=get_base_path())

    if planner is not None:
        planner.stop_sync()
    planner = ProductionPlanner(repository, catalog=settings.catalog)
    planner.start_sync()
    return planner


@app.on_event("startup")
async def load_data():
    """Load settings and the current orders on startup."""
    config_path = get_config_path()

    try:
        init_planner(config_path)
        logger.info("Loaded %d products from %s", len(settings.catalog), config_path)
        logger.info("Storage backend: %s", settings.storage.backend)
        logger.info("Loaded %d orders", len(planner.items))
    except Exception as e:
        logger.error("ERROR loading settings: %s", e)
        raise


@app.on_event("shutdown")
async def stop_sync():
    if planner is not None:
        planner.stop_sync()


def get_planner() -> ProductionPlanner:
    if planner is None:
        raise HTTPException(status_code=500, detail="Planner not initialized")
    return planner


@app.get("/")
async def root():
    """Serve the main HTML page."""
    html_path = Path(__file__).parent / "static" / "index.html"
    if html_path.exists():
        return HTMLResponse(content=html_path.read_text(), status_code=200)
    return HTMLResponse(content="<h1>Production Line Planner</h1>")


@app.get("/api/config")
async def get_config():
    """Get available configuration options."""
    current = get_planner()
    return {
        "version": __version__,
        "storage_backend": settings.storage.backend,
        "products_count": len(settings.catalog),
        "orders_count": len(current.items),
    }


# ============ PRODUCT CATALOG ENDPOINTS ============

@app.get("/api/products")
async def search_products(q: str = "", limit: int = 10):
    """Search the product catalog by code or description."""
    return {
        "products": [
            {"code": p.code, "description": p.description}
            for p in get_planner().catalog.search(q, limit=limit)
        ]
    }


@app.get("/api/products/{code}")
async def get_product(code: str):
    """Look up a product description by exact code."""
    description = get_planner().catalog.get_description(code)
    if description is None:
        raise HTTPException(status_code=404, detail=f"Unknown product code {code}")
    return {"code": code, "description": description}


@app.put("/api/products/{code}")
async def save_product(code: str, request: ProductRequest):
    """Add or update a catalog product and write it to the settings file."""
    current = get_planner()
    product = ProductInfo(code=code.strip(), description=request.description.strip())
    if not product.code:
        raise HTTPException(status_code=400, detail="Product code is required")
    current.catalog.add(product)

    try:
        save_settings_to_yaml(settings, settings_path)
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to save settings: {str(e)}")

    return {"code": product.code, "description": product.description}


# ============ ORDER ENDPOINTS ============

@app.get("/api/orders")
async def list_orders():
    """Get orders sorted by start time."""
    return {"orders": [item_display_dict(item) for item in get_planner().list_orders()]}


@app.get("/api/orders/suggested-start")
async def get_suggested_start():
    """Get the suggested start time for a new order."""
    return {"start_time": get_planner().suggested_start_time()}


@app.get("/api/orders/{item_id}/form")
async def get_order_form(item_id: str):
    """Get the pre-filled form for editing an order."""
    item = get_planner().get_order(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail=f"Order {item_id} not found")
    return initial_form_state(item).to_dict()


@app.post("/api/orders", status_code=201)
async def create_order(request: OrderRequest):
    """Create a new order."""
    try:
        item = get_planner().save_order_form(request.to_form())
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return item_display_dict(item)


@app.post("/api/orders/preview")
async def preview_order(request: OrderRequest, editing_id: Optional[str] = None):
    """Calculate an order form without saving it."""
    try:
        item = get_planner().preview_order_form(request.to_form(), editing_id=editing_id)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return item_display_dict(item)


@app.put("/api/orders/{item_id}")
async def update_order(item_id: str, request: OrderRequest):
    """Recalculate and overwrite an existing order."""
    try:
        item = get_planner().save_order_form(request.to_form(), editing_id=item_id)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OrderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return item_display_dict(item)


@app.delete("/api/orders/{item_id}")
async def delete_order(item_id: str):
    """Remove an order. Unknown ids succeed without changes."""
    try:
        get_planner().remove_order(item_id)
    except StorageError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"success": True}


@app.get("/api/summary")
async def get_summary():
    """Get dashboard totals."""
    return get_planner().summary().to_dict()


@app.post("/api/upload")
async def upload_orders(file: UploadFile = File(...)):
    """Import orders from an Excel or CSV file."""
    suffix = Path(file.filename or "").suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"File must be one of: {', '.join(SUPPORTED_EXTENSIONS)}"
        )

    fd, upload_path = tempfile.mkstemp(suffix=suffix)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(await file.read())

        inputs = load_orders_file(upload_path)
        items = get_planner().import_orders(inputs)
    except (FileLoadError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=f"Failed to process file: {e}")
    except StorageError as e:
        raise HTTPException(status_code=502, detail=str(e))
    finally:
        os.unlink(upload_path)

    return {
        "success": True,
        "message": f"Imported {len(items)} orders from {file.filename}",
        "orders_count": len(items),
    }


# ============ DOWNLOAD ENDPOINTS ============

@app.get("/api/download/excel")
async def download_excel():
    """Download the schedule as an Excel workbook."""
    items = get_planner().list_orders()
    output_path = Path(tempfile.gettempdir()) / "production_schedule.xlsx"

    try:
        export_schedule_to_excel(items, output_path)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Excel generation failed: {str(e)}")

    filename = f"production_schedule_{datetime.now():%Y-%m-%d}.xlsx"
    return FileResponse(
        output_path,
        media_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        filename=filename
    )


@app.get("/api/download/json")
async def download_json():
    """Download the schedule and its summary as JSON."""
    filename = f"production_schedule_{datetime.now():%Y-%m-%d}.json"
    return Response(
        content=export_to_json(get_planner().list_orders()),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@app.get("/api/download/report")
async def download_report():
    """Download the schedule as a text report."""
    return PlainTextResponse(generate_schedule_report(get_planner().list_orders()))


# Mount static files
static_path = Path(__file__).parent / "static"
if static_path.exists():
    app.mount("/static", StaticFiles(directory=str(static_path)), name="static")
