import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware

from ..engine.models import ClassifiedPromotion
from ..services.validation import QuoteConfigSchema, config_to_payload, validate_config
from .state import engine

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Quote Engine API",
    description="Pricing, promotion eligibility and optimization for wireless quotes",
    version="1.0.0"
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _classified(item: ClassifiedPromotion) -> dict:
    return {
        "promotion": jsonable_encoder(item.promotion),
        "status": item.eligibility.status.value,
        "reasons": list(item.eligibility.reasons),
    }


@app.get("/")
async def root():
    return {"status": "online", "message": "Quote Engine API Active"}


@app.post("/calculate")
async def calculate_quote(req: QuoteConfigSchema):
    try:
        totals = engine.calculate(req.to_config())
    except Exception as e:
        logger.exception("Calculation failed")
        raise HTTPException(status_code=500, detail=str(e))
    return jsonable_encoder(totals)


@app.post("/validate")
async def validate_quote(payload: dict):
    return jsonable_encoder(validate_config(payload, engine.catalog.plans))


@app.post("/optimize")
async def optimize_quote(req: QuoteConfigSchema):
    result = engine.optimize(req.to_config())
    return {
        "config": config_to_payload(result.config),
        "changes_made": result.changes_made,
        "trace": jsonable_encoder(result.trace),
    }


@app.post("/promotions/classify")
async def classify_promotions(req: QuoteConfigSchema):
    return [_classified(item) for item in engine.classify(req.to_config())]


@app.post("/promotions/{promotion_id}/apply")
async def apply_promotion(promotion_id: str, req: QuoteConfigSchema):
    try:
        config = engine.apply_promotion(req.to_config(), promotion_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return config_to_payload(config)


@app.post("/guidance")
async def get_guidance(req: QuoteConfigSchema, placement: Optional[str] = None):
    try:
        items = engine.guidance(req.to_config(), placement)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown placement '{placement}'")
    return jsonable_encoder(items)


@app.get("/catalog/plans")
async def get_plans():
    return jsonable_encoder(engine.catalog.plans)


@app.get("/catalog/promotions")
async def get_promotions(active_only: bool = False):
    promotions = engine.catalog.promotions
    if active_only:
        promotions = [p for p in promotions if p.is_active]
    return jsonable_encoder(promotions)


@app.get("/catalog/devices")
async def get_devices():
    return jsonable_encoder(engine.catalog.device_database.devices)


@app.get("/system/status")
async def get_status():
    catalog = engine.catalog
    return {
        "engine_active": True,
        "catalog_hash": catalog.catalog_hash,
        "data_dir": str(engine.settings.data_dir),
        "plans_count": len(catalog.plans),
        "promotions_count": len(catalog.promotions),
        "devices_count": len(catalog.device_database.devices),
    }


@app.post("/system/reload")
async def reload_catalog():
    try:
        engine.reload_data()
    except (FileNotFoundError, ValueError) as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"status": "reloaded", "catalog_hash": engine.catalog.catalog_hash}
