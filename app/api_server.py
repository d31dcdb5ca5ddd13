from __future__ import annotations

from dataclasses import asdict
from functools import lru_cache
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

import sys

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from wardrobe_assistant.errors import DimensionMismatch, PromptConflict  # noqa: E402
from wardrobe_assistant.service import WardrobeAssistantService  # noqa: E402
from wardrobe_assistant.wardrobe import WardrobeItem  # noqa: E402


class RecommendRequest(BaseModel):
    occasion: str = Field(min_length=1)
    gender: str = Field(min_length=1)
    note: str | None = Field(default=None, max_length=500)
    custom_prompt: str | None = None


class WardrobeItemRequest(BaseModel):
    id: str | None = None
    description: str = Field(min_length=1)
    category: str = Field(min_length=1)
    subcategory: str = Field(min_length=1)
    colors: list[str] = Field(min_length=1)
    fit: str | None = None
    brand: str | None = None
    occasions: list[str] = Field(default_factory=list)
    image: str | None = None


class WardrobeItemUpdateRequest(BaseModel):
    description: str | None = Field(default=None, min_length=1)
    category: str | None = Field(default=None, min_length=1)
    subcategory: str | None = Field(default=None, min_length=1)
    colors: list[str] | None = Field(default=None, min_length=1)
    fit: str | None = None
    brand: str | None = None
    occasions: list[str] | None = None
    image: str | None = None


class PromptCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    content: str = Field(min_length=1)
    description: str | None = None
    is_active: bool = False


class PromptUpdateRequest(BaseModel):
    name: str = Field(min_length=1)
    content: str = Field(min_length=1)
    description: str | None = None
    is_active: bool | None = None
    change_summary: str | None = None


class CsvImportRequest(BaseModel):
    csv: str = Field(min_length=1)


app = FastAPI(title="Wardrobe Outfit Assistant", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:5173",
        "http://localhost:5173",
        "http://127.0.0.1:8000",
        "http://localhost:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_service() -> WardrobeAssistantService:
    return WardrobeAssistantService(root_dir=ROOT_DIR)


def _public_item(item: WardrobeItem) -> dict[str, Any]:
    payload = asdict(item)
    payload["colors"] = list(item.colors)
    payload["occasions"] = list(item.occasions)
    return payload


async def _read_upload(upload: UploadFile, label: str) -> bytes:
    if not upload.filename:
        raise HTTPException(status_code=400, detail=f"Missing {label} filename.")
    payload = await upload.read()
    if not payload:
        raise HTTPException(status_code=400, detail=f"Uploaded {label} is empty.")
    return payload


@app.get("/api/health")
def health(service: WardrobeAssistantService = Depends(get_service)) -> dict:
    return {
        "status": "ok",
        "app": "wardrobe-outfit-assistant",
        "stats": service.stats(),
    }


@app.post("/api/recommend")
def recommend(
    request: RecommendRequest,
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    try:
        return service.recommend(
            user_id=user_id,
            occasion=request.occasion,
            gender=request.gender,
            note=request.note,
            custom_prompt=request.custom_prompt,
        )
    except DimensionMismatch as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.post("/api/recommend/csv")
async def recommend_from_csv(
    csv: UploadFile = File(...),
    gender: str = Form(...),
    occasion: str = Form(...),
    note: str = Form(default=""),
    custom_prompt: str | None = Form(default=None),
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    payload = await _read_upload(csv, "CSV")
    try:
        return service.recommend_from_csv(
            user_id=user_id,
            csv_text=payload.decode("utf-8"),
            occasion=occasion,
            gender=gender,
            note=note,
            custom_prompt=custom_prompt,
        )
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=400, detail="CSV must be UTF-8 encoded.") from exc
    except DimensionMismatch as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.get("/api/recommendations/{session_id}")
def recommendation(session_id: str, service: WardrobeAssistantService = Depends(get_service)) -> dict:
    try:
        return service.get_recommendation(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.get("/api/wardrobe-items")
def list_wardrobe_items(
    category: str | None = None,
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    items = service.list_items(user_id=user_id, category=category)
    return {"items": [_public_item(item) for item in items], "total": len(items)}


@app.post("/api/wardrobe-items", status_code=201)
def create_wardrobe_item(
    request: WardrobeItemRequest,
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    try:
        item = service.add_item(user_id=user_id, data=request.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _public_item(item)


@app.post("/api/wardrobe-items/import")
def import_wardrobe_items(
    request: CsvImportRequest,
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    try:
        return service.import_csv(user_id=user_id, csv_text=request.csv)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/api/wardrobe-items/{item_id}")
def get_wardrobe_item(
    item_id: str,
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    try:
        return _public_item(service.get_item(user_id=user_id, item_id=item_id))
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.put("/api/wardrobe-items/{item_id}")
def update_wardrobe_item(
    item_id: str,
    request: WardrobeItemUpdateRequest,
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    try:
        item = service.update_item(user_id=user_id, item_id=item_id, data=request.model_dump(exclude_none=True))
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _public_item(item)


@app.delete("/api/wardrobe-items/{item_id}")
def delete_wardrobe_item(
    item_id: str,
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    try:
        service.delete_item(user_id=user_id, item_id=item_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"deleted": item_id}


@app.post("/api/item-analysis")
async def item_analysis(
    image: UploadFile = File(...),
    custom_prompt: str | None = Form(default=None),
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    payload = await _read_upload(image, "image")
    try:
        return service.analyze_item(image_bytes=payload, custom_prompt=custom_prompt, user_id=user_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.get("/api/prompts")
def list_prompts(
    prompt_type: str | None = Query(default=None, alias="type"),
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    try:
        return {"prompts": service.list_prompts(user_id=user_id, prompt_type=prompt_type)}
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.post("/api/prompts", status_code=201)
def create_prompt(
    request: PromptCreateRequest,
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    try:
        return {"prompt": service.create_prompt(user_id=user_id, data=request.model_dump())}
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.post("/api/prompts/seed-defaults", status_code=201)
def seed_default_prompts(
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    try:
        prompts = service.seed_default_prompts(user_id=user_id)
    except PromptConflict as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"prompts": prompts, "count": len(prompts)}


@app.get("/api/prompts/{prompt_id}")
def get_prompt(
    prompt_id: str,
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    try:
        return {"prompt": service.get_prompt(user_id=user_id, prompt_id=prompt_id)}
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.put("/api/prompts/{prompt_id}")
def update_prompt(
    prompt_id: str,
    request: PromptUpdateRequest,
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    try:
        return {"prompt": service.update_prompt(user_id=user_id, prompt_id=prompt_id, data=request.model_dump())}
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.delete("/api/prompts/{prompt_id}")
def delete_prompt(
    prompt_id: str,
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    try:
        service.delete_prompt(user_id=user_id, prompt_id=prompt_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"deleted": prompt_id}


@app.post("/api/prompts/{prompt_id}/activate")
def activate_prompt(
    prompt_id: str,
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    try:
        return {"prompt": service.activate_prompt(user_id=user_id, prompt_id=prompt_id)}
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.get("/api/prompts/{prompt_id}/versions")
def prompt_versions(
    prompt_id: str,
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    try:
        return service.list_prompt_versions(user_id=user_id, prompt_id=prompt_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.post("/api/prompts/{prompt_id}/versions/{version}/restore")
def restore_prompt_version(
    prompt_id: str,
    version: int,
    user_id: str = Header(default="local-user", alias="X-User-Id"),
    service: WardrobeAssistantService = Depends(get_service),
) -> dict:
    try:
        return service.restore_prompt_version(user_id=user_id, prompt_id=prompt_id, version=version)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
