"""
Model registry API:
- GET    /llm-models/active      : selectable models (public), ordered by display name
- GET    /llm-models             : all models (admin)
- POST   /llm-models             : register a model (admin)
- PUT    /llm-models/{model_id}  : partial update (admin)
- DELETE /llm-models/{model_id}  : deactivate (admin); rows are never removed

Model ids contain slashes (e.g. `openai/gpt-4o-mini`), hence the `:path` converter.
"""

from fastapi import APIRouter, Depends, HTTPException

from src.api.deps import get_current_admin, get_model_registry
from src.api.schemas import CreateModelRequest, ModelItem, UpdateModelRequest
from src.auth.users import Identity
from src.llm.model_registry import ModelExistsError, ModelRegistry

router = APIRouter(prefix="/llm-models", tags=["models"])


@router.get("/active", response_model=list[ModelItem])
def list_active_models(registry: ModelRegistry = Depends(get_model_registry)) -> list[dict]:
    return [m.to_dict() for m in registry.list_active()]


@router.get("", response_model=list[ModelItem])
def list_all_models(
    _admin: Identity = Depends(get_current_admin),
    registry: ModelRegistry = Depends(get_model_registry),
) -> list[dict]:
    return [m.to_dict() for m in registry.list_all()]


@router.post("", response_model=ModelItem, status_code=201)
def create_model(
    body: CreateModelRequest,
    _admin: Identity = Depends(get_current_admin),
    registry: ModelRegistry = Depends(get_model_registry),
) -> dict:
    try:
        return registry.create(**body.model_dump()).to_dict()
    except ModelExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/{model_id:path}", response_model=ModelItem)
def update_model(
    model_id: str,
    body: UpdateModelRequest,
    _admin: Identity = Depends(get_current_admin),
    registry: ModelRegistry = Depends(get_model_registry),
) -> dict:
    updated = registry.update(model_id, **body.model_dump(exclude_none=True))
    if updated is None:
        raise HTTPException(status_code=404, detail="model not found")
    return updated.to_dict()


@router.delete("/{model_id:path}", response_model=ModelItem)
def deactivate_model(
    model_id: str,
    _admin: Identity = Depends(get_current_admin),
    registry: ModelRegistry = Depends(get_model_registry),
) -> dict:
    updated = registry.deactivate(model_id)
    if updated is None:
        raise HTTPException(status_code=404, detail="model not found")
    return updated.to_dict()
