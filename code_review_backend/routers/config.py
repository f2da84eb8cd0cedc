"""Configuration API endpoints"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from code_review_backend.services.config_manager import ConfigManager

router = APIRouter()

SUPPORTED_PROVIDERS = ("gemini", "openai", "vllm")


class ConfigUpdateRequest(BaseModel):
    """Request to update configuration"""

    provider: str | None = None
    gemini: dict | None = None
    openai: dict | None = None
    vllm: dict | None = None
    git: dict | None = None


class ConfigResponse(BaseModel):
    """Configuration response"""

    provider: str
    gemini: dict
    openai: dict
    vllm: dict
    git: dict


def mask_key(key: str) -> str:
    if not key:
        return ""
    if len(key) <= 8:
        return "*" * len(key)
    return key[:4] + "*" * (len(key) - 8) + key[-4:]


@router.get("", response_model=ConfigResponse)
async def get_config() -> ConfigResponse:
    """Get current configuration with API keys masked"""
    config = ConfigManager.get_instance().get_config()

    sections = {}
    for name in SUPPORTED_PROVIDERS:
        section = dict(config.get(name, {}))
        section["apiKey"] = mask_key(section.get("apiKey", ""))
        sections[name] = section

    return ConfigResponse(
        provider=config.get("provider", "gemini"),
        git=config.get("git", {}),
        **sections,
    )


@router.put("")
async def update_config(request: ConfigUpdateRequest) -> dict[str, Any]:
    """Update only the provided configuration sections"""
    if request.provider and request.provider not in SUPPORTED_PROVIDERS:
        raise HTTPException(status_code=400, detail=f"Unsupported provider: {request.provider}")

    update = request.model_dump(exclude_none=True)
    try:
        ConfigManager.get_instance().save_config(update)
    except RuntimeError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {"status": "success", "message": "Configuration updated"}
