"""Intake Routes - pre-submission check of the client contact + project brief form.

POST /api/intake/validate - 200 with the normalised submission, or 422 with
every invalid field. Nothing is stored.
"""
from fastapi import APIRouter, Body
from typing import Any, Dict
from services.project_validation import validate_intake

router = APIRouter(prefix="/api/intake", tags=["intake"])


@router.post("/validate")
async def validate_intake_submission(payload: Dict[str, Any] = Body(...)):
    submission = validate_intake(payload)
    return {"valid": True, "data": submission.model_dump(mode="json")}
