from fastapi import APIRouter, Request
from pydantic import BaseModel

from controllers.settings_controller import clear_credential, credential_status, save_credential

router = APIRouter(prefix="/settings")


class CredentialPayload(BaseModel):
	credential: str


@router.get("/credential")
async def credential_status_route(request: Request):
	return await credential_status(request)


@router.put("/credential")
async def save_credential_route(request: Request, payload: CredentialPayload):
	return await save_credential(request, payload.credential)


@router.delete("/credential")
async def clear_credential_route(request: Request):
	return await clear_credential(request)
