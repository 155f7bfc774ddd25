"""Credential configuration helpers."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import HTTPException, Request

from dal.credential_dal import CredentialDAL


def _credentials(request: Request) -> CredentialDAL:
	return request.app.state.credentials


async def credential_status(request: Request) -> Dict[str, Any]:
	"""Report whether a credential is configured without revealing it."""
	return {"configured": bool(await _credentials(request).get())}


async def save_credential(request: Request, credential: str) -> Dict[str, Any]:
	try:
		await _credentials(request).set(credential)
	except ValueError as exc:
		raise HTTPException(status_code=400, detail=str(exc)) from exc
	return {"configured": True}


async def clear_credential(request: Request) -> Dict[str, Any]:
	await _credentials(request).clear()
	return {"configured": False}
