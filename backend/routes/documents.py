"""
SamTech Voyages - Routes Documents
Métadonnées uniquement (nom, type, catégorie, url). Pas de stockage de fichiers.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from typing import Optional
import uuid

from config import db, now_iso
from models import DocumentCreate, DocumentUpdate
from services.activity_logger import log_activity
from services.permissions import (
    require_permission, get_agence_scope, build_agence_filter, enforce_write_agence,
)

router = APIRouter(prefix="/documents", tags=["Documents"])


async def _client_nom(client_id: Optional[str], agence_id: str) -> str:
    if not client_id:
        return ""
    client = await db.clients.find_one({"id": client_id, "agenceId": agence_id}, {"_id": 0})
    if not client:
        raise HTTPException(status_code=404, detail="Client non trouvé")
    return " ".join(p for p in [client.get("prenom"), client.get("nom")] if p)


@router.get("")
async def list_documents(
    request: Request,
    categorie: Optional[str] = None,
    clientId: Optional[str] = None,
    user: dict = Depends(require_permission("documents", "lire"))
):
    scope = get_agence_scope(user, request)
    query = build_agence_filter(scope)
    if categorie:
        query["categorie"] = categorie
    if clientId:
        query["clientId"] = clientId

    documents = await db.documents.find(query, {"_id": 0}).sort("dateModification", -1).to_list(1000)
    return {"success": True, "count": len(documents), "data": documents}


@router.get("/{document_id}")
async def get_document(
    document_id: str,
    request: Request,
    user: dict = Depends(require_permission("documents", "lire"))
):
    scope = get_agence_scope(user, request)
    document = await db.documents.find_one({"id": document_id, **build_agence_filter(scope)}, {"_id": 0})
    if not document:
        raise HTTPException(status_code=404, detail="Document non trouvé")
    return {"success": True, "data": document}


@router.post("", status_code=201)
async def create_document(
    data: DocumentCreate,
    request: Request,
    user: dict = Depends(require_permission("documents", "creer"))
):
    agence_id = enforce_write_agence(user, request, data.agenceId)

    now = now_iso()
    document = {
        "id": str(uuid.uuid4()),
        "agenceId": agence_id,
        **data.model_dump(exclude={"agenceId"}),
        "clientNom": await _client_nom(data.clientId, agence_id),
        "dateCreation": now,
        "dateModification": now,
        "created_by": user.get("email"),
    }
    await db.documents.insert_one(document)
    document.pop("_id", None)

    await log_activity(
        user=user, action="create", module="documents",
        entity_id=document["id"], entity_name=document["nom"], agence_id=agence_id
    )
    return {"success": True, "message": "Document ajouté avec succès", "data": document}


@router.put("/{document_id}")
async def update_document(
    document_id: str,
    data: DocumentUpdate,
    request: Request,
    user: dict = Depends(require_permission("documents", "modifier"))
):
    scope = get_agence_scope(user, request)
    document = await db.documents.find_one({"id": document_id, **build_agence_filter(scope)}, {"_id": 0})
    if not document:
        raise HTTPException(status_code=404, detail="Document non trouvé")

    update = data.model_dump(exclude_unset=True, exclude_none=True)
    if "nom" in update and not update["nom"].strip():
        raise HTTPException(status_code=400, detail="Nom obligatoire")
    if "clientId" in update:
        update["clientNom"] = await _client_nom(update["clientId"], document["agenceId"])
    update["dateModification"] = now_iso()

    await db.documents.update_one({"id": document_id}, {"$set": update})
    updated = await db.documents.find_one({"id": document_id}, {"_id": 0})
    return {"success": True, "message": "Document mis à jour avec succès", "data": updated}


@router.delete("/{document_id}")
async def delete_document(
    document_id: str,
    request: Request,
    user: dict = Depends(require_permission("documents", "supprimer"))
):
    scope = get_agence_scope(user, request)
    result = await db.documents.delete_one({"id": document_id, **build_agence_filter(scope)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Document non trouvé")

    await log_activity(user=user, action="delete", module="documents", entity_id=document_id)
    return {"success": True, "message": "Document supprimé avec succès", "deleted_id": document_id}
