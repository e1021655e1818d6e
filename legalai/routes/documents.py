import asyncio

from fastapi import APIRouter, Depends, File, UploadFile

from legalai.dependencies import Services, get_identity, get_services, require_user
from legalai.errors import NotFound
from legalai.services.document_store import DocumentRecord
from legalai.utils.logger import logger
from legalai.utils.rate_limit import Identity
from legalai.utils.security import sanitize_text

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post("/upload", status_code=201)
async def upload_document(
    file: UploadFile = File(...),
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """Analyzes an uploaded document. Each accepted upload costs one unit of the caller's quota."""
    quota = services.upload_quota.consume(identity)

    try:
        data = await file.read()
        mime_type = services.processor.resolve_type(file.filename, file.content_type)
        text = await asyncio.to_thread(services.processor.extract_text, data, mime_type)
        analysis = await services.analyzer.analyze(text)

        document_id = None
        if identity.authenticated:
            record = services.documents.add(DocumentRecord(
                user_id=identity.key,
                filename=sanitize_text(file.filename, max_length=255) or "document",
                content_type=mime_type,
                analysis=analysis.to_dict(),
                created_at=services.clock(),
            ))
            document_id = record.id
    except Exception:
        # The upload never completed; give the unit back
        services.upload_quota.refund(identity)
        raise

    logger.info(f"Analyzed {mime_type} upload ({len(text)} chars), {quota.remaining} uploads left")
    return {
        "message": "File uploaded and analyzed successfully!",
        "documentId": document_id,
        "analysis": analysis.to_dict(),
        "remainingUploads": quota.remaining,
    }


@router.get("/history")
async def get_history(identity: Identity = Depends(require_user), services: Services = Depends(get_services)):
    documents = services.documents.list_for_user(identity.key)
    return {"documents": [doc.to_dict() for doc in documents]}


@router.delete("/{document_id}")
async def delete_document(
    document_id: str,
    identity: Identity = Depends(require_user),
    services: Services = Depends(get_services),
):
    """Removes a document from history and returns one unit of upload quota."""
    if not services.documents.delete(identity.key, document_id):
        raise NotFound("Document not found")
    quota = services.upload_quota.reclaim(identity)
    return {"message": "Document deleted", "remainingUploads": quota.remaining}


@router.get("/quota")
async def get_quota(identity: Identity = Depends(get_identity), services: Services = Depends(get_services)):
    return {"authenticated": identity.authenticated, **services.upload_quota.status(identity).to_dict()}
