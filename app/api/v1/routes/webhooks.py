from fastapi import APIRouter, Depends, status
from starlette.responses import JSONResponse

from api.utils.logger import logger, myself
from core.auth import require_admin_key
from db.session import get_db
from db.crud.events import process_indexer_batch
from db.schemas.events import IndexerBatch, IndexerBatchResult

webhooks_router = r = APIRouter()


@r.post(
    "/indexer",
    response_model=IndexerBatchResult,
    name="webhooks:indexer",
    dependencies=[Depends(require_admin_key)],
)
def indexer_webhook(
    batch: IndexerBatch,
    db=Depends(get_db),
):
    """
    Ingest EventCreated facts from the indexer; each item succeeds or fails on its own
    """
    try:
        result = process_indexer_batch(db, batch.events)
        logger.info(f'indexer batch: {result.processed} processed, {result.failed} failed')
        return result

    except Exception as e:
        logger.error(f'ERR:{myself()}: {e}')
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': 'database error'})
