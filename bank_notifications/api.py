"""
Ingestion API

FastAPI service in front of the ingestion pipeline.
Endpoints:
- POST /api/process-transaction (JSON {"message": "..."} or a raw text body)
- GET  /api/process-transaction?message=... (manual testing)
- GET  /health

Run (dev): uvicorn bank_notifications.api:app --reload --port 8000
"""
import threading
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from .config import Settings
from .core.errors import MalformedInput, PersistenceFailure
from .core.ingestion_orchestrator import IngestionOrchestrator, build_orchestrator
from .core.notifications import format_notification_body
from .utils.db_connection import get_connection_pool
from .utils.logger import get_logger


LOGGER = get_logger(__name__)


def _default_orchestrator() -> IngestionOrchestrator:
    settings = Settings.from_env()
    return build_orchestrator(settings, pool=get_connection_pool())


async def read_message(request: Request) -> Optional[str]:
    """Message from a JSON body ({"message": ...}) or a plain text body"""
    content_type = request.headers.get('content-type', '')

    if 'application/json' in content_type:
        try:
            body = await request.json()
        except ValueError:
            return None
        message = body.get('message') if isinstance(body, dict) else None
        return message if isinstance(message, str) and message.strip() else None

    raw = await request.body()
    text = raw.decode('utf-8', errors='replace')
    return text if text.strip() else None


def create_app(orchestrator: Optional[IngestionOrchestrator] = None,
               orchestrator_factory: Callable[[], IngestionOrchestrator] = _default_orchestrator) -> FastAPI:
    """
    Build the API

    Args:
        orchestrator: Ready pipeline (tests)
        orchestrator_factory: Builds the pipeline on the first request

    Returns:
        FastAPI app
    """
    app = FastAPI(title='Bank Notification Ingestion API', version='1.0.0')
    state: Dict[str, Any] = {'orchestrator': orchestrator}
    lock = threading.Lock()

    def get_orchestrator() -> IngestionOrchestrator:
        with lock:
            if state['orchestrator'] is None:
                state['orchestrator'] = orchestrator_factory()
            return state['orchestrator']

    async def handle_message(message: str) -> JSONResponse:
        try:
            pipeline = await run_in_threadpool(get_orchestrator)
            result = await run_in_threadpool(pipeline.process_message, message)
        except MalformedInput as e:
            return JSONResponse(
                {'error': 'Could not extract required information from message', 'details': str(e)},
                status_code=400,
            )
        except PersistenceFailure as e:
            return JSONResponse(
                {'error': 'Failed to save transaction', 'details': str(e)},
                status_code=500,
            )
        except Exception as e:  # noqa: BLE001 - last-resort 500 for the HTTP surface
            LOGGER.exception("Error processing transaction")
            return JSONResponse(
                {'error': 'Internal server error', 'details': str(e) or type(e).__name__},
                status_code=500,
            )

        txn = result.transaction
        return JSONResponse({
            'success': True,
            'transaction': {'id': result.transaction_id, **txn.to_dict()},
            'notification': format_notification_body(txn, pipeline.assembler.base_currency),
        })

    @app.get('/health')
    def health() -> Dict[str, str]:
        return {'status': 'ok'}

    @app.post('/api/process-transaction')
    async def process_transaction(request: Request) -> JSONResponse:
        message = await read_message(request)
        if not message:
            return JSONResponse({'error': 'Message is required'}, status_code=400)
        return await handle_message(message)

    @app.get('/api/process-transaction')
    async def process_transaction_get(message: Optional[str] = None) -> JSONResponse:
        if not message or not message.strip():
            return JSONResponse({'error': 'message query param is required'}, status_code=400)
        return await handle_message(message)

    return app


app = create_app()
