from fastapi import APIRouter, HTTPException, Body
from fastapi.responses import JSONResponse
from typing import Dict, Any, Optional
import os

from ddlport import config  # Global config
from ddlport.utils.timing import timed

from ..services.sql_conversion import ConversionOrchestrator
from ..services.sql_conversion.conversion_state import OutputTreeState
from ..services.sql_conversion.nodes import ObjectKey
from ddlport.utils.logger import setup_logger
from ddlport.utils.workspace_resolver import resolve_source_sql_path

api_router = APIRouter(prefix='/api/v1')

# Setup logger for API
logger = setup_logger('api_routes')


@api_router.get('/')
def root():
    """Root endpoint of the API.

    Returns a simple JSON message indicating the API is running.
    {
        "message": "API is running"
    }
    """
    return JSONResponse({"message": "API is running"})


@api_router.post('/ddl/convert')
def convert_ddl_endpoint(payload: Optional[Dict[str, Any]] = Body(default=None)):
    """Convert a file or a directory of SQL Server DDL into the output tree.

    Request body:
    {
        "input_path": "Sales/Tables/Orders.sql",   # optional, relative to workspace/source
        "output_dir": "/abs/path/to/converted",    # optional, defaults to workspace/converted
        "max_workers": 4                           # optional
    }
    """
    try:
        payload = payload or {}
        input_path = payload.get('input_path')
        output_dir = payload.get('output_dir')
        max_workers = payload.get('max_workers')

        actual_input_path = resolve_source_sql_path(input_path)
        if not actual_input_path.exists():
            return JSONResponse({'error': f'Input path does not exist: {actual_input_path}'}, status_code=404)

        # Create a new orchestrator instance for each request
        orchestrator = ConversionOrchestrator(
            source_dialect=config['conversion']['source_dialect'],
            target_dialect=config['conversion']['target_dialect'],
            max_workers=max_workers,
        )
        result_dict = timed(orchestrator.convert, str(actual_input_path), output_dir, logger=logger)
        return JSONResponse(result_dict)

    except ValueError as ve:
        return JSONResponse({'error': str(ve)}, status_code=400)
    except Exception as e:
        logger.error(f"Unexpected error in /ddl/convert endpoint: {str(e)}", exc_info=True)
        return JSONResponse({'error': f'An unexpected error occurred: {str(e)}'}, status_code=500)


@api_router.post('/ddl/convert_text')
def convert_ddl_text_endpoint(payload: Dict[str, Any] = Body(...)):
    """Convert one script held in the request body. Nothing is written.

    Foreign keys are resolved against the output tree (``output_dir`` or the
    workspace default).
    """
    sql = payload.get('sql')
    if not isinstance(sql, str) or not sql.strip():
        raise HTTPException(status_code=400, detail="Field 'sql' must be a non-empty string")

    try:
        state = OutputTreeState(payload.get('output_dir'))
        orchestrator = ConversionOrchestrator()
        result = orchestrator.convert_sql(sql, has_output=state.snapshot())
        body = {
            'status': 'success' if result.ok else 'error',
            'ddl': result.ddl if result.ok else None,
            'report': result.report,
        }
        return JSONResponse(body, status_code=200 if result.ok else 422)
    except Exception as e:
        logger.error(f"Unexpected error in /ddl/convert_text endpoint: {str(e)}", exc_info=True)
        return JSONResponse({'error': f'An unexpected error occurred: {str(e)}'}, status_code=500)


@api_router.get('/ddl/outputs/{schema}/{table}')
def output_status(schema: str, table: str, output_dir: Optional[str] = None):
    """Whether converted DDL exists for ``schema.table`` and where it lives (or would go)."""
    state = OutputTreeState(output_dir)
    exists = state.has_output(ObjectKey(schema, table))
    return JSONResponse({
        'schema': schema,
        'table': table,
        'has_output': exists,
        'output_path': os.fspath(state.output_path(schema, table)),
    })
