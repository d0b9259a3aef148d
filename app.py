"""Entry-point script – simply delegates to Uvicorn with the FastAPI app that
lives in the ``ddlport`` package."""

import uvicorn

from ddlport import app as fastapi_app, config  # type: ignore  # app object is created in package __init__


if __name__ == "__main__":
    # For development, the uvicorn command can be used directly:
    # uvicorn ddlport:app --reload --port 5001
    uvicorn.run(
        "ddlport:app",
        host=config.get('api', {}).get('host', "127.0.0.1"),
        port=config.get('api', {}).get('port', 5001),
        reload=config.get('api', {}).get('debug', False),
    )
