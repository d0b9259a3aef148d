import os

from ddlport.config import config
from .utils.logger import setup_logger

# Ensure the directory structure defined in settings.yaml exists at import
# time so that any service can safely assume the folders are present.
if 'base_dirs' in config:
    for key, path in config['base_dirs'].items():
        if key != 'app':
            os.makedirs(path, exist_ok=True)

# Also pre-create the workspace source / converted trees.
if 'workspace' in config.get('base_dirs', {}) and 'workspace_sub_dirs' in config:
    workspace_root = config['base_dirs']['workspace']

    for name, sub in config["workspace_sub_dirs"].items():
        if os.path.sep in sub:
            continue
        os.makedirs(os.path.join(workspace_root, sub), exist_ok=True)

# Log once during package import so we know the package was initialised.
setup_logger('ddlport_init').info('ddlport package initialised with FastAPI backend.')

# ------------------------- FastAPI application ---------------------------

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Create the FastAPI instance
app = FastAPI(title="DDL Port API", version=config.get('api', {}).get('version', 'v1'))

# Allow cross-origin requests from any origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


from .api.routes import api_router

app.include_router(api_router)

route_logger = setup_logger('routes')
for route in app.routes:
    if hasattr(route, 'methods'):
        route_logger.info(f"{list(route.methods)}  {route.path}")
