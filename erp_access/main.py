from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from erp_access.core import config
from erp_access.core.database.engine import init_db
from erp_access.core.errors import AuthorizationError, ConfigurationError, ValidationError
from erp_access.features.permissions.dependencies import get_access_config
from erp_access.features.permissions.routes import router as permission_router
from erp_access.features.projects.routes import router as project_router
from erp_access.utils import get_logger


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="ERP Access",
    description="Tenant isolation, record visibility and financial redaction",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.erp_access.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.ALLOW_ORIGIN:
    log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
    origins = [config.ALLOW_ORIGIN]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        key = error["loc"][-1]
        errors[key] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


# Engine errors: log the detail, send only the fixed public message

@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError):
    log.info("Access denied on %s: %s", request.url.path, exc.detail)
    return JSONResponse(status_code=403, content={"error": exc.public_message})


@app.exception_handler(ValidationError)
async def access_validation_error_handler(request: Request, exc: ValidationError):
    log.info("Rejected invalid access request on %s: %s", request.url.path, exc.detail)
    return JSONResponse(status_code=400, content={"error": exc.public_message})


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    log.error("Access configuration error on %s: %s", request.url.path, exc.detail)
    return JSONResponse(status_code=500, content={"error": exc.public_message})


@app.on_event("startup")
async def startup():
    """Validate access configuration and initialize the database."""
    get_access_config()
    log.info("Access configuration loaded")
    log.info("Initializing database...")
    await init_db()
    log.info("Database initialized successfully")


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


app.include_router(project_router, prefix="/projects", tags=["projects"])
app.include_router(permission_router, prefix="/permissions", tags=["permissions"])
