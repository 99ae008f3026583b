import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.core import config
from backend.core.errors import ClinicError, InvalidRequest, StorageError
from backend.core.responses import error_response
from backend.database import Base, engine, ensure_appointment_schema, ensure_provider_schema
from backend.models import appointment, provider, user  # noqa: F401
from backend.routes import appointment_routes, provider_routes, user_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

logger = logging.getLogger(__name__)

app = FastAPI(title='Clinic API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['GET', 'POST', 'PUT', 'DELETE'],
    allow_headers=['*'],
)


@app.middleware('http')
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info('%s %s %s %.1fms', request.method, request.url.path, response.status_code, elapsed_ms)
    return response


@app.exception_handler(ClinicError)
async def handle_clinic_error(request: Request, exc: ClinicError):
    if isinstance(exc, StorageError):
        logger.error('Storage failure on %s %s: %s (%s)', request.method, request.url.path, exc.message, exc.error)
    return error_response(exc.message, status_code=exc.status_code, error=exc.error)


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    response = error_response(str(exc.detail), status_code=exc.status_code)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    error = InvalidRequest('Solicitud inválida.', error=exc.errors())
    return error_response(error.message, status_code=error.status_code, error=error.error)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_provider_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'success': True, 'message': 'Clinic API Running'}


app.include_router(user_routes.router, prefix='/api/users')
app.include_router(provider_routes.router, prefix='/api/providers')
app.include_router(appointment_routes.router, prefix='/api/appointments')
