import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from appointment_ez.core import config
from appointment_ez.core.exceptions import BookingError
from appointment_ez.dependencies import build_booking_service, build_notifier
from appointment_ez.routes import appointment_routes, auth_routes, booking_routes, settings_routes
from appointment_ez.scheduling.timestamps import to_iso
from appointment_ez.storage.settings_store import SettingsStore

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title='AppointmentEZ API', version=config.APP_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.on_event('startup')
def initialize_services() -> None:
    config.validate_runtime_config()
    settings_store = SettingsStore(config.SETTINGS_PATH)
    app.state.settings_store = settings_store
    app.state.notifier = build_notifier(settings_store)
    app.state.booking_service = build_booking_service()
    logger.info(
        'Booking service ready (store=%s, timezone=%s)',
        config.BOOKING_STORE,
        config.BUSINESS_TIMEZONE,
    )


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error('%s %s failed: %s', request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {'field': '.'.join(str(part) for part in error.get('loc', ())[1:]), 'message': error.get('msg', '')}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={'error': 'Invalid request body', 'code': 'invalid_request', 'details': details},
    )


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={'error': exc.detail}, headers=exc.headers)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception('Unhandled error on %s %s', request.method, request.url.path)
    return JSONResponse(status_code=500, content={'error': 'Internal server error', 'code': 'internal_error'})


@app.get('/')
def root():
    return {'status': 'Appointment API Running'}


@app.get('/api/health')
def health():
    return {
        'status': 'ok',
        'version': config.APP_VERSION,
        'timestamp': to_iso(datetime.now(timezone.utc)),
    }


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(booking_routes.router, prefix='/api')
app.include_router(settings_routes.router, prefix='/api')
app.include_router(appointment_routes.router, prefix='/api/appointments')
