import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from booking_engine.core import config
from booking_engine.core.errors import BookingError
from booking_engine.database import Base, engine, ensure_booking_schema
from booking_engine.models import appointment, package_balance, schedule  # noqa: F401
from booking_engine.routes import appointment_routes, calendar_routes

app = FastAPI(title='Booking Engine API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_booking_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    logger.info('%s %s rejected: %s (%s)', request.method, request.url.path, exc.kind, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={'error': exc.kind, 'detail': exc.message},
    )


@app.get('/')
def root():
    return {'status': 'Booking Engine API Running'}


app.include_router(calendar_routes.router, prefix='/calendar')
app.include_router(appointment_routes.router, prefix='/appointments')
