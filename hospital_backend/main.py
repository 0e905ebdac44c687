import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from hospital_backend.core import config
from hospital_backend.database import Base, engine, ensure_appointment_schema
from hospital_backend.models import appointment, notification, user  # noqa: F401
from hospital_backend.routes import appointment_routes, job_routes, notification_routes
from hospital_backend.scheduler import get_expiration_scheduler, shutdown_expiration_scheduler

logging.basicConfig(level=config.LOG_LEVEL)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=['http://localhost:4200'],
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
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.on_event('startup')
def start_expiration_sweep() -> None:
    if not config.EXPIRATION_SWEEP_ENABLED:
        logger.info('Expiration sweep disabled by EXPIRATION_SWEEP_ENABLED')
        return
    get_expiration_scheduler().start()


@app.on_event('shutdown')
def stop_expiration_sweep() -> None:
    shutdown_expiration_scheduler()


@app.get('/')
def root():
    return {'status': 'Hospital Appointment API Running'}


app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(notification_routes.router, prefix='/notifications')
app.include_router(job_routes.router, prefix='/jobs')
