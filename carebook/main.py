import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from carebook.core import config
from carebook.database import Base, engine, ensure_appointment_schema, ensure_doctor_schema
from carebook.models import appointment, doctor, user  # noqa: F401
from carebook.routes import appointment_routes, auth_routes, schedule_routes

logging.basicConfig(level=config.LOG_LEVEL)

app = FastAPI(title='CareBook Scheduling API', debug=config.DEBUG)

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
        ensure_doctor_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'CareBook Scheduling API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(schedule_routes.router, prefix='/doctors')
app.include_router(appointment_routes.router, prefix='/appointments')
