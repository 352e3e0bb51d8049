import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from devcamper.core.config import Settings
from devcamper.core.errors import register_exception_handlers
from devcamper.core.geocoder import Geocoder
from devcamper.core.mailer import Mailer
from devcamper.database import build_engine, build_session_factory, ensure_schema
from devcamper.routes import auth_routes, bootcamp_routes, course_routes, review_routes, user_routes

API_PREFIX = '/api/v1'

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    settings.validate_runtime_config()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    app = FastAPI(title='DevCamper API', version='1.0.0')

    engine = build_engine(settings.database_url)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.geocoder = Geocoder(settings)
    app.state.mailer = Mailer(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )
    register_exception_handlers(app)

    @app.on_event('startup')
    def initialize_database() -> None:
        try:
            ensure_schema(engine)
        except SQLAlchemyError:
            logger.exception('Database initialization failed. Check DATABASE_URL.')
        logger.info('DevCamper API running in %s mode on port %s', settings.app_env, settings.port)

    @app.get('/')
    def root():
        return {'status': 'DevCamper API Running'}

    app.include_router(auth_routes.router, prefix=f'{API_PREFIX}/auth')
    app.include_router(bootcamp_routes.router, prefix=API_PREFIX)
    app.include_router(course_routes.router, prefix=API_PREFIX)
    app.include_router(review_routes.router, prefix=API_PREFIX)
    app.include_router(user_routes.router, prefix=API_PREFIX)

    return app


app = create_app()


if __name__ == '__main__':
    import uvicorn

    uvicorn.run(app, host='0.0.0.0', port=app.state.settings.port)
