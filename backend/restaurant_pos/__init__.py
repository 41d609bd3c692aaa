from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from datetime import timedelta
from typing import Optional, Dict, Any
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def error_body(status: int, title: str, detail: str, kind: Optional[str] = None) -> Dict[str, Any]:
    err: Dict[str, Any] = {'status': status, 'title': title, 'detail': detail}
    if kind:
        err['kind'] = kind
    return {'error': err}


# Token failures all surface as the same Unauthenticated shape
@jwt.unauthorized_loader
def _missing_token(reason: str):
    return error_body(401, 'Unauthorized', reason, 'Unauthenticated'), 401


@jwt.invalid_token_loader
def _invalid_token(reason: str):
    return error_body(401, 'Unauthorized', reason, 'Unauthenticated'), 401


@jwt.expired_token_loader
def _expired_token(jwt_header, jwt_payload):
    return error_body(401, 'Unauthorized', 'Token has expired', 'Unauthenticated'), 401


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(hours=int(os.getenv('JWT_ACCESS_TOKEN_HOURS', '24')))

    if config:
        app.config.update(config)

    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # One shared connection so every session sees the same in-memory database
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    from .routes.auth import auth_bp
    from .routes.staff import staff_bp
    from .routes.meals import meals_bp
    from .routes.meal_categories import categories_bp
    from .routes.stock import stock_bp
    from .routes.orders import orders_bp
    from .routes.promotions import promo_bp
    from .routes.sale_events import sale_events_bp
    from .routes.customers import customers_bp
    from .routes.reviews import reviews_bp
    from .routes.alerts import alerts_bp
    from .routes.reports import rpt_bp
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(staff_bp, url_prefix='/api/admin/staff')
    app.register_blueprint(meals_bp, url_prefix='/api/meals')
    app.register_blueprint(categories_bp, url_prefix='/api/meal-categories')
    app.register_blueprint(stock_bp, url_prefix='/api/stock')
    app.register_blueprint(orders_bp, url_prefix='/api/orders')
    app.register_blueprint(promo_bp, url_prefix='/api/promotions')
    app.register_blueprint(sale_events_bp, url_prefix='/api/sale-events')
    app.register_blueprint(customers_bp, url_prefix='/api/customers')
    app.register_blueprint(reviews_bp, url_prefix='/api/reviews')
    app.register_blueprint(alerts_bp, url_prefix='/api/alerts')
    app.register_blueprint(rpt_bp, url_prefix='/api')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        # Drop whatever the failed request left pending in the session
        SessionLocal.rollback()
        if isinstance(e, HTTPException):
            return error_body(e.code, e.name, e.description, getattr(e, 'kind', None)), e.code
        app.logger.exception('Unhandled exception')
        return error_body(500, 'Internal Server Error', 'Unexpected error'), 500

    return app


def get_db():
    return SessionLocal()
