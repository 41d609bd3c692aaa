import os, sys, pytest
# Ensure the backend directory is on path so 'restaurant_pos' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from restaurant_pos import create_app, get_db
# Importing the package registers every table on Base.metadata
from restaurant_pos.models import Base


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({'DATABASE_URL': 'sqlite+pysqlite:///:memory:', 'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-000'})
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()
