"""Database engine, session registry and schema helpers."""
from sqlalchemy import create_engine, event, BigInteger, Integer
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base

Base = declarative_base()

# SQLite only autoincrements INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer, 'sqlite')

engine = None
db_session = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


def init_db(app):
    """Create the engine and session registry from app config."""
    global engine, db_session

    engine = create_engine(
        app.config['SQLALCHEMY_DATABASE_URI'],
        echo=app.config.get('SQLALCHEMY_ECHO', False),
        **app.config.get('SQLALCHEMY_ENGINE_OPTIONS', {})
    )
    if engine.dialect.name == 'sqlite':
        # ON DELETE CASCADE / SET NULL are ignored otherwise
        event.listen(engine, 'connect', _enable_sqlite_foreign_keys)

    db_session = scoped_session(
        sessionmaker(autocommit=False, autoflush=False, bind=engine)
    )

    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Roll back on error and release the session."""
        if exception:
            db_session.rollback()
        db_session.remove()

    return engine


def get_session():
    """Current thread's session."""
    return db_session


def create_all():
    """Create every table that does not exist yet."""
    import backoffice.models  # noqa: F401
    Base.metadata.create_all(bind=engine)


def drop_all():
    import backoffice.models  # noqa: F401
    Base.metadata.drop_all(bind=engine)
