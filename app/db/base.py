from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Every model imports Base from here; app.db.models imports all of them so
# Base.metadata is complete for create_all() and Alembic autogenerate.
