"""Oracle connectivity and schema introspection on SQLAlchemy and python-oracledb."""

__version__ = "0.1.0"
