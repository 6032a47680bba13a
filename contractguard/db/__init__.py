# Database utilities package
from .sql import (
    run_sql,
    run_sql_one,
    run_sql_write,
    validate_identifier,
)
from .engine import get_engine, dispose_engines
from .resources import SQLResourceLookup
