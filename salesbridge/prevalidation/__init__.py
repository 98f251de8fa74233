"""
Pre-validation — reject orders whose master-data references do not exist.

    from salesbridge import prevalidation as V

    validator = V.PreValidator(V.SQLAlchemyMasterData(session_factory))
    match await validator.validate(order, defaults):
        case Ok(_):
            ...  # safe to call the downstream system
        case Error(failure):
            ...  # failure.message lists every missing code (capped)
"""

from salesbridge.prevalidation._types import (
    MISSING_CODES_CAP,
    PreValidationFailure,
    missing_codes_message,
)
from salesbridge.prevalidation._store import (
    MasterDataReader,
    MemoryMasterData,
)
from salesbridge.prevalidation._sqlalchemy import (
    MasterTable,
    MasterDataTables,
    SQLAlchemyMasterData,
)
from salesbridge.prevalidation._validator import PreValidator

__all__ = (
    "MISSING_CODES_CAP",
    "PreValidationFailure",
    "missing_codes_message",
    "MasterDataReader",
    "MemoryMasterData",
    "MasterTable",
    "MasterDataTables",
    "SQLAlchemyMasterData",
    "PreValidator",
)
