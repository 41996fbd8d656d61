from enum import Enum


class StorageType(str, Enum):
    SQLITE = "sqlite"
    POSTGRES = "postgres"
