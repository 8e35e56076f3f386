from .clickhouse_backend import ClickHouseBackend


def get_storage_backend(db_type="clickhouse", **kwargs):
    if db_type == "clickhouse":
        return ClickHouseBackend(**kwargs)
    else:
        raise ValueError(f"Unsupported DB type: {db_type}")
