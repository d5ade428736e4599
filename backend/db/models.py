from sqlalchemy import (
    BigInteger, Column, Float, Integer, MetaData, String, Table, UniqueConstraint,
)
from db.database import Base


def ci_string(length: int = 255):
    """String column compared case-insensitively on every driver.

    MySQL's default collation already ignores case; SQLite needs NOCASE.
    """
    return String(length).with_variant(String(length, collation="NOCASE"), "sqlite")


LOGGING_TABLE_NAME = "user_logs"
USER_SETTINGS_TABLE_NAME = "user_settings"

# Alternative names tables, one per name type. Source specific overlays
# append "_<source>" to these.
ALT_NAMES_TABLE_NAMES = {
    "substance": "substance_names",
    "route": "route_names",
    "units": "units_names",
    "convUnits": "conv_units_names",
}


class UserLog(Base):
    __tablename__ = LOGGING_TABLE_NAME

    time_of_dose_start = Column(BigInteger, primary_key=True, autoincrement=False)
    username = Column(ci_string(), primary_key=True)
    time_of_dose_end = Column(BigInteger, nullable=False, default=0)
    drug_name = Column(ci_string(), nullable=False)
    dose = Column(Float, nullable=False)
    dose_units = Column(ci_string(), nullable=False)
    drug_route = Column(ci_string(), nullable=False)
    cost = Column(Float, nullable=False, default=0)
    cost_currency = Column(ci_string(), nullable=False, default="")


class UserSetting(Base):
    __tablename__ = USER_SETTINGS_TABLE_NAME

    username = Column(ci_string(), primary_key=True)
    use_id_for_remember = Column(String(32), nullable=False, default="0")


# Per-source tables live in their own metadata so that ``Base.metadata``
# only ever holds the fixed schema.
source_metadata = MetaData()


def info_table(source: str) -> Table:
    existing = source_metadata.tables.get(source)
    if existing is not None:
        return existing
    return Table(
        source,
        source_metadata,
        Column("drug_name", ci_string(), primary_key=True),
        Column("drug_route", ci_string(), primary_key=True),
        Column("threshold", Float, nullable=False, default=0),
        Column("low_dose_min", Float, nullable=False, default=0),
        Column("low_dose_max", Float, nullable=False, default=0),
        Column("medium_dose_min", Float, nullable=False, default=0),
        Column("medium_dose_max", Float, nullable=False, default=0),
        Column("high_dose_min", Float, nullable=False, default=0),
        Column("high_dose_max", Float, nullable=False, default=0),
        Column("dose_units", ci_string(), nullable=False, default=""),
        Column("onset_min", Float, nullable=False, default=0),
        Column("onset_max", Float, nullable=False, default=0),
        Column("onset_units", ci_string(), nullable=False, default=""),
        Column("come_up_min", Float, nullable=False, default=0),
        Column("come_up_max", Float, nullable=False, default=0),
        Column("come_up_units", ci_string(), nullable=False, default=""),
        Column("peak_min", Float, nullable=False, default=0),
        Column("peak_max", Float, nullable=False, default=0),
        Column("peak_units", ci_string(), nullable=False, default=""),
        Column("offset_min", Float, nullable=False, default=0),
        Column("offset_max", Float, nullable=False, default=0),
        Column("offset_units", ci_string(), nullable=False, default=""),
        Column("total_dur_min", Float, nullable=False, default=0),
        Column("total_dur_max", Float, nullable=False, default=0),
        Column("total_dur_units", ci_string(), nullable=False, default=""),
        Column("time_of_fetch", BigInteger, nullable=False),
    )


def alt_names_table_name(name_type: str, source: str | None = None) -> str | None:
    base = ALT_NAMES_TABLE_NAMES.get(name_type)
    if base is None:
        return None
    return f"{base}_{source}" if source else base


def alt_names_table(table_name: str) -> Table:
    existing = source_metadata.tables.get(table_name)
    if existing is not None:
        return existing
    # The surrogate id only preserves insertion order, conversion configs
    # depend on it.
    return Table(
        table_name,
        source_metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("local_name", ci_string(), nullable=False, index=True),
        Column("alternative_name", ci_string(), nullable=False, index=True),
        UniqueConstraint("local_name", "alternative_name", name=f"uq_{table_name}_pair"),
    )
