import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.orm import Session

from crud.audit_log import log_change
from models.app_config import AppConfig
from schemas.app_config import AppConfigCreate, AppConfigUpdate
from utils import sqlalchemy_to_dict

logger = logging.getLogger("app_config")

DEFAULT_CONFIGS = [
    {"name": "default_tax_percent", "value": "11"},
    {"name": "sale_prefix", "value": "INV"},
    {"name": "tax_free_sale_prefix", "value": "INX"},
    {"name": "default_currency_rate", "value": "1"},
]


# Create a new config entry
def create_config(db: Session, config: AppConfigCreate, tenant_id: str, user_id: str):
    db_config = AppConfig(name=config.name, value=config.value, tenant_id=tenant_id, created_by=user_id)
    db.add(db_config)
    log_change(db, tenant_id, db_config, "CREATE", user_id)
    db.commit()
    db.refresh(db_config)
    return db_config


# Get config by name (or all configs)
def get_config(db: Session, tenant_id: str, name: str = None):
    if name:
        return db.query(AppConfig).filter(AppConfig.name == name, AppConfig.tenant_id == tenant_id).first()
    return db.query(AppConfig).filter(AppConfig.tenant_id == tenant_id).order_by(AppConfig.name).all()


def get_config_value(db: Session, tenant_id: str, name: str, default: Optional[str] = None) -> Optional[str]:
    config = get_config(db, tenant_id, name=name)
    return config.value if config else default


def get_decimal_config(db: Session, tenant_id: str, name: str, default="0") -> Decimal:
    value = get_config_value(db, tenant_id, name, default)
    try:
        return Decimal(str(value))
    except InvalidOperation:
        logger.warning(f"Config '{name}' for tenant {tenant_id} is not numeric: {value!r}")
        return Decimal(str(default))


# Update config by name
def update_config_by_name(db: Session, name: str, config: AppConfigUpdate, tenant_id: str, user_id: str):
    db_config = db.query(AppConfig).filter(AppConfig.name == name, AppConfig.tenant_id == tenant_id).first()
    if not db_config:
        return None

    old_values = sqlalchemy_to_dict(db_config)
    for field, value in config.model_dump(exclude_unset=True).items():
        setattr(db_config, field, value)
    db_config.updated_by = user_id
    log_change(db, tenant_id, db_config, "UPDATE", user_id, old_values)
    db.commit()
    db.refresh(db_config)
    return db_config


def bulk_update_configs(db: Session, config_updates: dict, tenant_id: str, user_id: str):
    """Upsert several name/value pairs in one transaction."""
    for name, value in config_updates.items():
        if value is None:
            continue

        db_config = db.query(AppConfig).filter(AppConfig.name == name, AppConfig.tenant_id == tenant_id).first()
        if db_config:
            old_values = sqlalchemy_to_dict(db_config)
            db_config.value = str(value)
            db_config.updated_by = user_id
            action = 'UPDATE'
        else:
            db_config = AppConfig(name=name, value=str(value), tenant_id=tenant_id, created_by=user_id)
            db.add(db_config)
            old_values = {}
            action = 'CREATE'
        log_change(db, tenant_id, db_config, action, user_id, old_values)

    db.commit()
    return get_config(db, tenant_id)


def initialize_defaults(db: Session, tenant_id: str, user_id: str) -> list:
    """Create the default settings a tenant is missing; existing values are left alone."""
    existing = {name for (name,) in db.query(AppConfig.name).filter(AppConfig.tenant_id == tenant_id)}
    created = []
    for config in DEFAULT_CONFIGS:
        if config["name"] not in existing:
            db_config = AppConfig(tenant_id=tenant_id, created_by=user_id, **config)
            db.add(db_config)
            log_change(db, tenant_id, db_config, "CREATE", user_id)
            created.append(config["name"])
    db.commit()
    return created
