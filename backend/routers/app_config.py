from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from database import get_db
from schemas.app_config import AppConfigCreate, AppConfigUpdate, AppConfigBulkUpdate, AppConfigOut
from crud import app_config as crud_app_config
from crud.app_config import DEFAULT_CONFIGS
from utils.auth_utils import get_current_user, get_user_identifier
from utils.tenancy import get_tenant_id

router = APIRouter()
logger = logging.getLogger("app_config")


@router.post("/configurations/", response_model=AppConfigOut, status_code=status.HTTP_201_CREATED)
def create_config(config: AppConfigCreate, db: Session = Depends(get_db), user: dict = Depends(get_current_user),
                  tenant_id: str = Depends(get_tenant_id)):
    if crud_app_config.get_config(db, tenant_id, name=config.name):
        raise HTTPException(status_code=409, detail="Configuration already exists")
    return crud_app_config.create_config(db, config, tenant_id, user_id=get_user_identifier(user))


@router.get("/configurations/", response_model=List[AppConfigOut])
def get_configs(name: Optional[str] = None, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    configs = crud_app_config.get_config(db, tenant_id, name=name)
    # Always return a list, even if empty
    return [configs] if name and configs else configs or []


@router.patch("/configurations/bulk", response_model=List[AppConfigOut])
def bulk_update_configs(body: AppConfigBulkUpdate, db: Session = Depends(get_db),
                        user: dict = Depends(get_current_user), tenant_id: str = Depends(get_tenant_id)):
    user_id = get_user_identifier(user)
    configs = crud_app_config.bulk_update_configs(db, body.configs, tenant_id, user_id)
    logger.info(f"Configurations {sorted(body.configs)} updated by user {user_id} for tenant {tenant_id}")
    return configs


@router.patch("/configurations/{name}/", response_model=AppConfigOut)
def update_config(name: str, config: AppConfigUpdate, db: Session = Depends(get_db),
                  user: dict = Depends(get_current_user), tenant_id: str = Depends(get_tenant_id)):
    updated = crud_app_config.update_config_by_name(db, name, config, tenant_id, get_user_identifier(user))
    if not updated:
        raise HTTPException(status_code=404, detail="Configuration not found")
    return updated


@router.get("/tenants/configs-initialized", tags=["Tenants"])
def are_tenant_configurations_initialized(db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    """Checks if the default application configurations are initialized for a tenant."""
    default_config_names = {config["name"] for config in DEFAULT_CONFIGS}
    existing_config_names = {config.name for config in crud_app_config.get_config(db, tenant_id)}
    return {"configs_initialized": default_config_names.issubset(existing_config_names)}


@router.post("/tenants/initialize-configs", status_code=status.HTTP_201_CREATED, tags=["Tenants"])
def initialize_tenant_configurations(db: Session = Depends(get_db), user: dict = Depends(get_current_user),
                                     tenant_id: str = Depends(get_tenant_id)):
    """
    Initializes a tenant with the default configurations.
    This is idempotent; it will not overwrite existing configurations for the tenant.
    """
    user_id = get_user_identifier(user)
    created = crud_app_config.initialize_defaults(db, tenant_id, user_id)
    if not created:
        return {"message": f"All default configurations already exist for tenant '{tenant_id}'."}

    logger.info(f"Initialized default configs for tenant '{tenant_id}' by user {user_id}. New configs: {created}")
    return {"message": f"Successfully initialized default configurations for tenant '{tenant_id}'.",
            "new_configs": created}
