from fastapi import Header, HTTPException


def get_tenant_id(x_tenant_id: str = Header(..., description="Tenant the request operates on")) -> str:
    tenant_id = x_tenant_id.strip() if x_tenant_id else ""
    if not tenant_id:
        raise HTTPException(status_code=400, detail="X-Tenant-ID header is missing")
    if len(tenant_id) > 64:
        raise HTTPException(status_code=400, detail="X-Tenant-ID header is too long")
    return tenant_id
