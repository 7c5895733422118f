# backend/agenda/routes/v1/status.py
"""
Integration API status - API v1

Lets an integration verify its key and see what it is allowed to do.
"""

from collections import defaultdict
from typing import Dict, List

from fastapi import APIRouter, Depends

from ...api.dependencies import get_api_key_scope, get_clock
from ...core.constants import API_VERSION
from ...core.timezone_utils import Clock
from ...schemas.common import ApiStatusResponse
from ...services.tenant_scope import TenantScope

router = APIRouter(tags=["status-v1"])


@router.get("", response_model=ApiStatusResponse)
def api_status(
    scope: TenantScope = Depends(get_api_key_scope),
    clock: Clock = Depends(get_clock),
) -> ApiStatusResponse:
    permissions: Dict[str, List[str]] = defaultdict(list)
    grants = sorted(scope.capabilities.grants, key=lambda g: (g[0].value, g[1].value))
    for resource, action in grants:
        permissions[resource.value].append(action.value)

    return ApiStatusResponse(
        status="ok",
        version=API_VERSION,
        timestamp=clock(),
        api_key={
            "id": scope.api_key_id,
            "scope": scope.kind.value,
            "company_id": scope.company_id,
            "store_id": scope.store_id,
            "auto_confirm": scope.auto_confirm,
        },
        permissions=dict(permissions),
    )
