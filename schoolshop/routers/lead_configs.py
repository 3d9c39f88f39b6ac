from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from schoolshop.auth.dependencies import AuthContext, get_current_user
from schoolshop.db.deps import get_session
from schoolshop.schemas.lead_configs import ConfirmLeadConfigResponse, ProvisionProductsResponse
from schoolshop.services import provisioning

router = APIRouter(prefix="/lead-configs", tags=["lead-configs"])


@router.post("/{config_id}/confirm", response_model=ConfirmLeadConfigResponse)
def confirm_lead_config(
    config_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    result = provisioning.confirm(session, config_id=config_id, auth=auth)
    return ConfirmLeadConfigResponse(
        shopId=result.shop_id,
        shopCreated=result.shop_created,
        status=result.status.value,
    )


@router.post("/{config_id}/provision", response_model=ProvisionProductsResponse)
def provision_lead_config(
    config_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    result = provisioning.provision_products(session, config_id=config_id, auth=auth)
    return ProvisionProductsResponse.from_payload(result.to_payload())
