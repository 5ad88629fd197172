"""
Branch endpoints: the caller's active branch and tenant-admin branch lifecycle.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from inventory_api.models import User
from inventory_api.routers._common import (
    get_branch_context_service,
    get_current_user,
    require_tenant_admin,
)
from inventory_api.services import BranchAccessService, BranchContextService
from inventory_api.services.domain import BranchService
from inventory_shared.config.constants import BranchContextSource
from inventory_shared.infrastructure.db import get_db
from inventory_shared.utils.exceptions import NotFoundError
from inventory_shared.utils.schemas import (
    BranchContextOutput,
    BranchCreate,
    BranchMutationResponse,
    BranchOutput,
    BranchSummary,
    BranchUpdate,
    MessageResponse,
    MyBranchesOutput,
    SwitchBranchRequest,
)


router = APIRouter(prefix="/api/branches", tags=["branches"])


@router.get("", response_model=list[BranchSummary])
def list_branches(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    context_service: BranchContextService = Depends(get_branch_context_service),
) -> list[BranchSummary]:
    service = BranchService(db, context_service)
    return [BranchSummary(**branch) for branch in service.list_branches(user)]


@router.get("/current", response_model=BranchContextOutput)
def current_branch(
    user: User = Depends(get_current_user),
    context_service: BranchContextService = Depends(get_branch_context_service),
) -> BranchContextOutput:
    """The branch the caller is working in when no branch_id is given."""
    context = context_service.resolve(user)
    if context.branch_id is None:
        raise NotFoundError("Active branch", user_id=user.id)
    branch = context_service.get_branch(context.branch_id)
    return BranchContextOutput(
        **context.to_dict(),
        branch=BranchOutput.model_validate(branch) if branch else None,
    )


@router.delete("/current", status_code=status.HTTP_204_NO_CONTENT)
def clear_current_branch(
    user: User = Depends(get_current_user),
    context_service: BranchContextService = Depends(get_branch_context_service),
) -> Response:
    context_service.clear_branch_context(user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/switch", response_model=BranchContextOutput)
def switch_branch(
    body: SwitchBranchRequest,
    user: User = Depends(get_current_user),
    context_service: BranchContextService = Depends(get_branch_context_service),
) -> BranchContextOutput:
    """Make ``branch_id`` the caller's active branch."""
    branch = context_service.set_current_branch(user, body.branch_id)
    return BranchContextOutput(
        branch_id=branch.id,
        all_branches=False,
        source=BranchContextSource.REQUEST,
        branch=BranchOutput.model_validate(branch),
    )


@router.get("/mine", response_model=MyBranchesOutput)
def my_branches(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    context_service: BranchContextService = Depends(get_branch_context_service),
) -> MyBranchesOutput:
    """Branches the caller can access and the one currently active. Read only."""
    branches = BranchAccessService(db).get_user_branches(user)
    return MyBranchesOutput(
        branches=[BranchOutput.model_validate(branch) for branch in branches],
        current_branch_id=context_service.peek_current_branch_id(user),
    )


@router.patch("/{branch_id}", response_model=BranchOutput)
def update_branch(
    branch_id: int,
    body: BranchUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_tenant_admin),
    context_service: BranchContextService = Depends(get_branch_context_service),
) -> BranchOutput:
    service = BranchService(db, context_service)
    branch = service.update_branch(branch_id, body, user)
    return BranchOutput.model_validate(branch)


@router.post("", response_model=BranchOutput, status_code=status.HTTP_201_CREATED)
def create_branch(
    body: BranchCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_tenant_admin),
    context_service: BranchContextService = Depends(get_branch_context_service),
) -> BranchOutput:
    service = BranchService(db, context_service)
    return BranchOutput.model_validate(service.create_branch(body, user))


@router.post("/{branch_id}/deactivate", response_model=MessageResponse)
def deactivate_branch(
    branch_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_tenant_admin),
    context_service: BranchContextService = Depends(get_branch_context_service),
) -> MessageResponse:
    """The default branch cannot be deactivated; move the default first."""
    BranchService(db, context_service).deactivate_branch(branch_id, user)
    return MessageResponse(message="Branch deactivated successfully")


@router.post("/{branch_id}/activate", response_model=BranchMutationResponse)
def activate_branch(
    branch_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_tenant_admin),
    context_service: BranchContextService = Depends(get_branch_context_service),
) -> BranchMutationResponse:
    branch = BranchService(db, context_service).activate_branch(branch_id, user)
    return BranchMutationResponse(
        message="Branch activated successfully",
        branch=BranchOutput.model_validate(branch),
    )
