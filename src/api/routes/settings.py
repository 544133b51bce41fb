"""
User settings API endpoints.

Lets a user save the AWS accounts the cloud builder uploads with. Secrets
are write-only: listing returns labels and a masked access key.
"""

import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.media.models import CredentialSet
from ..dependencies import CurrentUserId, UserSettingsRepositoryDep

logger = logging.getLogger(__name__)

router = APIRouter()


class AwsAccountRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    label: str = Field(min_length=1, description="Name the account is selected by")
    access_key: str = Field(alias="accessKey", min_length=1)
    secret_key: str = Field(alias="secretKey", min_length=1)


class AwsAccountSummary(BaseModel):
    label: str
    access_key_hint: str = Field(description="Last four characters of the access key")


class AwsAccountsResponse(BaseModel):
    accounts: list[AwsAccountSummary]


def _summarize(account: CredentialSet) -> AwsAccountSummary:
    hint = (account.access_key or "")[-4:]
    return AwsAccountSummary(label=account.label, access_key_hint=f"****{hint}" if hint else "")


@router.get(
    "/aws-accounts",
    response_model=AwsAccountsResponse,
    status_code=status.HTTP_200_OK,
    summary="List saved AWS accounts",
)
async def list_aws_accounts(
    user_id: CurrentUserId,
    repository: UserSettingsRepositoryDep,
) -> AwsAccountsResponse:
    accounts = repository.get_aws_accounts(user_id)
    return AwsAccountsResponse(accounts=[_summarize(account) for account in accounts])


@router.put(
    "/aws-accounts",
    response_model=AwsAccountSummary,
    status_code=status.HTTP_200_OK,
    summary="Save an AWS account",
    description="Create or replace the AWS account with the given label",
)
async def save_aws_account(
    request: AwsAccountRequest,
    user_id: CurrentUserId,
    repository: UserSettingsRepositoryDep,
) -> AwsAccountSummary:
    credentials = CredentialSet(
        label=request.label.strip(),
        access_key=request.access_key.strip(),
        secret_key=request.secret_key.strip(),
    )
    if not credentials.label or not credentials.is_complete:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Label, access key and secret key are required"
        )

    repository.upsert_aws_account(user_id, credentials)
    return _summarize(credentials)
