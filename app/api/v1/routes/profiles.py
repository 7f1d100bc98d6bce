from fastapi import APIRouter, Depends, HTTPException, status
from starlette.responses import JSONResponse

from api.utils.logger import logger, myself
from chain.client import ChainClient, ChainError, get_chain
from chain.contracts import get_token_balance
from db.session import get_db
from db.crud.profiles import (
    create_profile,
    edit_profile,
    get_profile,
    upsert_profile,
)
from db.schemas.profiles import CreateProfile, Profile, UpdateProfile

profiles_router = r = APIRouter()


def _balance(chain: ChainClient, walletAddress: str) -> str:
    # read path degrades to zero when the node is unreachable
    try:
        return get_token_balance(chain, walletAddress)
    except ChainError as e:
        logger.warning(f'{myself()}: balance unavailable for {walletAddress}: {e}')
        return '0'


@r.post(
    "",
    response_model=Profile,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    name="profiles:create"
)
def profile_create(
    profile: CreateProfile,
    db=Depends(get_db),
):
    """
    Create a new profile
    """
    try:
        return create_profile(db, profile)

    except HTTPException:
        raise

    except Exception as e:
        logger.error(f'ERR:{myself()}: {e}')
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': 'database error'})


@r.post("/upsert", response_model=Profile, response_model_exclude_none=True, name="profiles:upsert")
def profile_upsert(
    profile: CreateProfile,
    db=Depends(get_db),
):
    """
    Update a profile if the wallet is known, otherwise create it
    """
    try:
        db_profile, created = upsert_profile(db, profile)
        return JSONResponse(
            status_code=(status.HTTP_200_OK, status.HTTP_201_CREATED)[created],
            content=Profile.model_validate(db_profile).model_dump(mode='json', exclude_none=True),
        )

    except HTTPException:
        raise

    except Exception as e:
        logger.error(f'ERR:{myself()}: {e}')
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': 'database error'})


@r.get(
    "/{wallet}",
    response_model=Profile,
    response_model_exclude_none=True,
    name="profiles:profile-details"
)
def profile_details(
    wallet: str,
    db=Depends(get_db),
    chain=Depends(get_chain),
):
    """
    Get profile with its live usdc balance
    """
    try:
        profile = Profile.model_validate(get_profile(db, wallet))
        profile.balance = _balance(chain, profile.wallet_address)
        return profile

    except HTTPException:
        raise

    except Exception as e:
        logger.error(f'ERR:{myself()}: {e}')
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': 'database error'})


@r.put("/{wallet}", response_model=Profile, response_model_exclude_none=True, name="profiles:edit")
def profile_edit(
    wallet: str,
    profile: UpdateProfile,
    db=Depends(get_db),
):
    """
    Update name and email; empty values are ignored
    """
    try:
        return edit_profile(db, wallet, profile)

    except HTTPException:
        raise

    except Exception as e:
        logger.error(f'ERR:{myself()}: {e}')
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': 'database error'})
