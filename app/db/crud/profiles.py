from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session
import typing as t

from db.models import profiles as models
from db.schemas import profiles as schemas

####################################
### CRUD OPERATIONS FOR PROFILES ###
####################################


def find_profile(db: Session, walletAddress: str) -> t.Optional[models.Profile]:
    return db.query(models.Profile).filter(
        func.lower(models.Profile.wallet_address) == walletAddress.lower()
    ).first()


def get_profile(db: Session, walletAddress: str) -> models.Profile:
    profile = find_profile(db, walletAddress)
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="profile not found")
    return profile


def create_profile(db: Session, profile: schemas.CreateProfile) -> models.Profile:
    if find_profile(db, profile.wallet_address):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="profile already exists")

    db_profile = models.Profile(
        wallet_address=profile.wallet_address,
        name=profile.name,
        email=profile.email or None,
    )
    db.add(db_profile)
    db.commit()
    db.refresh(db_profile)
    return db_profile


def get_or_create_profile(db: Session, walletAddress: str) -> models.Profile:
    """bare profile for a wallet we have not seen yet; not committed"""
    profile = find_profile(db, walletAddress)
    if profile:
        return profile
    profile = models.Profile(wallet_address=walletAddress.lower())
    db.add(profile)
    db.flush()
    return profile


def edit_profile(db: Session, walletAddress: str, profile: schemas.UpdateProfile) -> models.Profile:
    db_profile = get_profile(db, walletAddress)

    # empty strings leave the stored value alone
    update_data = profile.model_dump(exclude_unset=True, include={'name', 'email'})
    for key, value in update_data.items():
        if value:
            setattr(db_profile, key, value)

    db.add(db_profile)
    db.commit()
    db.refresh(db_profile)
    return db_profile


def upsert_profile(db: Session, profile: schemas.CreateProfile) -> t.Tuple[models.Profile, bool]:
    if find_profile(db, profile.wallet_address):
        return edit_profile(db, profile.wallet_address, profile), False
    return create_profile(db, profile), True
