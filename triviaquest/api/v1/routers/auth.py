from fastapi import APIRouter, HTTPException, status

from ....domain.errors import SignInUnsupported
from ....schemas.quiz_schemas import IdentityOut, SignInIn, SignInOut
from ...deps import IdentityDep, IdentityProviderDep, TokenDep

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/session", response_model=SignInOut, status_code=status.HTTP_201_CREATED)
async def sign_in(payload: SignInIn, provider: IdentityProviderDep):
    # login and signup are the same call: an email is all it takes
    try:
        token, identity = provider.sign_in(payload.email)
    except SignInUnsupported as e:
        raise HTTPException(status_code=status.HTTP_501_NOT_IMPLEMENTED, detail=str(e))
    return {"token": token, "userId": identity.user_id, "email": identity.email}


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(provider: IdentityProviderDep, token: TokenDep):
    if token:
        provider.sign_out(token)
    return None


@router.get("/me", response_model=IdentityOut)
async def me(identity: IdentityDep):
    return {"userId": identity.user_id, "email": identity.email}
