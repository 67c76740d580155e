import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from config.settings import settings
from core.usecases.run_due_executions_use_case import RunDueExecutionsUseCase


def get_keeper_use_case(request: Request) -> RunDueExecutionsUseCase:
    supervisor = getattr(request.app.state, "keeper_supervisor", None)
    if supervisor is None:
        raise RuntimeError("Keeper supervisor not initialized. Check app lifespan startup.")
    return supervisor.build_use_case()


def get_keeper_secret() -> str:
    return settings.KEEPER_SECRET


def verify_keeper_token(
    authorization: Optional[str] = Header(None),
    secret: str = Depends(get_keeper_secret),
) -> None:
    """
    Shared bearer secret between the cron trigger and the keeper.
    An empty secret disables the check (local/dev).
    """
    if not secret:
        return
    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")
