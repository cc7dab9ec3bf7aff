from fastapi import APIRouter

from . import auth, groups, matches, payments, storage, teams, tournaments

api_router = APIRouter()
api_router.include_router(auth.router)
api_router.include_router(tournaments.router)
api_router.include_router(groups.router)
api_router.include_router(teams.router)
api_router.include_router(payments.router)
api_router.include_router(matches.router)
api_router.include_router(storage.router)

__all__ = ["api_router"]
