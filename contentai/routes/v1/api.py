from fastapi import APIRouter

from contentai.editor.router import documents_router, sessions_router

api_router = APIRouter()

api_router.include_router(documents_router)
api_router.include_router(sessions_router)
