from fastapi import APIRouter

from bgv_portal.api.routes import address_verifications
from bgv_portal.api.routes import customers
from bgv_portal.api.routes import document_collections

api_router = APIRouter()
api_router.include_router(address_verifications.router)
api_router.include_router(address_verifications.public_router)
api_router.include_router(document_collections.router)
api_router.include_router(document_collections.public_router)
api_router.include_router(customers.router)
