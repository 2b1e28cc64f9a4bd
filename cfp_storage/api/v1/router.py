from fastapi import APIRouter

from cfp_storage.api.v1.files import router as files_router
from cfp_storage.api.v1.upload import router as upload_router

router = APIRouter()
router.include_router(upload_router)
router.include_router(files_router)
