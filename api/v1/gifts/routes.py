from fastapi import APIRouter, Request
from fastapi.responses import FileResponse

from api.v1.core.exceptions import NotFoundError
from api.v1.gifts.generator import GiftGenerator

router = APIRouter()


@router.get("/gifts/{name}")
async def get_gift(name: str, request: Request):
    """Serve a generated welcome gift."""
    generator: GiftGenerator = request.app.state.gift_generator

    path = generator.path_for(name)
    if path is None or not path.is_file():
        raise NotFoundError("Gift not found")

    return FileResponse(path, media_type="image/svg+xml")
