"""POST /api/v1/render — render a composition offline and return the audio file."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request, Response

from scoresynth.api.schemas import RenderRequest
from scoresynth.errors import ExportError, ValidationError
from scoresynth.render.encoder import ExportFormat, export_audio

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/render")
def render_composition(request: Request, body: RenderRequest) -> Response:
    """Render both layers and return the encoded bytes as an attachment.

    Runs in the threadpool; rendering is a single blocking pass. Unknown
    genres fall back to pop, as in harmony generation.
    """
    config = request.app.state.config
    genre = body.genre
    if genre not in request.app.state.harmony_tables.genres:
        logger.warning("Unknown genre %r in render request, using pop", genre)
        genre = "pop"
    try:
        blob = export_audio(
            body.to_composition(),
            ExportFormat(body.format.value),
            genre=genre,
            key=body.key,
            master_volume=body.master_volume,
            sample_rate=config.sample_rate,
            channels=config.channels,
            min_length=config.min_render_length_s,
        )
    except ValidationError as exc:
        raise HTTPException(400, str(exc)) from exc
    except ExportError as exc:
        raise HTTPException(500, str(exc)) from exc

    return Response(
        content=blob.data,
        media_type=blob.media_type,
        headers={"Content-Disposition": f'attachment; filename="{blob.filename}"'},
    )
