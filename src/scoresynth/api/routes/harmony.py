"""POST /api/v1/harmony — generate a harmony layer for a melody."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from scoresynth.api.schemas import HarmonyRequest, HarmonyResponse, NoteOut
from scoresynth.errors import ValidationError

router = APIRouter()


@router.post("/harmony", response_model=HarmonyResponse)
async def generate_harmony(request: Request, body: HarmonyRequest) -> HarmonyResponse:
    """Generate chord-tone notes and progression labels for the melody.

    Returns 400 for an empty melody and 409 while another request is generating.
    """
    generator = request.app.state.harmony_generator
    melody = [n.to_note() for n in body.melody]

    try:
        result = await generator.generate(melody, genre=body.genre, key=body.key)
    except ValidationError as exc:
        raise HTTPException(400, str(exc)) from exc

    if result is None:
        raise HTTPException(409, "Harmony generation already in progress.")

    return HarmonyResponse(
        genre=result.genre,
        key=result.key,
        progression=result.progression,
        numerals=result.numerals,
        notes=[NoteOut.from_note(n) for n in result.notes],
    )
