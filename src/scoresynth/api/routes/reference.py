"""GET endpoints for reference data (instruments, drum voices, genres)."""

from __future__ import annotations

from fastapi import APIRouter, Request

from scoresynth.api.schemas import DrumOut, GenreOut, InstrumentOut

router = APIRouter()


@router.get("/instruments", response_model=list[InstrumentOut])
async def get_instruments(request: Request) -> list[InstrumentOut]:
    """Return the instrument catalogue."""
    return [
        InstrumentOut(
            id=i.id,
            name=i.name,
            algorithm=i.algorithm,
            category=i.category.value,
        )
        for i in request.app.state.instruments.values()
    ]


@router.get("/drums", response_model=list[DrumOut])
async def get_drums(request: Request) -> list[DrumOut]:
    """Return the drum voices with their pitch codes and keyboard keys."""
    return [
        DrumOut(
            id=d.id,
            name=d.name,
            pitch=d.pitch,
            frequency=d.frequency,
            decay=d.decay,
            excitation=d.excitation.value,
            key=d.key,
        )
        for d in request.app.state.drums.values()
    ]


@router.get("/genres", response_model=list[GenreOut])
async def get_genres(request: Request) -> list[GenreOut]:
    """Return the genres harmony can be generated in."""
    tables = request.app.state.harmony_tables
    return [
        GenreOut(
            id=g.id,
            name=g.name,
            description=g.description,
            scale=g.scale,
            progressions=tables.progressions.get(g.id, []),
        )
        for g in tables.genres.values()
    ]
