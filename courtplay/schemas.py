"""Pydantic schemas for players, formations and stored data bundles."""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import (
    ANIMATION_DURATION,
    COURT_SIZE,
    CURRENT_VERSION,
    FRAME_INTERVAL,
    LEGACY_VERSION,
    NET_OFFSET,
    TOKEN_SIZE,
)
from .coordinates import clamp


def _clean_tags(tags: list[str]) -> list[str]:
    cleaned: list[str] = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


class Player(BaseModel):
    """A rostered player."""

    id: str = Field(..., min_length=1)
    jersey: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)

    @field_validator('jersey', 'name')
    @classmethod
    def strip_text(cls, v):
        """Trim surrounding whitespace."""
        v = v.strip()
        if not v:
            raise ValueError('must not be blank')
        return v

    class Config:
        extra = 'forbid'


class PlacedPlayer(BaseModel):
    """One player's placement within a saved position."""

    player_id: str = Field(..., alias='playerId', min_length=1)
    jersey: str = ''
    name: str = ''
    x: int
    y: int

    @model_validator(mode='before')
    @classmethod
    def normalize_coordinates(cls, data):
        """Round to whole logical units and clamp into the court bounds."""
        if isinstance(data, dict) and 'x' in data and 'y' in data:
            x, y = clamp(float(data['x']), float(data['y']))
            data = {**data, 'x': round(x), 'y': round(y)}
        return data

    class Config:
        extra = 'forbid'
        populate_by_name = True


class Position(BaseModel):
    """A named formation: where every placed player stands."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    tags: list[str] = Field(default_factory=list)
    player_positions: list[PlacedPlayer] = Field(default_factory=list, alias='playerPositions')

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v):
        """Drop blank and repeated tags."""
        return _clean_tags(v)

    class Config:
        extra = 'ignore'
        populate_by_name = True


class Scenario(BaseModel):
    """A start -> end pair of positions."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    start_position_id: str = Field(..., alias='startPositionId', min_length=1)
    end_position_id: str = Field(..., alias='endPositionId', min_length=1)
    tags: list[str] = Field(default_factory=list)

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v):
        """Drop blank and repeated tags."""
        return _clean_tags(v)

    @model_validator(mode='after')
    def check_distinct_positions(self):
        """Start and end must be different positions."""
        if self.start_position_id == self.end_position_id:
            raise ValueError('Start and end positions must be different')
        return self

    class Config:
        extra = 'ignore'
        populate_by_name = True


class SequenceItem(BaseModel):
    """A reference from a sequence timeline to a position or scenario."""

    type: str = Field(..., pattern=r'^(position|scenario)$')
    id: str = Field(..., min_length=1)

    class Config:
        extra = 'forbid'


class Sequence(BaseModel):
    """An ordered, linear list of positions and scenarios."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    items: list[SequenceItem] = Field(default_factory=list)

    class Config:
        extra = 'ignore'


class LoadedItem(BaseModel):
    """Pointer to whatever is active in the editor.

    ``id`` is None for a scenario assembled in the drop zones but not saved yet.
    """

    type: str = Field(..., pattern=r'^(position|scenario|sequence)$')
    id: str | None = None
    name: str = ''

    class Config:
        extra = 'forbid'


class LegacyBundle(BaseModel):
    """v3.0 document: a flat position name -> placements mapping."""

    version: Literal['3.0'] = LEGACY_VERSION
    players: list[Player] = Field(default_factory=list)
    saved_positions: dict[str, list[PlacedPlayer]] = Field(
        default_factory=dict, alias='savedPositions'
    )

    class Config:
        extra = 'ignore'
        populate_by_name = True


class CurrentBundle(BaseModel):
    """v4.0 document: players plus position/scenario/sequence entities."""

    version: Literal['4.0'] = CURRENT_VERSION
    players: list[Player] = Field(default_factory=list)
    positions: list[Position] = Field(default_factory=list)
    scenarios: list[Scenario] = Field(default_factory=list)
    sequences: list[Sequence] = Field(default_factory=list)

    class Config:
        extra = 'ignore'


Bundle = Annotated[Union[LegacyBundle, CurrentBundle], Field(discriminator='version')]


class CourtConfig(BaseModel):
    """Court geometry and playback settings."""

    court_size: int = Field(default=COURT_SIZE, gt=0)
    token_size: int = Field(default=TOKEN_SIZE, ge=0)
    net_offset: int = Field(default=NET_OFFSET, ge=0)
    animation_duration: float = Field(default=ANIMATION_DURATION, ge=0)
    frame_interval: float = Field(default=FRAME_INTERVAL, gt=0)
    data_path: str = 'data/courtplay.json'

    @model_validator(mode='after')
    def check_token_fits(self):
        """A token must fit inside the court below the net."""
        if self.token_size + self.net_offset >= self.court_size:
            raise ValueError('token_size + net_offset must be smaller than court_size')
        return self

    class Config:
        extra = 'forbid'
