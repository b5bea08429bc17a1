from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy.orm import Session

from grndb.errors import NotFoundError

from . import models


@dataclass(frozen=True)
class ById:
    id: int


@dataclass(frozen=True)
class ByName:
    name: str


# Order receipts identify materials by id; job-work receipts by name.
MaterialRef = Union[ById, ByName]


def resolve(
    db: Session,
    ref: MaterialRef,
    *,
    kind: Optional[models.MaterialKindEnum] = None,
) -> models.Material:
    query = db.query(models.Material)
    if kind is not None:
        query = query.filter(models.Material.kind == kind)

    if isinstance(ref, ById):
        material = query.filter(models.Material.id == ref.id).first()
        label = f"id {ref.id}"
    elif isinstance(ref, ByName):
        material = query.filter(models.Material.name == ref.name.strip()).first()
        label = f"name {ref.name!r}"
    else:
        raise TypeError(f"Unsupported material reference: {ref!r}")

    if not material:
        raise NotFoundError(f"Material with {label} not found.")
    return material


def ref_for_line(material_id: Optional[int], material_name: Optional[str]) -> MaterialRef:
    if material_id is not None:
        return ById(material_id)
    if material_name:
        return ByName(material_name)
    raise ValueError("A receipt line needs either a material id or a material name.")
