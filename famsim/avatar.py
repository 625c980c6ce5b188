"""
famsim/avatar.py
~~~~~~~~~~~~~~~~
Random avatar composition. Purely cosmetic: the simulation never reads an
avatar back, it only regenerates one when age or gender rules change what a
character may wear (babies get baby features, no beards before 18 and so on).
"""

from __future__ import annotations

from famsim.catalog import AvatarLayer, AvatarManifest
from famsim.models import AvatarState, Gender
from famsim.rng import RandomSource

# Never drawn as a hair colour.
EXCLUDED_COLORS = {"White"}


def age_category(age: int) -> str:
    if age <= 5:
        return "baby"
    if age <= 59:
        return "normal"
    return "old"


def _layer_forbidden(layer: AvatarLayer, age: int, gender: Gender) -> bool:
    if layer.name == "beard":
        return gender == Gender.FEMALE or age < 18
    if layer.name == "backHair":
        return gender == Gender.MALE
    return False


def generate_avatar(manifest: AvatarManifest, age: int, gender: Gender, rng: RandomSource) -> AvatarState:
    category = age_category(age)
    palette = [c for c in manifest.palette if c not in EXCLUDED_COLORS]
    avatar = AvatarState()

    for layer in manifest.layers:
        if _layer_forbidden(layer, age, gender):
            avatar.layers[layer.name] = None
            continue

        options = [o.id for o in layer.options if not o.ageCategories or category in o.ageCategories]
        if not options:
            avatar.layers[layer.name] = None
            continue

        # Optional layers get one extra "nothing" ticket.
        if layer.allowNone and not layer.required and rng.randint(0, len(options)) == len(options):
            avatar.layers[layer.name] = None
            continue

        avatar.layers[layer.name] = rng.choice(options)
        if layer.colorable and palette:
            avatar.colors[layer.name] = rng.choice(palette)

    return avatar
