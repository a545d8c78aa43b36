from typing import Iterator, Optional, Sequence, Tuple, Union

from astro.models import AspectDefinition, AspectKind

ASPECTS: Tuple[AspectDefinition, ...] = (
    AspectDefinition(AspectKind.CONJUNCTION, 0.0, 5.0, "intense", 1),
    AspectDefinition(AspectKind.SEXTILE, 60.0, 2.0, "supportive", 2),
    AspectDefinition(AspectKind.SQUARE, 90.0, 3.0, "challenging", -2),
    AspectDefinition(AspectKind.TRINE, 120.0, 3.0, "supportive", 2),
    AspectDefinition(AspectKind.OPPOSITION, 180.0, 4.0, "challenging", -2),
)

ASPECT_ORDER = {a.kind: i for i, a in enumerate(ASPECTS)}

# orbs must stay narrower than a sign so neighbouring aspects remain distinct
MAX_ORB = 30.0


def iter_aspects(aspects: Sequence[AspectDefinition] = ASPECTS) -> Iterator[AspectDefinition]:
    return iter(aspects)


def get_aspect(kind: Union[AspectKind, str]) -> AspectDefinition:
    kind = AspectKind(kind)
    for aspect in ASPECTS:
        if aspect.kind is kind:
            return aspect
    raise KeyError(kind)


def validate_catalog(aspects: Sequence[AspectDefinition]) -> None:
    for aspect in aspects:
        if not 0 <= aspect.exact_angle <= 180:
            raise ValueError(f"{aspect.kind.value}: exact angle must be within [0, 180]")
        if not 0 < aspect.orb < MAX_ORB:
            raise ValueError(f"{aspect.kind.value}: orb must be within (0, {MAX_ORB})")


def find_aspects(
    separation: float,
    aspects: Sequence[AspectDefinition] = ASPECTS,
) -> Iterator[Tuple[AspectDefinition, float]]:
    """Yield every aspect whose orb contains ``separation``, with its deviation."""
    for aspect in aspects:
        deviation = abs(separation - aspect.exact_angle)
        if deviation <= aspect.orb:
            yield aspect, deviation


def match_aspect(
    separation: float,
    aspects: Sequence[AspectDefinition] = ASPECTS,
) -> Optional[Tuple[AspectDefinition, float]]:
    """Return the aspect formed by ``separation`` degrees, or None.

    The orb boundary is inclusive. When widened orbs make several bands
    match, the aspect with the closest exact angle wins; an exact tie keeps
    catalog order.
    """
    best = None
    for aspect, deviation in find_aspects(separation, aspects):
        if best is None or deviation < best[1]:
            best = (aspect, deviation)
    return best
