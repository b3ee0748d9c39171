"""Image profiles: which services each image exposes and on which ports."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from dsbox.utils.ports import validate_port

logger = logging.getLogger(__name__)

JUPYTER = "jupyter"
STREAMLIT = "streamlit"


@dataclass(frozen=True)
class ServiceSpec:
    name: str
    container_port: int

    @property
    def default_host_port(self) -> int:
        return self.container_port


@dataclass(frozen=True)
class ImageProfile:
    name: str
    image: str
    services: tuple[ServiceSpec, ...] = ()

    def service(self, name: str) -> ServiceSpec | None:
        for spec in self.services:
            if spec.name == name:
                return spec
        return None

    def matches(self, image: str) -> bool:
        return image_repository(image) == image_repository(self.image)


BUILTIN_PROFILES: tuple[ImageProfile, ...] = (
    ImageProfile(
        name="minimal",
        image="ds-minimal:latest",
        services=(ServiceSpec(JUPYTER, 8888),),
    ),
    ImageProfile(
        name="extended",
        image="ds-extended:latest",
        services=(ServiceSpec(JUPYTER, 8888), ServiceSpec(STREAMLIT, 8501)),
    ),
)

DEFAULT_PROFILE = "minimal"


def image_repository(image: str) -> str:
    """Strip registry path, tag and digest: ``reg/ds-extended:1`` -> ``ds-extended``."""
    name = image.split("@", 1)[0]
    name = name.rsplit("/", 1)[-1]
    return name.split(":", 1)[0]


def _profile_from_table(name: str, table: Mapping[str, Any]) -> ImageProfile:
    services = tuple(
        ServiceSpec(str(service), validate_port(port))
        for service, port in dict(table.get("services", {})).items()
    )
    return ImageProfile(name=name, image=str(table.get("image", name)), services=services)


def load_profiles(overrides: Mapping[str, Mapping[str, Any]] | None = None) -> dict[str, ImageProfile]:
    """Merge built-in profiles with ``[profiles.<name>]`` tables from config."""
    profiles = {profile.name: profile for profile in BUILTIN_PROFILES}
    for name, table in (overrides or {}).items():
        try:
            profiles[name] = _profile_from_table(name, table)
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning("Ignoring invalid profile %r: %s", name, exc)
    return profiles


def resolve_profile(image: str, profiles: Mapping[str, ImageProfile]) -> ImageProfile:
    """Pick the profile whose image repository matches ``image``.

    Unknown images get the default profile's services under their own name.
    """
    for profile in profiles.values():
        if profile.matches(image):
            return profile
    fallback = profiles.get(DEFAULT_PROFILE) or BUILTIN_PROFILES[0]
    logger.debug("No profile for %s, using %s services", image, fallback.name)
    return ImageProfile(name=fallback.name, image=image, services=fallback.services)


__all__ = [
    "BUILTIN_PROFILES",
    "DEFAULT_PROFILE",
    "ImageProfile",
    "JUPYTER",
    "STREAMLIT",
    "ServiceSpec",
    "image_repository",
    "load_profiles",
    "resolve_profile",
]
