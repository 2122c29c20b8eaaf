"""Encoding settings recommendations from image size and intended usage."""

from dataclasses import dataclass, field
from types import MappingProxyType

from rawkit.config.constants import HIGH_RESOLUTION_MP, MEDIUM_RESOLUTION_MP
from rawkit.core.options import ConversionRequest
from rawkit.engine.base import Dimensions
from rawkit.exceptions import InvalidOptionError


@dataclass(frozen=True)
class UsageProfile:
    """JPEG settings associated with a usage hint."""

    quality: int
    progressive: bool
    chroma_subsampling: str
    rationale: str


USAGE_PROFILES = MappingProxyType(
    {
        "web": UsageProfile(
            quality=80,
            progressive=True,
            chroma_subsampling="4:2:0",
            rationale="small files that render incrementally in browsers",
        ),
        "print": UsageProfile(
            quality=95,
            progressive=False,
            chroma_subsampling="4:2:2",
            rationale="high fidelity with horizontal-only chroma reduction",
        ),
        "archive": UsageProfile(
            quality=98,
            progressive=False,
            chroma_subsampling="4:4:4",
            rationale="near-lossless storage with full chroma resolution",
        ),
    }
)


@dataclass
class OptimizationResult:
    """Recommended request plus the reasoning behind each value."""

    recommended: ConversionRequest
    category: str
    megapixels: float
    usage: str
    reasoning: list[str] = field(default_factory=list)


def categorize(dimensions: Dimensions) -> str:
    """Size category of an image by megapixel count."""
    megapixels = dimensions.megapixels
    if megapixels >= HIGH_RESOLUTION_MP:
        return "high-resolution"
    if megapixels >= MEDIUM_RESOLUTION_MP:
        return "medium-resolution"
    return "low-resolution"


class SettingsOptimizer:
    """Derives JPEG settings from image dimensions and a usage hint."""

    def recommend(self, dimensions: Dimensions, usage: str = "web") -> OptimizationResult:
        """Recommend settings for an image.

        Args:
            dimensions: Original image dimensions
            usage: One of ``web``, ``print``, ``archive``

        Returns:
            Recommended request, size category and reasoning strings

        Raises:
            InvalidOptionError: If ``usage`` is unknown
        """
        usage = usage.lower()
        profile = USAGE_PROFILES.get(usage)
        if profile is None:
            raise InvalidOptionError(
                f"Unknown usage '{usage}', expected one of {', '.join(USAGE_PROFILES)}",
                fields=["usage"],
            )

        category = categorize(dimensions)
        megapixels = round(dimensions.megapixels, 1)
        basis = f"{category} source ({megapixels} MP) for {usage} usage"

        reasoning = [
            f"category {category}: {dimensions.width}x{dimensions.height} is {megapixels} MP",
            f"quality {profile.quality}: {basis}, {profile.rationale}",
            (
                f"progressive {'on' if profile.progressive else 'off'}: {basis}"
                + (", loads coarse-to-fine" if profile.progressive else ", baseline decoding")
            ),
            f"chroma {profile.chroma_subsampling}: {basis}",
        ]

        recommended = ConversionRequest(
            format="jpeg",
            quality=profile.quality,
            progressive=profile.progressive,
            chroma_subsampling=profile.chroma_subsampling,
        )
        return OptimizationResult(
            recommended=recommended,
            category=category,
            megapixels=megapixels,
            usage=usage,
            reasoning=reasoning,
        )
