"""
Runtime configuration for the certificate issuance engine.

This module centralizes environment-driven configuration: where body
templates are loaded from, where exported artifacts are written, the
page geometry of rendered certificates, and the office's local time
offset used for age arithmetic and the "Given this" date line.

Configuration is read-only at runtime. It must not introduce
non-deterministic behavior into rendering: two renders of identical
inputs under the same configuration produce byte-identical artifacts.
"""

from __future__ import annotations

import logging
import os
from datetime import timedelta, timezone, tzinfo
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


BUNDLED_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

PAGE_SIZES = {"A4", "LETTER", "LEGAL"}

DERIVED_FIELD_POLICIES = {"frozen_at_selection", "as_of_issuance"}


class ArtifactPathError(ValueError):
    """Raised when an artifact path would escape the configured output directory."""


class CertifierConfig(BaseModel):
    """
    Runtime configuration for the certificate issuance engine.

    Loaded once per process and shared by every editing session.
    """

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    TEMPLATE_DIR: Path = Field(
        BUNDLED_TEMPLATE_DIR,
        description="Directory holding the Jinja2 body templates",
    )

    PAGE_SIZE: str = Field(
        "A4",
        description="Page size of rendered certificates (one per page)",
    )

    WATERMARK_OPACITY: float = Field(
        0.1,
        description="Opacity of the logo watermark behind the body text",
    )

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    OUTPUT_DIR: Path = Field(
        Path("~/Documents").expanduser(),
        description="Directory exported certificate artifacts are written to",
    )

    # ------------------------------------------------------------------
    # Derived fields
    # ------------------------------------------------------------------

    UTC_OFFSET_HOURS: int = Field(
        8,
        description="Office local time offset, used for as-of dates",
    )

    DERIVED_FIELD_POLICY: str = Field(
        "frozen_at_selection",
        description=(
            "When age and civil status are computed. "
            "'frozen_at_selection' keeps the values computed when the "
            "entity was selected; 'as_of_issuance' recomputes them at save."
        ),
    )

    # ------------------------------------------------------------------
    # Signatory lookup
    # ------------------------------------------------------------------

    CAPTAIN_ROLE: str = Field("barangay captain")
    SECRETARY_ROLE: str = Field("secretary")
    OFFICIALS_SECTION: str = Field("barangay officials")

    # ------------------------------------------------------------------
    # Validators (Pydantic v2)
    # ------------------------------------------------------------------

    @field_validator("PAGE_SIZE")
    @classmethod
    def validate_page_size(cls, v: str) -> str:
        v = v.upper()
        if v not in PAGE_SIZES:
            raise ValueError(
                f"Unsupported PAGE_SIZE '{v}'. "
                f"Allowed values: {sorted(PAGE_SIZES)}"
            )
        return v

    @field_validator("WATERMARK_OPACITY")
    @classmethod
    def validate_opacity(cls, v: float) -> float:
        if not 0 < v <= 1:
            raise ValueError(
                f"WATERMARK_OPACITY must be in (0, 1], got {v}"
            )
        return v

    @field_validator("DERIVED_FIELD_POLICY")
    @classmethod
    def validate_policy(cls, v: str) -> str:
        if v not in DERIVED_FIELD_POLICIES:
            raise ValueError(
                f"Unsupported DERIVED_FIELD_POLICY '{v}'. "
                f"Allowed values: {sorted(DERIVED_FIELD_POLICIES)}"
            )
        return v

    @field_validator("TEMPLATE_DIR")
    @classmethod
    def template_dir_must_exist(cls, v: Path) -> Path:
        v = v.expanduser().resolve()
        if not v.is_dir():
            raise ValueError(f"TEMPLATE_DIR does not exist: {v}")
        return v

    @field_validator("OUTPUT_DIR")
    @classmethod
    def resolve_output_dir(cls, v: Path) -> Path:
        return v.expanduser().resolve()

    # ------------------------------------------------------------------
    # Derived accessors
    # ------------------------------------------------------------------

    @property
    def local_timezone(self) -> tzinfo:
        return timezone(timedelta(hours=self.UTC_OFFSET_HOURS))

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "CertifierConfig":
        """
        Load configuration from environment variables.

        All values are parsed once at startup and must remain immutable.
        """
        template_dir = os.getenv("CERTIFIER_TEMPLATE_DIR")
        output_dir = os.getenv("CERTIFIER_OUTPUT_DIR", "~/Documents")

        return cls(
            TEMPLATE_DIR=(
                Path(template_dir)
                if template_dir
                else BUNDLED_TEMPLATE_DIR
            ),
            OUTPUT_DIR=Path(output_dir),
            PAGE_SIZE=os.getenv("CERTIFIER_PAGE_SIZE", "A4"),
            WATERMARK_OPACITY=float(
                os.getenv("CERTIFIER_WATERMARK_OPACITY", "0.1")
            ),
            UTC_OFFSET_HOURS=int(
                os.getenv("CERTIFIER_UTC_OFFSET_HOURS", "8")
            ),
            DERIVED_FIELD_POLICY=os.getenv(
                "CERTIFIER_DERIVED_FIELD_POLICY", "frozen_at_selection"
            ),
            CAPTAIN_ROLE=os.getenv(
                "CERTIFIER_CAPTAIN_ROLE", "barangay captain"
            ),
            SECRETARY_ROLE=os.getenv(
                "CERTIFIER_SECRETARY_ROLE", "secretary"
            ),
            OFFICIALS_SECTION=os.getenv(
                "CERTIFIER_OFFICIALS_SECTION", "barangay officials"
            ),
        )

    model_config = {
        "frozen": True,
    }


# ---------------------------------------------------------------------------
# Output directory checks
# ---------------------------------------------------------------------------

def validate_output_dir(config: CertifierConfig) -> None:
    """
    Assert that OUTPUT_DIR is a writable directory.

    Called before the first export so that a misconfigured directory is
    reported with a clear message instead of a failed write.
    """
    output_dir = config.OUTPUT_DIR.resolve()
    if not output_dir.exists():
        raise RuntimeError(
            f"OUTPUT_DIR does not exist: {output_dir}\n"
            f"Set CERTIFIER_OUTPUT_DIR to an existing directory or create it."
        )
    if not output_dir.is_dir():
        raise RuntimeError(f"OUTPUT_DIR is not a directory: {output_dir}")
    if not os.access(output_dir, os.W_OK):
        raise RuntimeError(f"OUTPUT_DIR is not writable: {output_dir}")
    logger.info("config: OUTPUT_DIR validated: %s", output_dir)


def safe_artifact_path(config: CertifierConfig, slug: str, stamp: str) -> Path:
    """
    Construct and validate an output path for a certificate artifact.

    The returned path is guaranteed to be inside OUTPUT_DIR.

    Args:
        slug:   Filename stem, e.g. ``residency-dela-cruz``.
        stamp:  Date stamp string, e.g. ``20261019``.

    Raises:
        ArtifactPathError: if the resolved path escapes OUTPUT_DIR.
    """
    output_dir = config.OUTPUT_DIR.resolve()
    filename = f"{slug}-{stamp}.pdf"
    candidate = (output_dir / filename).resolve()

    try:
        candidate.relative_to(output_dir)
    except ValueError:
        raise ArtifactPathError(
            f"Artifact path escapes OUTPUT_DIR: {candidate}"
        )

    return candidate
