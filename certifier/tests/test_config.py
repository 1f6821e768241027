from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from certifier.app.config import (
    BUNDLED_TEMPLATE_DIR,
    ArtifactPathError,
    CertifierConfig,
    safe_artifact_path,
    validate_output_dir,
)


def test_defaults_point_at_bundled_templates():
    config = CertifierConfig()

    assert config.TEMPLATE_DIR == BUNDLED_TEMPLATE_DIR.resolve()
    assert (config.TEMPLATE_DIR / "residency.txt.jinja").is_file()
    assert config.PAGE_SIZE == "A4"
    assert config.DERIVED_FIELD_POLICY == "frozen_at_selection"


def test_page_size_is_normalized_and_checked():
    assert CertifierConfig(PAGE_SIZE="letter").PAGE_SIZE == "LETTER"

    with pytest.raises(ValidationError, match="Unsupported PAGE_SIZE"):
        CertifierConfig(PAGE_SIZE="A3")


@pytest.mark.parametrize("opacity", [0, -0.5, 1.5])
def test_watermark_opacity_bounds(opacity):
    with pytest.raises(ValidationError):
        CertifierConfig(WATERMARK_OPACITY=opacity)


def test_unknown_derived_field_policy_is_rejected():
    with pytest.raises(ValidationError, match="DERIVED_FIELD_POLICY"):
        CertifierConfig(DERIVED_FIELD_POLICY="whenever")


def test_missing_template_dir_is_rejected(tmp_path):
    with pytest.raises(ValidationError, match="TEMPLATE_DIR does not exist"):
        CertifierConfig(TEMPLATE_DIR=tmp_path / "nope")


def test_local_timezone_follows_offset():
    config = CertifierConfig(UTC_OFFSET_HOURS=8)
    instant = datetime(2024, 6, 14, 17, 0, tzinfo=timezone.utc)

    assert config.local_timezone.utcoffset(None) == timedelta(hours=8)
    assert instant.astimezone(config.local_timezone).day == 15


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("CERTIFIER_OUTPUT_DIR", str(tmp_path))
    monkeypatch.setenv("CERTIFIER_PAGE_SIZE", "legal")
    monkeypatch.setenv("CERTIFIER_WATERMARK_OPACITY", "0.25")
    monkeypatch.setenv("CERTIFIER_DERIVED_FIELD_POLICY", "as_of_issuance")
    monkeypatch.setenv("CERTIFIER_UTC_OFFSET_HOURS", "0")
    monkeypatch.delenv("CERTIFIER_TEMPLATE_DIR", raising=False)

    config = CertifierConfig.from_env()

    assert config.OUTPUT_DIR == tmp_path.resolve()
    assert config.PAGE_SIZE == "LEGAL"
    assert config.WATERMARK_OPACITY == 0.25
    assert config.DERIVED_FIELD_POLICY == "as_of_issuance"
    assert config.UTC_OFFSET_HOURS == 0
    assert config.TEMPLATE_DIR == BUNDLED_TEMPLATE_DIR.resolve()


def test_config_is_frozen():
    config = CertifierConfig()

    with pytest.raises(ValidationError):
        config.PAGE_SIZE = "LETTER"


# ------------------------------------------------------------------
# Output paths
# ------------------------------------------------------------------

def test_safe_artifact_path_stays_in_output_dir(tmp_path):
    config = CertifierConfig(OUTPUT_DIR=tmp_path)

    path = safe_artifact_path(config, "residency-dela-cruz", "20240614")

    assert path == tmp_path.resolve() / "residency-dela-cruz-20240614.pdf"


def test_safe_artifact_path_rejects_traversal(tmp_path):
    config = CertifierConfig(OUTPUT_DIR=tmp_path / "out")

    with pytest.raises(ArtifactPathError):
        safe_artifact_path(config, "../escape", "20240614")


def test_validate_output_dir(tmp_path):
    validate_output_dir(CertifierConfig(OUTPUT_DIR=tmp_path))

    with pytest.raises(RuntimeError, match="does not exist"):
        validate_output_dir(CertifierConfig(OUTPUT_DIR=tmp_path / "missing"))

    target = tmp_path / "file.pdf"
    target.write_bytes(b"")
    with pytest.raises(RuntimeError, match="not a directory"):
        validate_output_dir(CertifierConfig(OUTPUT_DIR=target))
