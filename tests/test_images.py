"""
Tests for kikichoice.images.

Covers:
  - Directory name classification (hyphen heuristic)
  - Scanning: extension allow-list, empty files, root-level files, grouping
  - Variant reconciliation against known SKUs (pure, no mutation)
"""
from __future__ import annotations

from pathlib import Path

import pytest

from conftest import write_image
from kikichoice.images import (
    PRODUCT,
    VARIANT,
    alt_text_for,
    blob_name_for,
    classify_directory,
    reconcile_variants,
    scan_directory,
    split_by_kind,
)


# ── classify_directory ─────────────────────────────────────────────────────────

class TestClassifyDirectory:
    @pytest.mark.parametrize("name", ["kivy", "SKU001", "abc_def"])
    def test_no_hyphen_is_product(self, name):
        assert classify_directory(name) == (PRODUCT, "")

    def test_hyphen_is_variant_candidate(self):
        assert classify_directory("kivy-007-dog") == (VARIANT, "kivy-007")

    def test_single_hyphen_parent_is_first_segment(self):
        assert classify_directory("kivy-007") == (VARIANT, "kivy")

    def test_empty_parent_falls_back_to_product(self):
        assert classify_directory("-dog") == (PRODUCT, "")


# ── scan_directory ─────────────────────────────────────────────────────────────

class TestScanDirectory:
    def test_groups_by_parent_directory(self, kivy_tree):
        dirs = scan_directory(kivy_tree)
        assert set(dirs) == {"kivy-007", "kivy-007-dog"}
        assert [p.name for p in dirs["kivy-007"].images] == ["a.jpg", "b.png"]
        assert dirs["kivy-007-dog"].parent_sku == "kivy-007"
        assert dirs["kivy-007-dog"].path == kivy_tree / "kivy-007-dog"

    def test_extension_match_is_case_insensitive(self, tmp_path):
        write_image(tmp_path / "sku1" / "A.JPG")
        write_image(tmp_path / "sku1" / "b.WebP")
        dirs = scan_directory(tmp_path)
        assert len(dirs["sku1"].images) == 2

    def test_disallowed_and_empty_files_are_excluded(self, tmp_path):
        write_image(tmp_path / "sku1" / "ok.jpeg")
        write_image(tmp_path / "sku1" / "anim.gif")
        write_image(tmp_path / "sku1" / "empty.png", b"")
        write_image(tmp_path / "only-junk" / "readme.txt")
        write_image(tmp_path / "only-empty" / "zero.jpg", b"")
        dirs = scan_directory(tmp_path)
        assert set(dirs) == {"sku1"}
        assert [p.name for p in dirs["sku1"].images] == ["ok.jpeg"]

    def test_files_directly_under_root_are_skipped(self, tmp_path):
        write_image(tmp_path / "loose.jpg")
        assert scan_directory(tmp_path) == {}

    def test_nested_files_group_by_immediate_parent(self, tmp_path):
        write_image(tmp_path / "category" / "sku9" / "x.png")
        dirs = scan_directory(tmp_path)
        assert list(dirs) == ["sku9"]


# ── reconcile_variants ─────────────────────────────────────────────────────────

class TestReconcileVariants:
    def test_known_variant_keeps_classification(self, kivy_tree):
        final = reconcile_variants(scan_directory(kivy_tree), {"kivy-007-dog"})
        assert final["kivy-007-dog"].kind == VARIANT
        assert final["kivy-007-dog"].parent_sku == "kivy-007"

    def test_unknown_variant_becomes_product(self, kivy_tree):
        final = reconcile_variants(scan_directory(kivy_tree), set())
        assert final["kivy-007-dog"].kind == PRODUCT
        assert final["kivy-007-dog"].parent_sku == ""

    def test_input_mapping_is_not_mutated(self, kivy_tree):
        dirs = scan_directory(kivy_tree)
        reconcile_variants(dirs, set())
        assert dirs["kivy-007-dog"].kind == VARIANT

    def test_split_by_kind_sorts_products_before_variants(self, kivy_tree):
        final = reconcile_variants(scan_directory(kivy_tree), {"kivy-007-dog"})
        products, variants = split_by_kind(final)
        assert [d.sku for d in products] == ["kivy-007"]
        assert [d.sku for d in variants] == ["kivy-007-dog"]


def test_alt_text_uses_title_cased_entity_type():
    assert alt_text_for(PRODUCT, "kivy-007") == "Product image for kivy-007"
    assert alt_text_for(VARIANT, "kivy-007-dog") == "Product Variant image for kivy-007-dog"


def test_blob_name_keeps_original_extension():
    assert blob_name_for("kivy-007", Path("/x/a.JPG"), "abc123def456") == "kivy-007/abc123def456.JPG"
