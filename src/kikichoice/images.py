from __future__ import annotations
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Collection, Dict, List, Tuple


IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".webp"}

PRODUCT = "product"
VARIANT = "product_variant"

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirectoryInfo:
    path: Path
    sku: str
    kind: str
    parent_sku: str = ""
    images: Tuple[Path, ...] = field(default_factory=tuple)

    @property
    def is_variant(self) -> bool:
        return self.kind == VARIANT


def classify_directory(name: str) -> Tuple[str, str]:
    """Guess whether a directory names a product or a variant.

    ``kivy-007`` has a hyphen so it is a variant candidate of ``kivy``; the
    guess is only confirmed by :func:`reconcile_variants`.
    """
    parts = name.split("-")
    if len(parts) <= 1:
        return PRODUCT, ""
    parent_sku = "-".join(parts[:-1])
    if not parent_sku:
        return PRODUCT, ""
    return VARIANT, parent_sku


def _walk_files(root: Path):
    def _on_error(err: OSError) -> None:
        log.warning("Error accessing path %s: %s", err.filename, err)

    for dirpath, _dirnames, filenames in os.walk(root, onerror=_on_error):
        for name in filenames:
            yield Path(dirpath) / name


def scan_directory(root: Path) -> Dict[str, DirectoryInfo]:
    groups: Dict[str, List[Path]] = {}
    parents: Dict[str, Path] = {}
    for p in _walk_files(root):
        if p.suffix.lower() not in IMAGE_EXTS:
            log.debug("Skipping unsupported file: %s", p)
            continue
        if p.parent == root:
            log.warning("Skipping image in root directory: %s", p)
            continue
        try:
            size = p.stat().st_size
        except OSError as e:
            log.warning("Error accessing path %s: %s", p, e)
            continue
        if size == 0:
            log.warning("Skipping empty file: %s", p)
            continue
        sku = p.parent.name
        groups.setdefault(sku, []).append(p)
        parents.setdefault(sku, p.parent)
        log.debug("Found image: %s (SKU: %s, Size: %d bytes)", p.name, sku, size)

    out: Dict[str, DirectoryInfo] = {}
    for sku, files in groups.items():
        kind, parent_sku = classify_directory(sku)
        out[sku] = DirectoryInfo(
            path=parents[sku],
            sku=sku,
            kind=kind,
            parent_sku=parent_sku,
            images=tuple(sorted(files)),
        )
    return out


def reconcile_variants(
    directories: Dict[str, DirectoryInfo],
    known_variant_skus: Collection[str],
) -> Dict[str, DirectoryInfo]:
    """Return a finalized copy where unknown variant candidates become products."""
    known = set(known_variant_skus)
    out: Dict[str, DirectoryInfo] = {}
    valid = 0
    candidates = 0
    for sku, info in directories.items():
        if info.is_variant:
            candidates += 1
            if sku in known:
                valid += 1
                log.debug("Validated variant directory: %s", sku)
            else:
                log.warning("Variant SKU not found in database, treating as product: %s", sku)
                info = replace(info, kind=PRODUCT, parent_sku="")
        out[sku] = info
    if candidates:
        log.info("Validated %d variant directories out of %d", valid, candidates)
    return out


def split_by_kind(directories: Dict[str, DirectoryInfo]) -> Tuple[List[DirectoryInfo], List[DirectoryInfo]]:
    products = [d for _, d in sorted(directories.items()) if not d.is_variant]
    variants = [d for _, d in sorted(directories.items()) if d.is_variant]
    return products, variants


def entity_label(kind: str) -> str:
    return kind.replace("_", " ").title()


def alt_text_for(kind: str, sku: str) -> str:
    return f"{entity_label(kind)} image for {sku}"


def blob_prefix(sku: str) -> str:
    return f"{sku}/"


def blob_name_for(sku: str, image_path: Path, short_id: str) -> str:
    return f"{sku}/{short_id}{image_path.suffix}"
