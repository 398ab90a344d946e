#!/usr/bin/env python3
"""Self-test for directory classification and scanning helpers.

No network or database required. Validates deterministic behavior of non-API logic.
"""
from pathlib import Path
import sys
import tempfile

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / 'src'))

from kikichoice.images import (  # type: ignore
    PRODUCT,
    VARIANT,
    classify_directory,
    reconcile_variants,
    scan_directory,
)


def main() -> int:
    assert classify_directory('kivy') == (PRODUCT, '')
    assert classify_directory('kivy-007') == (VARIANT, 'kivy')
    assert classify_directory('kivy-007-dog') == (VARIANT, 'kivy-007')
    assert classify_directory('-dog') == (PRODUCT, '')

    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        (root / 'kivy-007').mkdir()
        (root / 'kivy-007-dog').mkdir()
        (root / 'kivy-007' / 'a.jpg').write_bytes(b'x')
        (root / 'kivy-007' / 'b.PNG').write_bytes(b'x')
        (root / 'kivy-007' / 'notes.txt').write_bytes(b'x')
        (root / 'kivy-007-dog' / 'c.webp').write_bytes(b'x')
        dirs = scan_directory(root)
        final = reconcile_variants(dirs, {'kivy-007-dog'})
        assert len(final['kivy-007'].images) == 2
        assert final['kivy-007-dog'].kind == VARIANT
        # kivy-007 is a variant guess with no matching record
        assert final['kivy-007'].kind == PRODUCT
    print('Self-test ok: classify_directory, scan_directory and reconcile_variants pass basic checks')
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
