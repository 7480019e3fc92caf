from __future__ import annotations

import os
import struct
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock


sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import dds_extractor


PREFIX = bytes(range(0x10, 0x50))  # container bytes in front of the texture
TRAILER = b"FOOTER--" * 4


def _dds_resource(body_size: int, fill: int = 0x5A) -> bytes:
    header = bytearray(128)
    header[0:4] = b"DDS "
    struct.pack_into("<I", header, 4, 124)
    return bytes(header) + bytes([fill]) * body_size


def _bin_container(width: int = 64, height: int = 64) -> bytes:
    header = bytearray(0x40)
    struct.pack_into("<HH", header, 8, width, height)
    struct.pack_into("<I", header, 0x10, 0x40)
    return bytes(header) + _dds_resource(256)


class SpliceResourceTests(unittest.TestCase):
    def test_same_size_replacement_keeps_footer(self) -> None:
        old = _dds_resource(64, fill=0x01)
        new = _dds_resource(64, fill=0x02)
        original = PREFIX + old + TRAILER

        patched = dds_extractor.splice_resource(original, len(PREFIX), new)

        self.assertEqual(patched, PREFIX + new + TRAILER)

    def test_bytes_after_replacement_come_from_original(self) -> None:
        original = PREFIX + _dds_resource(64) + TRAILER
        offset = len(PREFIX)
        for replacement in (_dds_resource(16), _dds_resource(80)):
            with self.subTest(length=len(replacement)):
                patched = dds_extractor.splice_resource(original, offset, replacement)
                self.assertEqual(patched[:offset], PREFIX)
                self.assertEqual(patched[offset : offset + len(replacement)], replacement)
                self.assertEqual(
                    patched[offset + len(replacement) :],
                    original[offset + len(replacement) :],
                )

    def test_rejects_offset_outside_buffer(self) -> None:
        with self.assertRaises(ValueError):
            dds_extractor.splice_resource(b"abc", 4, b"x")


class ExtractResourceTests(unittest.TestCase):
    def test_extracts_rest_of_file(self) -> None:
        resource = _dds_resource(100)
        with tempfile.TemporaryDirectory() as tmpdir:
            container = Path(tmpdir) / "st00.BIN"
            container.write_bytes(PREFIX + resource)

            result = dds_extractor.extract_resource(container)

            self.assertEqual(result.target, Path(tmpdir) / "st00_extracted.dds")
            self.assertEqual(result.offset, len(PREFIX))
            self.assertEqual(result.length, len(resource))
            self.assertEqual(result.target.read_bytes(), resource)
            self.assertEqual(container.read_bytes(), PREFIX + resource)

    def test_explicit_output_path(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            container = Path(tmpdir) / "st00.dat"
            container.write_bytes(PREFIX + _dds_resource(8))
            output = Path(tmpdir) / "custom.dds"

            result = dds_extractor.extract_resource(container, output)

            self.assertEqual(result.target, output)
            self.assertEqual(output.read_bytes(), _dds_resource(8))

    def test_hashed_name_uses_container_fingerprint(self) -> None:
        data = _bin_container()
        with tempfile.TemporaryDirectory() as tmpdir:
            container = Path(tmpdir) / "st00.bin"
            container.write_bytes(data)
            expected = dds_extractor.fingerprint_bytes(data, ".bin")

            result = dds_extractor.extract_resource(container, hashed=True)

            self.assertEqual(result.fingerprint, expected)
            self.assertEqual(result.target.name, f"{expected.name}.dds")
            self.assertTrue(result.target.name.startswith("0064x0064_"))
            self.assertEqual(result.target.read_bytes(), data[0x40:])

    def test_hashed_without_dimensions_uses_plain_name(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            container = Path(tmpdir) / "st00.dat"
            container.write_bytes(PREFIX + _dds_resource(8))

            result = dds_extractor.extract_resource(container, hashed=True)

            self.assertIsNone(result.fingerprint.name)
            self.assertEqual(result.target.name, "st00_extracted.dds")

    def test_missing_signature_writes_nothing(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            container = Path(tmpdir) / "st00.bin"
            container.write_bytes(PREFIX)

            with self.assertRaises(dds_extractor.SignatureNotFoundError):
                dds_extractor.extract_resource(container)

            self.assertEqual(sorted(os.listdir(tmpdir)), ["st00.bin"])


class ReimportResourceTests(unittest.TestCase):
    def test_round_trip_reproduces_container(self) -> None:
        original = PREFIX + _dds_resource(300) + TRAILER
        with tempfile.TemporaryDirectory() as tmpdir:
            container = Path(tmpdir) / "st00.bin"
            container.write_bytes(original)

            extracted = dds_extractor.extract_resource(container).target
            result = dds_extractor.reimport_resource(container, extracted)

            self.assertEqual(result.offset, len(PREFIX))
            self.assertEqual(container.read_bytes(), original)

    def test_edited_resource_is_spliced_in(self) -> None:
        old = _dds_resource(64, fill=0x01)
        original = PREFIX + old + TRAILER
        with tempfile.TemporaryDirectory() as tmpdir:
            container = Path(tmpdir) / "st00.bin"
            container.write_bytes(original)
            replacement = Path(tmpdir) / "st00_extracted.dds"
            replacement.write_bytes(_dds_resource(64, fill=0x7F))

            dds_extractor.reimport_resource(container, replacement)

            self.assertEqual(container.read_bytes(), PREFIX + replacement.read_bytes() + TRAILER)

    def test_longer_replacement_keeps_prefix_and_original_tail(self) -> None:
        original = PREFIX + _dds_resource(64) + TRAILER
        new = _dds_resource(72, fill=0x33)
        with tempfile.TemporaryDirectory() as tmpdir:
            container = Path(tmpdir) / "st00.bin"
            container.write_bytes(original)
            replacement = Path(tmpdir) / "new.dds"
            replacement.write_bytes(new)

            dds_extractor.reimport_resource(container, replacement)

            offset = len(PREFIX)
            self.assertEqual(
                container.read_bytes(),
                PREFIX + new + original[offset + len(new) :],
            )

    def test_missing_signature_leaves_container_untouched(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            container = Path(tmpdir) / "st00.bin"
            container.write_bytes(PREFIX + TRAILER)
            replacement = Path(tmpdir) / "new.dds"
            replacement.write_bytes(_dds_resource(8))

            with self.assertRaises(dds_extractor.SignatureNotFoundError):
                dds_extractor.reimport_resource(container, replacement)

            self.assertEqual(container.read_bytes(), PREFIX + TRAILER)

    def test_missing_replacement_leaves_container_untouched(self) -> None:
        original = PREFIX + _dds_resource(8)
        with tempfile.TemporaryDirectory() as tmpdir:
            container = Path(tmpdir) / "st00.bin"
            container.write_bytes(original)

            with self.assertRaises(dds_extractor.UnopenableFileError):
                dds_extractor.reimport_resource(container, Path(tmpdir) / "missing.dds")

            self.assertEqual(container.read_bytes(), original)

    def test_failed_commit_leaves_container_untouched(self) -> None:
        original = PREFIX + _dds_resource(8)
        with tempfile.TemporaryDirectory() as tmpdir:
            container = Path(tmpdir) / "st00.bin"
            container.write_bytes(original)
            replacement = Path(tmpdir) / "new.dds"
            replacement.write_bytes(_dds_resource(8, fill=0x11))

            with mock.patch.object(
                dds_extractor.os, "replace", side_effect=OSError("disk full")
            ):
                with self.assertRaises(dds_extractor.UnopenableFileError):
                    dds_extractor.reimport_resource(container, replacement)

            self.assertEqual(container.read_bytes(), original)
            self.assertEqual(sorted(os.listdir(tmpdir)), ["new.dds", "st00.bin"])

    def test_missing_container_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(dds_extractor.UnopenableFileError):
                dds_extractor.reimport_resource(
                    Path(tmpdir) / "missing.bin", Path(tmpdir) / "new.dds"
                )


if __name__ == "__main__":  # pragma: no cover - manual test runner support
    unittest.main()
