"""Tests for QR point generation.

Uses an injected fake encoder so the layout maths is checked without the
``qrcode`` library; one test exercises the real encoder when installed.
"""

from __future__ import annotations

import pytest

from wood_engraver.errors import EmptyInputError, EncoderUnavailableError, InvalidInputError
from wood_engraver.geometry.transforms import BedDimensions
from wood_engraver.points import PointSource
from wood_engraver.qr.generator import generate_qr_points, module_matrix


class _BrokenEncoder:
    def encode(self, text, error_correction="M"):
        raise RuntimeError("library not ready")


class TestLayout:
    def test_diagonal_matrix(self, fake_encoder) -> None:
        pattern = generate_qr_points(
            "hi", 1.0, BedDimensions(100, 100), dots_per_module=2, encoder=fake_encoder,
        )
        coords = {(p.x, p.y) for p in pattern.points}
        # Row 0 sits at the top (larger Y)
        assert coords == {
            (48.0, 50.0), (49.0, 50.0), (48.0, 51.0), (49.0, 51.0),
            (50.0, 48.0), (51.0, 48.0), (50.0, 49.0), (51.0, 49.0),
        }
        assert pattern.module_count == 2
        assert pattern.physical_size == 4.0
        assert pattern.dots_per_module == 2
        assert all(p.source is PointSource.QR_CODE for p in pattern.points)

    def test_not_mirrored(self, make_encoder) -> None:
        # Missing bottom-right module: the gap must stay at +X, -Y on the bed
        pattern = generate_qr_points(
            "hi", 2.0, BedDimensions(100, 100), dots_per_module=1,
            encoder=make_encoder([[1, 1], [1, 0]]),
        )
        coords = {(p.x, p.y) for p in pattern.points}
        assert coords == {(48.0, 50.0), (50.0, 50.0), (48.0, 48.0)}

    def test_bounds(self, fake_encoder) -> None:
        pattern = generate_qr_points(
            "hi", 1.0, BedDimensions(100, 100), offset_x=10, offset_y=-5,
            dots_per_module=2, encoder=fake_encoder,
        )
        b = pattern.bounds
        assert (b.min_x, b.max_x, b.min_y, b.max_y) == (58.0, 62.0, 43.0, 47.0)
        assert b.contains(60, 45)
        assert not b.contains(63, 45)
        for p in pattern.points:
            assert b.contains(p.x, p.y)

    def test_default_density(self, make_encoder) -> None:
        encoder = make_encoder([[1]])
        pattern = generate_qr_points("x", 0.5, BedDimensions(10, 10), encoder=encoder)
        assert pattern.dots_per_module == 3
        assert len(pattern.points) == 9

    def test_error_correction_passed(self, fake_encoder) -> None:
        generate_qr_points("hello", 1.0, BedDimensions(50, 50), encoder=fake_encoder)
        assert fake_encoder.calls == [("hello", "M")]

    def test_dark_module_count(self, make_encoder) -> None:
        encoder = make_encoder([[1, 1, 0], [0, 1, 0], [1, 0, 1]])
        pattern = generate_qr_points("t", 1.0, BedDimensions(50, 50), dots_per_module=2, encoder=encoder)
        assert len(pattern.points) == 5 * 4


class TestErrors:
    @pytest.mark.parametrize("text", ["", "   "])
    def test_blank_text(self, fake_encoder, text: str) -> None:
        with pytest.raises(EmptyInputError):
            generate_qr_points(text, 1.0, BedDimensions(50, 50), encoder=fake_encoder)
        assert fake_encoder.calls == []

    def test_empty_is_invalid_input(self, fake_encoder) -> None:
        with pytest.raises(InvalidInputError):
            generate_qr_points("", 1.0, BedDimensions(50, 50), encoder=fake_encoder)

    def test_encoder_failure(self) -> None:
        with pytest.raises(EncoderUnavailableError):
            generate_qr_points("hi", 1.0, BedDimensions(50, 50), encoder=_BrokenEncoder())

    def test_non_square_matrix(self, make_encoder) -> None:
        with pytest.raises(EncoderUnavailableError):
            generate_qr_points("hi", 1.0, BedDimensions(50, 50), encoder=make_encoder([[1, 0]]))

    def test_bad_density(self, fake_encoder) -> None:
        with pytest.raises(InvalidInputError):
            generate_qr_points("hi", 1.0, BedDimensions(50, 50), dots_per_module=0, encoder=fake_encoder)


class TestModuleMatrix:
    def test_blank_is_none(self, fake_encoder) -> None:
        assert module_matrix(" ", fake_encoder) is None

    def test_matrix(self, fake_encoder) -> None:
        assert module_matrix("a", fake_encoder).tolist() == [[True, False], [False, True]]

    def test_real_encoder(self) -> None:
        pytest.importorskip("qrcode")
        matrix = module_matrix("https://example.com")
        n = matrix.shape[0]
        assert matrix.shape == (n, n)
        assert n >= 21 and (n - 17) % 4 == 0
        # Finder pattern corner module is dark
        assert matrix[0, 0]
