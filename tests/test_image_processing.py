"""
Tests for raster processing utilities.

Tests cover:
- Frame validation of malformed buffers
- Grayscale weights and Gaussian smoothing
- Gradient estimation, non-maximum suppression
- Hysteresis and simple gradient thresholds
"""

import math

import numpy as np
import pytest

from keypoint_annotator.utils.image_processing import (
    compute_gradients,
    gaussian_blur,
    gaussian_kernel,
    gradient_threshold,
    hysteresis_threshold,
    non_maximum_suppression,
    to_grayscale,
    validate_frame,
)


class TestValidateFrame:
    """Test suite for validate_frame."""

    def test_accepts_rgba_rgb_and_gray(self):
        assert validate_frame(np.zeros((4, 5, 4), dtype=np.uint8)) is not None
        assert validate_frame(np.zeros((4, 5, 3), dtype=np.uint8)) is not None
        assert validate_frame(np.zeros((4, 5), dtype=np.float32)) is not None

    def test_rejects_none(self):
        assert validate_frame(None) is None

    def test_rejects_zero_area(self):
        assert validate_frame(np.zeros((0, 10, 4), dtype=np.uint8)) is None
        assert validate_frame(np.zeros((10, 0), dtype=np.uint8)) is None

    def test_rejects_wrong_shape(self):
        assert validate_frame(np.zeros(10)) is None
        assert validate_frame(np.zeros((4, 4, 2))) is None

    def test_rejects_non_numeric(self):
        assert validate_frame(np.array([["a", "b"], ["c", "d"]])) is None


class TestGrayscaleAndBlur:
    """Test suite for grayscale conversion and Gaussian blur."""

    def test_luminance_weights(self):
        frame = np.zeros((1, 3, 4), dtype=np.uint8)
        frame[0, 0, 0] = 100  # red
        frame[0, 1, 1] = 100  # green
        frame[0, 2, 2] = 100  # blue
        gray = to_grayscale(frame)
        np.testing.assert_allclose(gray[0], [29.9, 58.7, 11.4])

    def test_alpha_ignored(self):
        frame = np.full((2, 2, 4), 50, dtype=np.uint8)
        frame[..., 3] = 0
        np.testing.assert_allclose(to_grayscale(frame), 50.0)

    def test_kernel_size_and_normalization(self):
        kernel = gaussian_kernel(2)
        assert kernel.shape == (5,)
        assert kernel.sum() == pytest.approx(1.0)
        np.testing.assert_allclose(kernel, kernel[::-1])
        assert kernel.argmax() == 2

    def test_fractional_radius_kernel_size(self):
        assert gaussian_kernel(1.2).shape == (4,)

    def test_flat_image_stays_flat(self):
        gray = np.full((20, 30), 77.0)
        np.testing.assert_allclose(gaussian_blur(gray, 2), 77.0)

    def test_blur_smooths_impulse(self):
        gray = np.zeros((11, 11))
        gray[5, 5] = 100.0
        blurred = gaussian_blur(gray, 2)
        assert blurred[5, 5] < 100.0
        assert blurred[5, 6] > 0.0
        assert blurred.sum() == pytest.approx(100.0)


class TestGradients:
    """Test suite for gradient estimation and non-maximum suppression."""

    def _vertical_step(self):
        img = np.zeros((9, 9))
        img[:, 5:] = 100.0
        return img

    def test_border_is_zero(self):
        magnitude, _ = compute_gradients(self._vertical_step())
        assert magnitude[0, :].max() == 0.0
        assert magnitude[-1, :].max() == 0.0
        assert magnitude[:, 0].max() == 0.0
        assert magnitude[:, -1].max() == 0.0

    def test_step_magnitude_is_mean_of_operators(self):
        magnitude, direction = compute_gradients(self._vertical_step())
        # Sobel gives 4*100, Scharr gives 16*100 at the step
        assert magnitude[4, 4] == pytest.approx((400.0 + 1600.0) / 2.0)
        assert direction[4, 4] == pytest.approx(0.0)

    def test_flat_image_has_no_gradient(self):
        magnitude, _ = compute_gradients(np.full((8, 8), 12.0))
        assert magnitude.max() == 0.0

    def test_tiny_image(self):
        magnitude, direction = compute_gradients(np.ones((2, 2)))
        assert magnitude.shape == (2, 2)
        assert magnitude.max() == 0.0

    def test_nms_keeps_ridge_only(self):
        magnitude = np.zeros((5, 5))
        magnitude[:, 1] = 10.0
        magnitude[:, 2] = 30.0
        magnitude[:, 3] = 10.0
        direction = np.zeros((5, 5))  # horizontal gradient
        suppressed = non_maximum_suppression(magnitude, direction)
        assert suppressed[2, 2] == 30.0
        assert suppressed[2, 1] == 0.0
        assert suppressed[2, 3] == 0.0

    def test_nms_vertical_direction(self):
        magnitude = np.zeros((5, 5))
        magnitude[1, :] = 10.0
        magnitude[2, :] = 30.0
        magnitude[3, :] = 10.0
        direction = np.full((5, 5), math.pi / 2)
        suppressed = non_maximum_suppression(magnitude, direction)
        assert suppressed[2, 2] == 30.0
        assert suppressed[1, 2] == 0.0


class TestThresholds:
    """Test suite for hysteresis and the simple gradient threshold."""

    def test_weak_pixels_connected_to_strong_are_kept(self):
        img = np.zeros((5, 7))
        img[2, 1] = 60.0  # strong
        img[2, 2] = 30.0  # weak, adjacent
        img[3, 3] = 30.0  # weak, diagonal chain
        img[0, 6] = 30.0  # weak, isolated
        edges = hysteresis_threshold(img, 25.0, 50.0)
        assert edges[2, 1] and edges[2, 2] and edges[3, 3]
        assert not edges[0, 6]

    def test_below_low_is_never_edge(self):
        img = np.zeros((3, 3))
        img[1, 1] = 60.0
        img[1, 2] = 20.0
        edges = hysteresis_threshold(img, 25.0, 50.0)
        assert edges.sum() == 1

    def test_long_chain_does_not_recurse(self):
        img = np.full((1, 5000), 30.0)
        img[0, 0] = 60.0
        edges = hysteresis_threshold(img, 25.0, 50.0)
        assert edges.all()

    def test_gradient_threshold_inclusive(self):
        img = np.zeros((5, 5))
        img[:, 3:] = 50.0
        edges = gradient_threshold(img, 50.0)
        # central difference at column 2 is exactly 50
        assert edges[2, 2]
        assert not edges[2, 0]

    def test_gradient_threshold_flat(self):
        assert not gradient_threshold(np.full((6, 6), 9.0), 1.0).any()
